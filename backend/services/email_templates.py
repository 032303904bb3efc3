"""HTML bodies for compliance notification emails. All interpolated values are escaped."""

from html import escape

from config import HOLDER_NAME

BASE_STYLES = """
  <style>
    body { font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6;
           color: #4B465C; background-color: #F8F7FA; margin: 0; padding: 0; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .card { background: #FFFFFF; border-radius: 12px; padding: 32px; margin: 20px 0; }
    .header { text-align: center; padding: 20px 0; border-bottom: 2px solid #7367F0; margin-bottom: 24px; }
    .logo { font-size: 24px; font-weight: 700; color: #003087; }
    .alert { padding: 16px; border-radius: 8px; margin: 20px 0; }
    .alert-warning { background: #FFF6E5; border-left: 4px solid #FF9F43; }
    .alert-danger { background: #FFF0F0; border-left: 4px solid #EA5455; }
    .alert-info { background: #E8F4FD; border-left: 4px solid #7367F0; }
    .details { background: #F8F7FA; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .label { font-weight: 600; }
    .button { display: inline-block; padding: 12px 24px; background: #7367F0; color: #FFFFFF !important;
              text-decoration: none; border-radius: 8px; font-weight: 600; margin: 16px 0; }
    .footer { text-align: center; padding: 20px; color: #A8AAAE; font-size: 13px; }
  </style>
"""


def _layout(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
  {BASE_STYLES}
</head>
<body>
  <div class="container">
    <div class="card">
      <div class="header">
        <div class="logo">{escape(HOLDER_NAME)}</div>
        <div>Vendor Compliance Portal</div>
      </div>
      <h1>{escape(title)}</h1>
      {body}
      <div class="footer">
        <p>This is an automated notification from the {escape(HOLDER_NAME)} Vendor Compliance Portal.</p>
        <p>If you have questions, please contact the Risk Management office.</p>
      </div>
    </div>
  </div>
</body>
</html>"""


def _details(rows: list[tuple[str, object]]) -> str:
    lines = [
        f'<div><span class="label">{escape(label)}:</span> {escape(str(value))}</div>'
        for label, value in rows
    ]
    return '<div class="details">' + "\n".join(lines) + "</div>"


def _button(url: str, text: str) -> str:
    return f'<p><a href="{escape(url, quote=True)}" class="button">{escape(text)}</a></p>'


def certificate_expiring_template(
    vendor_name: str,
    coverage_type: str,
    policy_number: str,
    expiration_date: str,
    days_until_expiration: int,
    certificate_url: str,
) -> str:
    urgency = "danger" if days_until_expiration <= 30 else "warning"
    body = f"""
      <div class="alert alert-{urgency}">
        <strong>Action Required:</strong> A vendor insurance certificate will expire in
        {days_until_expiration} days.
      </div>
      {_details([
          ("Vendor", vendor_name),
          ("Coverage Type", coverage_type),
          ("Policy Number", policy_number),
          ("Expiration Date", expiration_date),
          ("Days Until Expiration", f"{days_until_expiration} days"),
      ])}
      <p><strong>Recommended Actions:</strong></p>
      <ul>
        <li>Contact the vendor to request certificate renewal</li>
        <li>Upload the new certificate when received</li>
      </ul>
      {_button(certificate_url, "View Certificate Details")}
    """
    return _layout("Certificate Expiring Soon", body)


def certificate_expired_template(
    vendor_name: str,
    coverage_type: str,
    policy_number: str,
    expiration_date: str,
    days_overdue: int,
    vendor_url: str,
) -> str:
    body = f"""
      <div class="alert alert-danger">
        <strong>Urgent:</strong> This vendor's insurance certificate has expired. The vendor is no
        longer compliant and should not perform work until a current certificate is on file.
      </div>
      {_details([
          ("Vendor", vendor_name),
          ("Coverage Type", coverage_type),
          ("Policy Number", policy_number),
          ("Expired On", expiration_date),
          ("Days Overdue", days_overdue),
      ])}
      {_button(vendor_url, "View Vendor Insurance")}
    """
    return _layout("Certificate Expired", body)


def non_compliant_template(vendor_name: str, vendor_id: int, compliance_gaps: list[str], vendor_url: str) -> str:
    gap_items = "\n".join(f"<li>{escape(gap)}</li>" for gap in compliance_gaps)
    body = f"""
      <div class="alert alert-danger">
        <strong>Non-Compliant:</strong> The certificate on file for {escape(vendor_name)}
        does not meet {escape(HOLDER_NAME)} insurance requirements.
      </div>
      {_details([("Vendor", vendor_name), ("Vendor ID", vendor_id)])}
      <p><strong>Compliance gaps:</strong></p>
      <ul>
        {gap_items}
      </ul>
      {_button(vendor_url, "Review Vendor Insurance")}
    """
    return _layout("Non-Compliant Certificate", body)


def pending_request_reminder_template(
    vendor_name: str,
    broker_email: str,
    broker_name: str,
    requested_date: str,
    days_pending: int,
    vendor_url: str,
) -> str:
    broker = f"{broker_name} ({broker_email})" if broker_name else broker_email
    body = f"""
      <div class="alert alert-info">
        A certificate of insurance requested {days_pending} days ago has not been received.
      </div>
      {_details([
          ("Vendor", vendor_name),
          ("Broker", broker),
          ("Requested On", requested_date),
          ("Days Pending", days_pending),
      ])}
      <p>Consider following up with the broker directly.</p>
      {_button(vendor_url, "View Request")}
    """
    return _layout("Pending Certificate Request", body)
