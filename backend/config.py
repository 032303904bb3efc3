import os
from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.environ.get("DATABASE_URL")

# Mock mode (Brokermatic integration is mocked until their API is live)
MOCK_MODE = os.environ.get("MOCK_MODE", "true").lower() == "true"

# Brokermatic
BROKERMATIC_API_KEY = os.environ.get("BROKERMATIC_API_KEY")
BROKERMATIC_API_URL = os.environ.get("BROKERMATIC_API_URL", "https://api.brokermatic.ai/v1")
BROKERMATIC_WEBHOOK_SECRET = os.environ.get("BROKERMATIC_WEBHOOK_SECRET", "mock_webhook_secret")
BROKERMATIC_TIMEOUT_SECONDS = float(os.environ.get("BROKERMATIC_TIMEOUT_SECONDS", "15"))
BROKERMATIC_HOLDER_ID = os.environ.get("BROKERMATIC_HOLDER_ID", "ch_columbia_university")

# Notifications
NOTIFICATION_API_KEY = os.environ.get("NOTIFICATION_API_KEY", "dev-notification-key")
DEFAULT_NOTIFICATION_RECIPIENTS = ["insurance@columbia.edu", "riskmanagement@columbia.edu"]
APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000").rstrip("/")
HOLDER_NAME = os.environ.get("HOLDER_NAME", "Columbia University")

# Email
EMAIL_SERVICE_ENABLED = os.environ.get("EMAIL_SERVICE_ENABLED", "false").lower() == "true"
EMAIL_FROM = os.environ.get("EMAIL_FROM", "noreply@columbia.edu")
EMAIL_SEND_TIMEOUT_SECONDS = float(os.environ.get("EMAIL_SEND_TIMEOUT_SECONDS", "30"))
SMTP_HOST = os.environ.get("SMTP_HOST")
SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
SMTP_USER = os.environ.get("SMTP_USER")
SMTP_PASS = os.environ.get("SMTP_PASS")

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def get_notification_recipients() -> list[str]:
    raw = os.environ.get("NOTIFICATION_RECIPIENTS", "")
    recipients = [email.strip() for email in raw.split(",") if email.strip()]
    if not recipients:
        return list(DEFAULT_NOTIFICATION_RECIPIENTS)
    return recipients
