"""Domain exceptions raised by the compliance services."""


class ComplianceError(Exception):
    """Base exception for vendor compliance errors."""


class RequirementConfigError(ComplianceError):
    """A requirement specification is malformed (for example a negative minimum limit)."""


class VendorNotFoundError(ComplianceError):
    def __init__(self, vendor_id: int):
        super().__init__(f"Vendor {vendor_id} not found")
        self.vendor_id = vendor_id


class DuplicateRequestError(ComplianceError):
    """A certificate request is already open for the vendor."""

    def __init__(self, vendor_id: int, request_id: int, broker_request_id: str = None):
        super().__init__(f"A certificate request is already pending for vendor {vendor_id}")
        self.vendor_id = vendor_id
        self.request_id = request_id
        self.broker_request_id = broker_request_id


class BrokermaticError(ComplianceError):
    """The Brokermatic API returned an error or could not be reached."""


class CertificateNotFoundError(ComplianceError):
    def __init__(self, certificate_id: int):
        super().__init__(f"Certificate {certificate_id} not found")
        self.certificate_id = certificate_id
