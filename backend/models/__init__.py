from models.vendor import Vendor, InsuranceRequirement
from models.certificate import Certificate, CertificateRequest
