from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, String, Date, DateTime, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    coverage_type = Column(String(50), index=True, nullable=False)
    policy_number = Column(String(100), nullable=True)
    carrier_name = Column(String(255), nullable=True)
    required_amount = Column(BigInteger, nullable=True)
    aggregate_amount = Column(BigInteger, nullable=True)
    each_occurrence_amount = Column(BigInteger, nullable=True)
    additional_insured = Column(Boolean, nullable=True)
    waiver_of_subrogation = Column(Boolean, nullable=True)
    primary_non_contributory = Column(Boolean, nullable=True)
    effective_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True, index=True)
    compliance_status = Column(String(20), default="pending", nullable=False)
    notified_date = Column(Date, nullable=True)
    last_checked_at = Column(DateTime, nullable=True)
    brokermatic_cert_id = Column(String(100), nullable=True)

    vendor = relationship("Vendor", back_populates="certificates")


class CertificateRequest(Base):
    __tablename__ = "certificate_requests"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    status = Column(String(20), default="pending", index=True, nullable=False)
    broker_request_id = Column(String(100), nullable=True, index=True)
    external_id = Column(String(100), nullable=True)
    project_description = Column(String(1000), nullable=True)
    coverage_types = Column(JSON, nullable=True)
    minimum_limits = Column(JSON, nullable=True)
    compliance_result = Column(JSON, nullable=True)
    uploaded_at = Column(DateTime, nullable=True)
    validated_at = Column(DateTime, nullable=True)
    reminder_sent_at = Column(Date, nullable=True)

    vendor = relationship("Vendor", back_populates="certificate_requests")
