from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    name = Column(String(255), index=True, nullable=False)
    email = Column(String(255), nullable=True)
    primary_trade = Column(String(100), nullable=True)
    status = Column(String(20), default="active")  # active, suspended
    exempt_from_insurance = Column(Boolean, default=False, nullable=False)
    insurance_status = Column(String(20), default="pending", index=True, nullable=False)
    # Freshness of insurance_status, used by the non-compliance notification window
    insurance_status_updated_at = Column(DateTime, default=datetime.utcnow, index=True)
    insurance_requested_at = Column(DateTime, nullable=True)
    insurance_compliance_at = Column(DateTime, nullable=True)
    non_compliance_notified_at = Column(DateTime, nullable=True)
    broker_name = Column(String(255), nullable=True)
    broker_email = Column(String(255), nullable=True)
    brokermatic_insured_id = Column(String(100), nullable=True, index=True)

    insurance_requirement = relationship(
        "InsuranceRequirement", back_populates="vendor", uselist=False, cascade="all, delete-orphan"
    )
    certificates = relationship("Certificate", back_populates="vendor", cascade="all, delete-orphan")
    certificate_requests = relationship(
        "CertificateRequest", back_populates="vendor", cascade="all, delete-orphan"
    )


class InsuranceRequirement(Base):
    __tablename__ = "insurance_requirements"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), unique=True, nullable=False)

    # A coverage is required when any of its three amounts is set
    gl_required = Column(BigInteger, nullable=True)
    gl_aggregate = Column(BigInteger, nullable=True)
    gl_each_occurrence = Column(BigInteger, nullable=True)
    excess_required = Column(BigInteger, nullable=True)
    excess_aggregate = Column(BigInteger, nullable=True)
    excess_each_occurrence = Column(BigInteger, nullable=True)
    auto_required = Column(BigInteger, nullable=True)
    auto_aggregate = Column(BigInteger, nullable=True)
    auto_each_occurrence = Column(BigInteger, nullable=True)
    env_required = Column(BigInteger, nullable=True)
    env_aggregate = Column(BigInteger, nullable=True)
    env_each_occurrence = Column(BigInteger, nullable=True)
    prof_required = Column(BigInteger, nullable=True)
    prof_aggregate = Column(BigInteger, nullable=True)
    prof_each_occurrence = Column(BigInteger, nullable=True)
    workers_comp_required = Column(Boolean, default=False, nullable=False)

    # Flags required on the general liability certificate
    additional_insured_required = Column(Boolean, default=False, nullable=False)
    waiver_of_subrogation_required = Column(Boolean, default=False, nullable=False)

    vendor = relationship("Vendor", back_populates="insurance_requirement")
