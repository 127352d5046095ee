from sqlalchemy import (create_engine, Column, Integer, String, Text, Float, Date, ForeignKey, Numeric)
from sqlalchemy.types import DateTime
from datetime import datetime
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from app.config import DATABASE_URL, SQL_ECHO

Base = declarative_base()


class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unique_claim_id = Column(String(100), unique=True, nullable=False)
    unique_beneficiary_id = Column(String(100), nullable=False)
    beneficiary_name = Column(String(255), nullable=False)
    tpa_id = Column(Integer, nullable=False, index=True)
    facility_id = Column(Integer, nullable=False, index=True)
    batch_number = Column(String(100), index=True)
    primary_diagnosis = Column(Text)
    treatment_procedure = Column(Text)
    date_of_admission = Column(Date)
    date_of_treatment = Column(Date)
    date_of_discharge = Column(Date)
    date_of_claim_submission = Column(Date)
    total_cost_of_care = Column(Numeric(12, 2))
    approved_cost_of_care = Column(Numeric(12, 2))
    decision = Column(String(50))  # approved, rejected, pending
    created_by = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)
    items = relationship("ClaimItem", cascade="all, delete-orphan", passive_deletes=True, back_populates="claim")


class ClaimItem(Base):
    __tablename__ = "claim_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(String(50), nullable=False)
    item_category = Column(String(100))
    item_name = Column(String(255), nullable=False)
    item_description = Column(Text)
    quantity = Column(Integer, default=1)
    unit = Column(String(50))
    dosage = Column(String(100))
    duration = Column(String(100))
    unit_cost = Column(Numeric(12, 2), nullable=False)
    total_cost = Column(Numeric(12, 2), nullable=False)
    service_date = Column(Date)
    indication = Column(Text)
    urgency = Column(String(20))
    review_status = Column(String(50), default="pending")
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    claim = relationship("Claim", back_populates="items")


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_number = Column(String(100), index=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="SET NULL"))
    tpa_id = Column(Integer, index=True)
    error_type = Column(String(50), nullable=False)
    error_category = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    error_code = Column(String(100), nullable=False)
    error_title = Column(String(255), nullable=False)
    error_description = Column(Text)
    field_name = Column(String(255))
    expected_value = Column(Text)
    actual_value = Column(Text)
    expected_amount = Column(Float)
    actual_amount = Column(Float)
    amount_deviation = Column(Float)
    deviation_percentage = Column(Float)
    status = Column(String(20), default="open")  # open, resolved
    created_by = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)


#engine and sessions
engine = create_engine(DATABASE_URL, echo=SQL_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    Base.metadata.create_all(engine)
