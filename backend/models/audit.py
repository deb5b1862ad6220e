# models/audit.py
from sqlalchemy import Column, Integer, String, DateTime, Text, Float, ForeignKey
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()

class AuditRun(Base):
    __tablename__ = "audit_runs"
    id = Column(Integer, primary_key=True, index=True)
    total_messages = Column(Integer, nullable=False, default=0)
    candidates = Column(Integer, nullable=False, default=0)
    confirmed = Column(Integer, nullable=False, default=0)
    conflicts = Column(Integer, nullable=False, default=0)
    missing = Column(Integer, nullable=False, default=0)
    calendar_days = Column(Text, nullable=True)  # comma-separated YYYY-MM-DD
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    records = relationship("AuditRecordRow", back_populates="run", cascade="all, delete-orphan",
                           order_by="AuditRecordRow.message_timestamp")

class AuditRecordRow(Base):
    __tablename__ = "audit_records"
    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("audit_runs.id"), nullable=False, index=True)
    candidate_id = Column(String(255), nullable=False)
    source_message_id = Column(String(255), nullable=False)
    chat_id = Column(String(255), nullable=False)
    sender_name = Column(String(255), nullable=True)
    excerpt = Column(Text, nullable=False)
    matched_event_id = Column(String(1024), nullable=True)
    status = Column(String(32), nullable=False, index=True)
    detail = Column(Text, nullable=False)
    effective_confidence = Column(Float, nullable=False, default=0.0)
    message_timestamp = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    run = relationship("AuditRun", back_populates="records")
