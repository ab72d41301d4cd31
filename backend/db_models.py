"""
SQLAlchemy ORM models for BurnerPay.

Tables:
    secrets — string-keyed device secrets (burner signing key, main wallet address)
"""
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, Boolean

from database import Base


class StoredSecret(Base):
    """One persisted secret. Absence of a row means 'not set'."""
    __tablename__ = "secrets"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    encrypted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
