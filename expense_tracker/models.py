"""SQLAlchemy models for the expense tracking service."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .database import Base


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)
    name: str = Column(String(255), nullable=False)
    email: str = Column(String(255), unique=True, nullable=False, index=True)
    # NULL for accounts that only ever signed in through Google.
    password_hash: Optional[str] = Column(String(255), nullable=True)
    google_id: Optional[str] = Column(String(255), unique=True, nullable=True, index=True)
    is_google_user: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, nullable=False, default=datetime.utcnow)

    expenses = relationship("Expense", back_populates="owner", cascade="all, delete-orphan")


class Expense(Base):
    __tablename__ = "expenses"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    description: str = Column(String(255), nullable=False)
    amount: Decimal = Column(Numeric(10, 2), nullable=False)
    date: date = Column(Date, nullable=False, index=True)
    category: str = Column(String(50), nullable=False)
    location: str = Column(String(255), nullable=False, default="")
    payment_type: str = Column(String(50), nullable=False)

    owner = relationship("User", back_populates="expenses")
