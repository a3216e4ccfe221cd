"""Read-only shapes of the marketplace tables the health computation queries.

These tables belong to the ATS, network and billing services; only the
columns consumed here are mapped.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.database import Base


class Placement(Base):
    __tablename__ = "placements"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_id: Mapped[str | None] = mapped_column(String(64), default=None)
    application_id: Mapped[str | None] = mapped_column(String(64), default=None)
    # hired | active | completed | failed | disputed
    state: Mapped[str] = mapped_column(String(32), default="hired")
    placement_fee: Mapped[float | None] = mapped_column(Float, default=None)
    hired_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, default=None, index=True)


class Application(Base):
    __tablename__ = "applications"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_id: Mapped[str | None] = mapped_column(String(64), default=None)
    candidate_id: Mapped[str | None] = mapped_column(String(64), default=None)
    candidate_recruiter_id: Mapped[str | None] = mapped_column(String(64), default=None)
    stage: Mapped[str] = mapped_column(String(32), default="submitted")
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)


class Recruiter(Base):
    __tablename__ = "recruiters"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), default=None)
    # pending | active | suspended
    status: Mapped[str] = mapped_column(String(32), default="active")
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime, default=None, index=True)


class Job(Base):
    __tablename__ = "jobs"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str | None] = mapped_column(String(64), default=None)
    # active | closed | expired | draft
    status: Mapped[str] = mapped_column(String(32), default="draft")
    created_at: Mapped[datetime] = mapped_column(DateTime)


class FraudSignal(Base):
    __tablename__ = "fraud_signals"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    severity: Mapped[str] = mapped_column(String(16), default="medium")
    status: Mapped[str] = mapped_column(String(16), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
