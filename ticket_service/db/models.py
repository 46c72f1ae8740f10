"""SQLModel table definitions for the ticket store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text
from sqlmodel import Field, SQLModel

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite.
_TicketId = BigInteger().with_variant(Integer(), "sqlite")


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Support ticket records, one row per ticket."""

    __tablename__ = "tickets"

    id: int | None = Field(
        default=None,
        sa_column=Column(_TicketId, primary_key=True, autoincrement=True),
    )
    session_id: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    client_id: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    operator_id: str = Field(default="", sa_column=Column(String(255), nullable=False, default="", index=True))
    status: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    priority: str = Field(default="", sa_column=Column(String(32), nullable=False, default="", index=True))
    region: str = Field(default="", sa_column=Column(String(64), nullable=False, default="", index=True))
    subject: str = Field(default="", sa_column=Column(String(255), nullable=False, default=""))
    notes: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
