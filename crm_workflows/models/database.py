"""SQLModel database models and tables."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlmodel import JSON, Column, DateTime, Field, SQLModel


class Record(SQLModel, table=True):
    """Generic document row backing every logical table of the record store."""

    __tablename__ = "records"

    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, max_length=64)
    collection: str = Field(index=True, max_length=128)
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )
