from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinibridge.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchRecord(Base):
    """Append-only log of completed searches."""

    __tablename__ = "searches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    mode: Mapped[str] = mapped_column(String(16), nullable=False)  # "form" | "chat"
    condition: Mapped[str] = mapped_column(Text, nullable=False)
    age: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    medications: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    additional_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    results: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
