from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinibridge.db.base import Base


class EligibilityCacheRow(Base):
    """Raw eligibility fields per trial. Never holds LLM output."""

    __tablename__ = "eligibility_cache"

    nct_id: Mapped[str] = mapped_column(Text, primary_key=True)
    eligibility_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)
    minimum_age: Mapped[str | None] = mapped_column(Text, nullable=True)
    maximum_age: Mapped[str | None] = mapped_column(Text, nullable=True)
    sex: Mapped[str | None] = mapped_column(Text, nullable=True)
    healthy_volunteers: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
