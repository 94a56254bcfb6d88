from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, DateTime, Index, String, Text, TypeDecorator, func
from sqlalchemy.orm import Mapped, mapped_column

from research_pulse.core.db import Base

class UTCDateTime(TypeDecorator):
    """Stores naive UTC in sqlite, hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=dt.timezone.utc)

class ArticleRow(Base):
    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_date", "date"),
    )

    link: Mapped[str] = mapped_column(String, primary_key=True)

    title: Mapped[str | None] = mapped_column(String, nullable=True)
    date: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False)

    # Nullable so malformed legacy rows can be found and purged
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)

    # NULL means "not yet enriched", never an empty vector
    tags: Mapped[list[str] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    embedding: Mapped[list[float] | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, server_default=func.now(), nullable=False)
