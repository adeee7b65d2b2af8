from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class NumberSequence(SQLModel, table=True):
    """
    Named monotonic counter backing human readable numbers
    (e.g. name='po:2026' -> PO-2026-000042).
    """

    __tablename__ = "number_sequences"

    name: str = Field(primary_key=True, max_length=64)
    value: int = Field(default=0)


class StatsEvent(SQLModel, table=True):
    """
    Record of a stats increment that has already been applied.

    Keys look like 'order:<id>:delivered'. A present key means the handler
    already ran, so replays are no-ops.
    """

    __tablename__ = "stats_events"

    event_key: str = Field(primary_key=True, max_length=200)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
