"""
SQLAlchemy model for the rankings table.

One row per content source (e.g. "ChatGPT"), holding running tallies.
Rows are only ever created or incremented, never deleted.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from claimcheck.database import Base


class RankingRecord(Base):
    """
    Cumulative verification tallies for one named source.

    `id` is autoincrementing, so ordering by it gives insertion order
    (used to break avgScore ties on the leaderboard).
    """

    __tablename__ = "rankings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    checks_count: Mapped[int] = mapped_column(Integer, default=0)
    verified: Mapped[int] = mapped_column(Integer, default=0)
    false: Mapped[int] = mapped_column(Integer, default=0)
    unconfirmed: Mapped[int] = mapped_column(Integer, default=0)
    opinions: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"<RankingRecord name={self.name} checks={self.checks_count}>"
