from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class HistoryEntry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "history_entries"

    text: Mapped[str] = mapped_column(Text, default="")
    destinations: Mapped[list] = mapped_column(JSON)  # successful destinations only
    status: Mapped[str] = mapped_column(String(20))  # success/partial
