from sqlalchemy import Column, String, Text, DateTime
from datetime import datetime, timezone
from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class AppData(Base):
    """Whole application snapshot, serialized as one JSON blob per key."""

    __tablename__ = "app_data"

    key = Column(String, primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
