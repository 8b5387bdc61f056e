from sqlalchemy import JSON, Column, DateTime, String

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class KeyValue(Base):
    __tablename__ = "key_values"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
