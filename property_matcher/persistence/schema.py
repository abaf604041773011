"""Database schema for the SQL client backend.

Client records are stored as key-value rows: the normalized phone number is
the key and the persisted JSON layout of the record is the value, so the SQL
and JSON backends hold exactly the same documents.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, Index, String, Text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from property_matcher.utils.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)

Base = declarative_base()


class ClientRecordModel(Base):
    """ORM model for the client_records table."""

    __tablename__ = "client_records"

    phone = Column(String(32), primary_key=True, nullable=False)
    payload = Column(Text, nullable=False)

    # ISO 8601 string, when this row was last written by any process
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_client_records_updated_at", "updated_at"),)

    def to_record(self) -> Dict[str, Any]:
        """Decode the stored payload.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        record = json.loads(self.payload)
        if not isinstance(record, dict):
            raise ValueError(f"payload for {self.phone} is not an object")
        return record

    @classmethod
    def from_record(
        cls, phone: str, record: Dict[str, Any], written_at: Optional[datetime] = None
    ) -> "ClientRecordModel":
        return cls(
            phone=phone,
            payload=json.dumps(record, ensure_ascii=False),
            updated_at=format_timestamp(written_at or utc_now()),
        )


def create_schema(engine: Engine) -> None:
    """Create the client_records table if it does not exist (idempotent)."""
    try:
        Base.metadata.create_all(engine, checkfirst=True)
        logger.debug(
            "Client store schema ready",
            extra={"event": "store.schema.ready", "tables": list(Base.metadata.tables)},
        )
    except Exception as e:
        logger.error(f"Failed to create client store schema: {e}", exc_info=True)
        raise
