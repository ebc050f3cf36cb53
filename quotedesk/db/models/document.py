from sqlalchemy import JSON, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quotedesk.db.base import Base, TimestampMixin


class DocumentRecord(Base, TimestampMixin):
    """One JSON document in a named collection.

    Sub-collections are addressed by path, e.g. ``contracts/<id>/options``.
    ``version`` starts at 1 and increases on every write so callers can make
    a write conditional on what they last read.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(255), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
