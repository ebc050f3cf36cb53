from quotedesk.db.models.document import DocumentRecord

__all__ = [
    "DocumentRecord",
]
