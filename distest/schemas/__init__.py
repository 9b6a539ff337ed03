from .session import (
    CurrentItem,
    ItemSummary,
    SessionStatusResponse,
    SummaryResponse,
)

__all__ = [
    "CurrentItem",
    "ItemSummary",
    "SessionStatusResponse",
    "SummaryResponse",
]
