# Re-export all models for convenient imports
from app.models.user import User
from app.models.record import PortfolioRecord, RecordAttachment

__all__ = [
    "User",
    "PortfolioRecord",
    "RecordAttachment",
]
