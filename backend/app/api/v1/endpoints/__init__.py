# API endpoints
from . import records, users

__all__ = ["records", "users"]
