"""Custom SQLAlchemy types shared by the portfolio models"""
from sqlalchemy import TypeDecorator, String
import uuid


def generate_uuid():
    """New record/user identifier as a string"""
    return str(uuid.uuid4())


def normalize_guid(value) -> str:
    """Canonical lowercase form for UUIDs; other strings pass through unchanged"""
    if isinstance(value, uuid.UUID):
        return str(value)
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        # Path parameters are not validated; a non-UUID id simply matches nothing
        return str(value)


class GUID(TypeDecorator):
    """Identifier column stored as VARCHAR(36) on every backend"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return normalize_guid(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value
