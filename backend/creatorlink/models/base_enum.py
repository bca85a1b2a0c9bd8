# backend/creatorlink/models/base_enum.py
"""
Safe enum helpers for SQLAlchemy.

SQLAlchemy's SAEnum persists member NAMES by default ('OFFER_SENT'), while
the wire format and any raw SQL use VALUES ('offer_sent'). Every enum
column in this package goes through create_safe_enum so both agree.

Usage:
    from creatorlink.models.base_enum import create_safe_enum

    class Conversation(Base):
        connection_status = Column(
            create_safe_enum(ConnectionStatus, "connection_status_enum"),
            nullable=False,
            default=ConnectionStatus.ACTIVE,
        )
"""

from enum import Enum
from typing import Sequence, Type

from sqlalchemy import Enum as SAEnum


def create_safe_enum(
    enum_class: Type[Enum],
    name: str,
    *,
    native_enum: bool = False,
    validate_strings: bool = True,
) -> SAEnum:
    """
    Create a SQLAlchemy Enum that stores enum values (not names).

    native_enum defaults to False so the same schema runs on SQLite and
    PostgreSQL (a VARCHAR with a CHECK-free length instead of a PG type).
    """
    return SAEnum(
        enum_class,
        name=name,
        native_enum=native_enum,
        validate_strings=validate_strings,
        values_callable=_get_enum_values,
        length=32,
    )


def _get_enum_values(enum_class: Type[Enum]) -> Sequence[str]:
    return [member.value for member in enum_class]
