"""Relational mirror of the remote drive."""

from __future__ import annotations

from .database import MUTABLE_FIELDS, DocumentStore, mutable_fields_from_item, record_from_item
from .models import Base, DocumentRecord

__all__ = [
    "Base",
    "DocumentRecord",
    "DocumentStore",
    "MUTABLE_FIELDS",
    "record_from_item",
    "mutable_fields_from_item",
]
