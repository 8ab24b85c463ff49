"""Schemas for form fields and saved form records."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    """Recognized form field types."""

    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    DATE = "date"
    SELECT = "select"
    CHECKBOX = "checkbox"
    FILE = "file"


FIELD_TYPES = frozenset(t.value for t in FieldType)


class FormField(BaseModel):
    """A single element of a form schema."""

    label: str
    type: FieldType
    required: bool
    options: Optional[list[str]] = None  # select only

    def to_dict(self) -> dict[str, Any]:
        """Plain dict with ``options`` omitted for non-select fields."""
        return self.model_dump(mode="json", exclude_none=True)


def dump_fields(fields: list[FormField]) -> list[dict[str, Any]]:
    return [f.to_dict() for f in fields]


def fields_to_json(fields: list[FormField]) -> str:
    """Compact JSON array, the form stored as an assistant turn."""
    return json.dumps(dump_fields(fields), ensure_ascii=False, separators=(",", ":"))


class Form(BaseModel):
    """A saved form owned by a user."""

    form_id: str = Field(default_factory=lambda: uuid4().hex)
    owner: str
    title: str
    description: Optional[str] = None
    fields: list[FormField] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
