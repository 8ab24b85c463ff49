"""Schemas for form generation."""

from prompt2form.schemas.form import FIELD_TYPES, FieldType, Form, FormField
from prompt2form.schemas.result import GenerationResult
from prompt2form.schemas.session import ConversationTurn, Role

__all__ = [
    "FIELD_TYPES",
    "FieldType",
    "Form",
    "FormField",
    "GenerationResult",
    "ConversationTurn",
    "Role",
]
