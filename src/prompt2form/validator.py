"""Structural validation and normalization of candidate form schemas.

The model is told to emit a bare JSON array of fields. Output is checked field
by field, repaired where the fix is unambiguous (unknown type, stray options,
duplicate labels) and rejected otherwise.
"""

import json
from typing import Any

import structlog

from prompt2form.errors import SchemaValidationError
from prompt2form.schemas.form import FIELD_TYPES, FieldType, FormField

logger = structlog.get_logger(__name__)


def parse_schema_response(text: str) -> Any:
    """
    Parse raw model output into a candidate schema.

    Strips surrounding whitespace and a Markdown code fence if present.

    Args:
        text: Raw LLM response text

    Returns:
        The decoded JSON value (not yet validated).

    Raises:
        SchemaValidationError: If the text is empty or not valid JSON.
    """
    if not text or not text.strip():
        raise SchemaValidationError("Empty response")

    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        # Remove first line (```json or ```) and last line (```)
        if len(lines) > 2:
            cleaned = "\n".join(lines[1:-1]).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SchemaValidationError(f"Response is not valid JSON: {e.msg}") from e


def _is_known_type(value: Any) -> bool:
    return isinstance(value, str) and value in FIELD_TYPES


def _check_field(index: int, field: Any) -> dict[str, Any]:
    """Reject structurally broken fields; return a shallow copy otherwise."""
    if not isinstance(field, dict):
        raise SchemaValidationError("field must be an object", index)

    label = field.get("label")
    if not isinstance(label, str) or not label:
        raise SchemaValidationError("missing label, type, or required", index)
    if not field.get("type"):
        raise SchemaValidationError("missing label, type, or required", index)
    if not isinstance(field.get("required"), bool):
        raise SchemaValidationError("missing label, type, or required", index)

    if field["type"] == FieldType.SELECT.value:
        options = field.get("options")
        if not isinstance(options, list) or not options:
            raise SchemaValidationError("select field requires non-empty options array", index)
        if not all(isinstance(o, str) for o in options):
            raise SchemaValidationError("select options must be strings", index)

    return dict(field)


def _dedupe_labels(fields: list[dict[str, Any]]) -> None:
    """Rename repeated labels in place: later repeats get ``_<index>`` appended."""
    all_labels = {f["label"] for f in fields}
    seen: set[str] = set()
    renamed = 0

    for index, field in enumerate(fields):
        label = field["label"]
        if label not in seen:
            seen.add(label)
            continue

        candidate = f"{label}_{index}"
        # A rename must not collide with a label used elsewhere in the schema
        while candidate in seen or candidate in all_labels:
            candidate = f"{candidate}_{index}"
        field["label"] = candidate
        seen.add(candidate)
        renamed += 1

    if renamed:
        logger.info("Duplicate labels renamed", count=renamed)


def validate_schema(candidate: Any) -> list[FormField]:
    """
    Validate and normalize a candidate schema.

    Rules, per field in order:
    1. label, type and a boolean required are mandatory
    2. select fields need a non-empty options list
    3. unknown types are coerced to "text"
    4. options are dropped from non-select fields
    Afterwards repeated labels are made unique.

    Args:
        candidate: Decoded JSON value, expected to be a list of field objects

    Returns:
        Normalized list of FormField.

    Raises:
        SchemaValidationError: Identifying the offending field index and reason.
    """
    if not isinstance(candidate, list):
        raise SchemaValidationError("Schema must be an array")

    fields: list[dict[str, Any]] = []
    for index, raw in enumerate(candidate):
        field = _check_field(index, raw)

        if not _is_known_type(field["type"]):
            logger.info("Field type corrected to text", index=index, original_type=field["type"])
            field["type"] = FieldType.TEXT.value

        if field["type"] != FieldType.SELECT.value:
            field.pop("options", None)

        fields.append(field)

    _dedupe_labels(fields)

    return [
        FormField(
            label=f["label"],
            type=FieldType(f["type"]),
            required=f["required"],
            options=list(f["options"]) if "options" in f else None,
        )
        for f in fields
    ]


def validate_response(text: str) -> list[FormField]:
    """Parse and validate raw model output in one step."""
    return validate_schema(parse_schema_response(text))


def validate_for_save(candidate: Any) -> list[FormField]:
    """
    Strict validation for persisting a form.

    Same structural rules as ``validate_schema`` but nothing is repaired:
    unknown types and duplicate labels are rejected.
    """
    if not isinstance(candidate, list):
        raise SchemaValidationError("Schema must be an array")

    checked = []
    for index, raw in enumerate(candidate):
        if isinstance(raw, FormField):
            raw = raw.to_dict()
        field = _check_field(index, raw)
        if not _is_known_type(field["type"]):
            raise SchemaValidationError("Invalid field type", index)
        checked.append(field)

    labels = [f["label"] for f in checked]
    duplicates = sorted({label for i, label in enumerate(labels) if labels.index(label) != i})
    if duplicates:
        raise SchemaValidationError(f"Duplicate labels found: {', '.join(duplicates)}")

    return validate_schema(checked)
