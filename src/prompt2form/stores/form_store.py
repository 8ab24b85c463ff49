"""JSON-file record store for saved forms."""

from pathlib import Path

import structlog
from pydantic import ValidationError

from prompt2form.errors import StoreUnavailable
from prompt2form.schemas.form import Form

logger = structlog.get_logger(__name__)


class JsonFormStore:
    """
    One pretty-printed JSON file per form under ``forms_dir``.

    Records are written whole and read whole; ``owner`` is checked on read so a
    form belonging to someone else looks the same as a missing one. Filesystem
    failures and unreadable records raise StoreUnavailable.
    """

    def __init__(self, forms_dir: Path):
        self.forms_dir = Path(forms_dir)

    def _path(self, form_id: str) -> Path:
        return self.forms_dir / f"{form_id}.json"

    def _load(self, path: Path) -> Form:
        try:
            return Form.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.error("Form read failed", path=str(path), error=str(e))
            raise StoreUnavailable(f"Form store unavailable: {e}") from e
        except ValidationError as e:
            logger.error("Corrupt form record", path=str(path), errors=e.error_count())
            raise StoreUnavailable(f"Corrupt form record: {path.name}") from e

    def save(self, form: Form) -> Form:
        """Write a form record, creating the directory on first use."""
        path = self._path(form.form_id)
        try:
            self.forms_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(form.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Form write failed", form_id=form.form_id, error=str(e))
            raise StoreUnavailable(f"Form store unavailable: {e}") from e
        logger.info("Saved form", form_id=form.form_id, owner=form.owner, fields=len(form.fields))
        return form

    def get(self, form_id: str, owner: str | None = None) -> Form | None:
        """
        Load a form.

        Args:
            form_id: Form identifier
            owner: If given, only return the form when it belongs to this owner

        Returns:
            The Form, or None if missing or owned by someone else.
        """
        # Identifiers never contain path separators
        if not form_id or "/" in form_id or "\\" in form_id:
            return None

        path = self._path(form_id)
        if not path.is_file():
            return None

        form = self._load(path)
        if owner is not None and form.owner != owner:
            return None
        return form

    def list_for_owner(self, owner: str) -> list[Form]:
        """All forms of one owner, newest first."""
        if not self.forms_dir.is_dir():
            return []

        forms = [self._load(path) for path in sorted(self.forms_dir.glob("*.json"))]
        forms = [form for form in forms if form.owner == owner]
        return sorted(forms, key=lambda f: f.created_at, reverse=True)
