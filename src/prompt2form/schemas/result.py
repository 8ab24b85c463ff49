"""GenerationResult schema - the output of every public operation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from prompt2form.errors import ErrorKind
from prompt2form.schemas.form import FormField
from prompt2form.schemas.session import ConversationTurn


class GenerationResult(BaseModel):
    """
    Tagged success/failure result.

    Fixed parts: status and error information.
    Operation-specific parts are left empty when they do not apply
    (``transcript`` for refine, ``form_id`` for save).
    """

    status: Literal["success", "failed"]
    session_id: Optional[str] = None
    fields: list[FormField] = Field(default_factory=list)
    transcript: list[ConversationTurn] = Field(default_factory=list)
    form_id: Optional[str] = None

    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    completed_at: datetime = Field(default_factory=datetime.now)

    @property
    def ok(self) -> bool:
        return self.status == "success"
