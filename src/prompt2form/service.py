"""Caller-facing operations returning tagged results."""

from threading import Event
from typing import Any, Optional

import structlog

from prompt2form.config import Settings
from prompt2form.errors import FormNotFound, InvalidInput, Prompt2FormError
from prompt2form.orchestrator import SchemaOrchestrator
from prompt2form.schemas.form import Form
from prompt2form.schemas.result import GenerationResult
from prompt2form.stores.base import BaseSessionStore
from prompt2form.stores.form_store import JsonFormStore
from prompt2form.stores.memory_store import InMemorySessionStore
from prompt2form.stores.redis_store import RedisSessionStore
from prompt2form.utils.llm_client import LLMClient
from prompt2form.utils.logging_setup import request_context
from prompt2form.validator import validate_for_save

logger = structlog.get_logger(__name__)


def _failure(error: Prompt2FormError, **extra: Any) -> GenerationResult:
    return GenerationResult(
        status="failed",
        error_kind=error.kind,
        error=str(error),
        **extra,
    )


class FormAIService:
    """
    Form schema generation service.

    Owns the session store, the LLM client and the form store; the host process
    opens and closes them through ``open()``/``close()`` or a ``with`` block.
    Public methods never raise domain errors: every outcome is a GenerationResult.
    """

    def __init__(
        self,
        session_store: BaseSessionStore,
        llm: LLMClient,
        form_store: JsonFormStore,
        orchestrator: Optional[SchemaOrchestrator] = None,
    ):
        self.session_store = session_store
        self.llm = llm
        self.form_store = form_store
        self.orchestrator = orchestrator or SchemaOrchestrator(session_store, llm)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FormAIService":
        """Build production clients from configuration."""
        if settings.session_backend == "memory":
            store: BaseSessionStore = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
        else:
            store = RedisSessionStore(
                url=settings.redis_url,
                ttl_seconds=settings.session_ttl_seconds,
                key_prefix=settings.session_key_prefix,
            )
        llm = LLMClient.from_settings(settings)
        return cls(
            session_store=store,
            llm=llm,
            form_store=JsonFormStore(settings.forms_dir),
            orchestrator=SchemaOrchestrator.from_settings(store, llm, settings),
        )

    def open(self) -> None:
        self.session_store.open()
        try:
            self.llm.open()
        except Exception:
            self.session_store.close()
            raise
        logger.info("Service opened", store=self.session_store.store_name)

    def close(self) -> None:
        self.llm.close()
        self.session_store.close()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- Operations ---

    def generate_schema(
        self,
        prompt: str,
        session_id: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> GenerationResult:
        """Generate a schema, starting or continuing a session."""
        with request_context(operation="generate_schema"):
            try:
                sid, fields = self.orchestrator.generate(prompt, session_id, cancel=cancel)
            except Prompt2FormError as e:
                logger.warning("generate_schema failed", kind=e.kind.value, error=str(e))
                return _failure(e, session_id=session_id)
        return GenerationResult(status="success", session_id=sid, fields=fields)

    def amend_from_form(
        self,
        form_id: str,
        prompt: str,
        owner: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> GenerationResult:
        """Open a new session that refines a saved form's fields."""
        with request_context(operation="amend_from_form", form_id=form_id):
            try:
                form = self.form_store.get(form_id, owner=owner)
                if form is None:
                    raise FormNotFound(form_id)
                sid, fields = self.orchestrator.amend_from_fields(form.fields, prompt, cancel=cancel)
            except Prompt2FormError as e:
                logger.warning("amend_from_form failed", kind=e.kind.value, error=str(e))
                return _failure(e)
        return GenerationResult(status="success", session_id=sid, fields=fields)

    def refine_session(
        self,
        session_id: str,
        refinement_prompt: str,
        cancel: Optional[Event] = None,
    ) -> GenerationResult:
        """Refine an unsaved schema; the result includes the visible transcript."""
        with request_context(operation="refine_session"):
            try:
                sid, fields, transcript = self.orchestrator.refine(
                    session_id, refinement_prompt, cancel=cancel
                )
            except Prompt2FormError as e:
                logger.warning("refine_session failed", kind=e.kind.value, error=str(e))
                return _failure(e, session_id=session_id)
        return GenerationResult(
            status="success", session_id=sid, fields=fields, transcript=transcript
        )

    def get_session_schema(self, session_id: str) -> GenerationResult:
        """Latest schema of an unsaved session."""
        try:
            fields = self.orchestrator.current_schema(session_id)
        except Prompt2FormError as e:
            return _failure(e, session_id=session_id)
        return GenerationResult(status="success", session_id=session_id, fields=fields)

    def save_form(
        self,
        title: str,
        fields: list[Any],
        owner: str,
        description: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Persist a form and consume its generation session.

        Fields are validated strictly (no coercion, no renaming) before saving.
        """
        try:
            if not isinstance(title, str) or not title.strip():
                raise InvalidInput("Title must be a non-empty string")
            if description is not None and not isinstance(description, str):
                raise InvalidInput("Description must be a string")
            if not owner:
                raise InvalidInput("Owner is required")

            try:
                checked = validate_for_save(fields)
            except Prompt2FormError as e:
                raise InvalidInput(str(e)) from e

            form = self.form_store.save(
                Form(owner=owner, title=title, description=description, fields=checked)
            )
            if session_id:
                self.session_store.delete(session_id)
        except Prompt2FormError as e:
            logger.warning("save_form failed", kind=e.kind.value, error=str(e))
            return _failure(e, session_id=session_id)

        return GenerationResult(
            status="success", session_id=session_id, fields=form.fields, form_id=form.form_id
        )

    def list_forms(self, owner: str) -> list[Form]:
        """Saved forms of an owner; raises StoreUnavailable on unreadable records."""
        return self.form_store.list_for_owner(owner)
