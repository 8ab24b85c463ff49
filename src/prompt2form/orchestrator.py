"""Schema generation orchestration: session handling, LLM calls, validation and retries."""

from enum import Enum
from threading import Event
from typing import Callable, Optional
from uuid import uuid4

import structlog

from prompt2form.config import Settings
from prompt2form.errors import (
    InvalidInput,
    LLMConfigurationError,
    LLMTransportError,
    ModelDecommissioned,
    ModelUnavailable,
    SchemaValidationError,
    ServiceUnavailable,
    SessionNotFound,
    ValidationExceeded,
)
from prompt2form.prompts import AMEND_PROMPT_TEMPLATE, CORRECTION_PROMPT, SYSTEM_PROMPT
from prompt2form.schemas.form import FormField, fields_to_json
from prompt2form.schemas.session import ConversationTurn, visible_turns
from prompt2form.stores.base import BaseSessionStore
from prompt2form.utils.llm_client import LLMClient
from prompt2form.utils.retry import RateLimitBackoff, ValidationRetryPolicy
from prompt2form.validator import validate_response

logger = structlog.get_logger(__name__)


class GenerationState(str, Enum):
    """Steps of one generation request, reported in logs."""

    INIT = "init"
    AWAIT_LLM = "await_llm"
    VALIDATING = "validating"
    CORRECTING = "correcting"
    DONE = "done"
    FAILED = "failed"


class SchemaOrchestrator:
    """
    Coordinates one generation request end to end.

    Transcripts live in two tiers:
    - durable: what the session store holds. The seed system turn and the
      user's prompt are written before the LLM is called; the assistant turn
      only once a schema validates.
    - scratch: a per-request copy that also collects invalid outputs and
      corrective instructions. It is discarded when the request ends.

    Requests on the same session are not serialized. Two concurrent calls may
    interleave their appends and the later write decides the transcript order.
    """

    def __init__(
        self,
        store: BaseSessionStore,
        llm: LLMClient,
        max_prompt_chars: int = 500,
        validation_policy: Optional[ValidationRetryPolicy] = None,
        backoff: Optional[RateLimitBackoff] = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.store = store
        self.llm = llm
        self.max_prompt_chars = max_prompt_chars
        self.validation_policy = validation_policy or ValidationRetryPolicy()
        self.backoff = backoff or RateLimitBackoff()
        self.id_factory = id_factory

    @classmethod
    def from_settings(
        cls, store: BaseSessionStore, llm: LLMClient, settings: Settings
    ) -> "SchemaOrchestrator":
        return cls(
            store=store,
            llm=llm,
            max_prompt_chars=settings.max_prompt_chars,
            validation_policy=ValidationRetryPolicy(max_attempts=settings.max_validation_attempts),
            backoff=RateLimitBackoff(
                max_attempts=settings.max_rate_limit_attempts,
                base_delay=settings.rate_limit_base_delay,
            ),
        )

    # --- Public operations ---

    def generate(
        self,
        prompt: str,
        session_id: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> tuple[str, list[FormField]]:
        """
        Generate a schema from a prompt, continuing a session when one exists.

        An unknown or expired ``session_id`` starts a fresh session under the
        same identifier.

        Returns:
            (session_id, validated schema)
        """
        self._check_prompt(prompt)

        if session_id:
            durable = self.store.read(session_id)
        else:
            session_id = self.id_factory()
            durable = []

        log = logger.bind(session_id=session_id)
        if not durable:
            log.info("Starting new session", state=GenerationState.INIT.value)
            self._persist(session_id, durable, ConversationTurn(role="system", content=SYSTEM_PROMPT))

        self._persist(session_id, durable, ConversationTurn(role="user", content=prompt))
        fields = self._run(session_id, durable, cancel)
        return session_id, fields

    def amend_from_fields(
        self,
        fields: list[FormField],
        prompt: str,
        cancel: Optional[Event] = None,
    ) -> tuple[str, list[FormField]]:
        """
        Start a new session seeded with an existing schema and refine it.

        Returns:
            (new session_id, validated schema)
        """
        self._check_prompt(prompt)

        session_id = self.id_factory()
        durable: list[ConversationTurn] = []
        logger.info(
            "Starting amend session",
            session_id=session_id,
            existing_fields=len(fields),
            state=GenerationState.INIT.value,
        )

        self._persist(session_id, durable, ConversationTurn(role="system", content=SYSTEM_PROMPT))
        self._persist(
            session_id,
            durable,
            ConversationTurn(
                role="system",
                content=AMEND_PROMPT_TEMPLATE.format(schema_json=fields_to_json(fields)),
            ),
        )
        self._persist(session_id, durable, ConversationTurn(role="user", content=prompt))

        new_fields = self._run(session_id, durable, cancel)
        return session_id, new_fields

    def refine(
        self,
        session_id: str,
        prompt: str,
        cancel: Optional[Event] = None,
    ) -> tuple[str, list[FormField], list[ConversationTurn]]:
        """
        Apply a refinement instruction to an existing session.

        Raises:
            SessionNotFound: If the session is missing or expired. No LLM call is made.

        Returns:
            (session_id, validated schema, visible turns of the updated transcript)
        """
        self._check_prompt(prompt)

        durable = self.store.read(session_id) if session_id else []
        if not durable:
            logger.warning("Refine on missing session", session_id=session_id)
            raise SessionNotFound(session_id)

        self._persist(session_id, durable, ConversationTurn(role="user", content=prompt))
        fields = self._run(session_id, durable, cancel)
        return session_id, fields, visible_turns(durable)

    def current_schema(self, session_id: str) -> list[FormField]:
        """Latest validated schema of a session (its last assistant turn)."""
        transcript = self.store.read(session_id) if session_id else []
        for turn in reversed(transcript):
            if turn.role == "assistant":
                return validate_response(turn.content)
        raise SessionNotFound(session_id)

    # --- Internals ---

    def _check_prompt(self, prompt: str) -> None:
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidInput("Prompt cannot be empty")
        if len(prompt) > self.max_prompt_chars:
            raise InvalidInput(f"Prompt exceeds {self.max_prompt_chars} characters")

    def _persist(
        self, session_id: str, durable: list[ConversationTurn], turn: ConversationTurn
    ) -> None:
        self.store.append(session_id, turn)
        durable.append(turn)

    def _complete(
        self, scratch: list[ConversationTurn], strict: bool, cancel: Optional[Event]
    ) -> str:
        """One completion, absorbing rate limits through the backoff budget."""
        try:
            return self.backoff.call(
                lambda: self.llm.complete(list(scratch), strict=strict),
                cancel=cancel,
            )
        except ModelDecommissioned as e:
            model = getattr(self.llm, "model", "configured model")
            raise ModelUnavailable(
                f"Model decommissioned: {model}. Reconfigure GENERATION_MODEL to a supported model."
            ) from e
        except (LLMTransportError, LLMConfigurationError) as e:
            raise ServiceUnavailable("AI service unavailable") from e

    def _run(
        self,
        session_id: str,
        durable: list[ConversationTurn],
        cancel: Optional[Event],
    ) -> list[FormField]:
        """Call, validate and correct until a schema validates or the budget runs out."""
        log = logger.bind(session_id=session_id)
        scratch = list(durable)
        last_error: Optional[SchemaValidationError] = None
        last_raw = ""
        max_attempts = self.validation_policy.max_attempts

        for attempt in self.validation_policy.attempts():
            log.debug("Calling LLM", attempt=attempt, state=GenerationState.AWAIT_LLM.value)
            try:
                raw = self._complete(scratch, strict=attempt > 1, cancel=cancel)
            except (ModelUnavailable, ServiceUnavailable) as e:
                log.error(
                    "Generation failed",
                    attempt=attempt,
                    state=GenerationState.FAILED.value,
                    error=str(e),
                )
                raise

            log.debug("Validating output", attempt=attempt, state=GenerationState.VALIDATING.value)
            try:
                fields = validate_response(raw)
            except SchemaValidationError as e:
                last_error, last_raw = e, raw
                log.warning("Invalid schema from AI", attempt=attempt, reason=str(e))
                if attempt < max_attempts:
                    log.info("Retrying with stricter prompt", state=GenerationState.CORRECTING.value)
                    scratch.append(ConversationTurn(role="assistant", content=raw))
                    scratch.append(
                        ConversationTurn(role="system", content=CORRECTION_PROMPT.format(reason=e))
                    )
                continue

            self._persist(
                session_id, durable, ConversationTurn(role="assistant", content=fields_to_json(fields))
            )
            log.info(
                "Schema generated",
                attempt=attempt,
                fields=len(fields),
                state=GenerationState.DONE.value,
            )
            return fields

        log.error(
            "Validation attempts exhausted",
            attempts=max_attempts,
            last_error=str(last_error),
            last_raw_output=last_raw,
            state=GenerationState.FAILED.value,
        )
        raise ValidationExceeded(max_attempts, last_error)
