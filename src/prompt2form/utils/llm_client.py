"""LLM client wrapper for OpenAI-compatible chat completion APIs (Groq by default)."""

from typing import Optional

import httpx
import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    BadRequestError,
    NotFoundError,
    OpenAI,
    OpenAIError,
    RateLimitError,
)

from prompt2form.config import Settings
from prompt2form.errors import (
    LLMConfigurationError,
    LLMTransportError,
    ModelDecommissioned,
    RateLimited,
)
from prompt2form.prompts import SYSTEM_PROMPT
from prompt2form.schemas.session import ConversationTurn

logger = structlog.get_logger(__name__)

_DECOMMISSIONED_CODES = {"model_decommissioned", "model_not_found"}


def _is_decommissioned(error: APIStatusError) -> bool:
    if isinstance(error, NotFoundError):
        return True
    code = getattr(error, "code", None)
    if code in _DECOMMISSIONED_CODES:
        return True
    return isinstance(error, BadRequestError) and "decommissioned" in str(error).lower()


class LLMClient:
    """
    Sends a transcript to the completion API and returns the raw text.

    The client never retries: SDK-level retries are disabled and every
    rejection is raised as one of RateLimited, ModelDecommissioned or
    LLMTransportError for the caller to handle.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.2,
        strict_temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout: float = 60.0,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.strict_temperature = strict_temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.generation_model,
            temperature=settings.generation_temperature,
            strict_temperature=settings.strict_temperature,
            max_tokens=settings.max_output_tokens,
            timeout=settings.llm_timeout_seconds,
        )

    def open(self) -> None:
        if self._client is not None:
            return
        if not self.api_key:
            logger.warning("LLM API key not configured")
            raise LLMConfigurationError("LLM API key not configured")
        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            max_retries=0,
            http_client=httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0)),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def complete(self, transcript: list[ConversationTurn], strict: bool = False) -> str:
        """
        Call the LLM with a full message history (multi-turn).

        Args:
            transcript: Ordered conversation turns
            strict: Use the strict (lower) temperature for corrective retries

        Returns:
            Raw completion text (possibly empty).

        Raises:
            RateLimited: HTTP 429 from the API
            ModelDecommissioned: The configured model is gone
            LLMTransportError: Any other transport or API failure
        """
        if self._client is None:
            self.open()

        messages = [{"role": t.role, "content": t.content} for t in transcript]
        if not messages or messages[0]["role"] != "system":
            messages.insert(0, {"role": "system", "content": SYSTEM_PROMPT})

        temperature = self.strict_temperature if strict else self.temperature

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
        except RateLimitError as e:
            logger.warning("LLM rate limited", model=self.model)
            raise RateLimited(str(e)) from e
        except APIStatusError as e:
            if _is_decommissioned(e):
                logger.error("LLM model unavailable", model=self.model, error=str(e))
                raise ModelDecommissioned(str(e)) from e
            logger.error("LLM chat call failed", model=self.model, status=e.status_code, error=str(e))
            raise LLMTransportError(str(e)) from e
        except (APIConnectionError, OpenAIError) as e:
            logger.error("LLM chat call failed", model=self.model, error=str(e))
            raise LLMTransportError(str(e)) from e

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()

        logger.debug(
            "LLM chat call successful",
            model=self.model,
            turns=len(messages),
            temperature=temperature,
            response_length=len(content),
        )
        return content
