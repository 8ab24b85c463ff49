"""Tests for the generation, amend and refine flows."""

import json
import threading

import pytest

from conftest import CONTACT_FORM
from prompt2form.errors import (
    InvalidInput,
    LLMTransportError,
    ModelDecommissioned,
    ModelUnavailable,
    RateLimited,
    ServiceUnavailable,
    SessionNotFound,
    ValidationExceeded,
)
from prompt2form.prompts import SYSTEM_PROMPT
from prompt2form.schemas.form import FieldType, FormField, fields_to_json
from prompt2form.schemas.session import ConversationTurn

SELECT_WITHOUT_OPTIONS = '[{"label": "Category", "type": "select", "required": true}]'
DUPLICATE_NAMES = (
    '[{"label": "Name", "type": "text", "required": true},'
    ' {"label": "Name", "type": "text", "required": false}]'
)


def _roles(transcript):
    return [t.role for t in transcript]


class TestGenerate:
    def test_new_session_contact_form(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([CONTACT_FORM])

        session_id, fields = orchestrator.generate("contact form with name and email")

        assert session_id == "session-1"
        assert fields == [
            FormField(label="Name", type="text", required=True),
            FormField(label="Email", type="email", required=True),
        ]
        transcript = store.read(session_id)
        assert _roles(transcript) == ["system", "user", "assistant"]
        assert transcript[0].content == SYSTEM_PROMPT
        assert transcript[1].content == "contact form with name and email"
        assert json.loads(transcript[2].content) == [
            {"label": "Name", "type": "text", "required": True},
            {"label": "Email", "type": "email", "required": True},
        ]
        assert len(llm.calls) == 1
        assert llm.calls[0]["strict"] is False

    def test_prompt_too_long_makes_no_calls(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([CONTACT_FORM])

        with pytest.raises(InvalidInput, match="500"):
            orchestrator.generate("x" * 501)

        assert store.calls == 0
        assert llm.calls == []

    def test_prompt_at_limit_is_accepted(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([CONTACT_FORM])
        _, fields = orchestrator.generate("x" * 500)
        assert len(fields) == 2

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_empty_prompt_rejected(self, make_orchestrator, store, prompt):
        orchestrator, llm = make_orchestrator([])
        with pytest.raises(InvalidInput):
            orchestrator.generate(prompt)
        assert store.calls == 0
        assert llm.calls == []

    def test_continues_existing_session(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([CONTACT_FORM, CONTACT_FORM])
        session_id, _ = orchestrator.generate("contact form")

        same_id, _ = orchestrator.generate("add a phone field", session_id)

        assert same_id == session_id
        assert _roles(llm.calls[1]["transcript"]) == ["system", "user", "assistant", "user"]
        assert _roles(store.read(session_id)) == ["system", "user", "assistant", "user", "assistant"]

    def test_unknown_session_id_starts_fresh_under_same_id(self, make_orchestrator, store):
        orchestrator, _ = make_orchestrator([CONTACT_FORM])

        session_id, _ = orchestrator.generate("contact form", "expired-id")

        assert session_id == "expired-id"
        assert _roles(store.read("expired-id")) == ["system", "user", "assistant"]

    def test_duplicate_labels_renamed(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([DUPLICATE_NAMES])
        _, fields = orchestrator.generate("two names")
        assert [f.label for f in fields] == ["Name", "Name_1"]

    def test_invalid_output_retried_with_correction(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator(["Sure! Here is your form.", CONTACT_FORM])

        session_id, fields = orchestrator.generate("contact form")

        assert len(fields) == 2
        retry = llm.calls[1]
        assert retry["strict"] is True
        assert _roles(retry["transcript"]) == ["system", "user", "assistant", "system"]
        assert retry["transcript"][2].content == "Sure! Here is your form."
        assert "invalid" in retry["transcript"][3].content
        # Invalid attempts never reach the durable transcript
        assert _roles(store.read(session_id)) == ["system", "user", "assistant"]

    def test_validation_exceeded_after_three_attempts(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([SELECT_WITHOUT_OPTIONS] * 3)

        with pytest.raises(ValidationExceeded) as exc:
            orchestrator.generate("category picker")

        assert exc.value.attempts == 3
        assert len(llm.calls) == 3
        assert [c["strict"] for c in llm.calls] == [False, True, True]
        transcript = store.read("session-1")
        assert _roles(transcript) == ["system", "user"]
        assert transcript[1].content == "category picker"

    def test_rate_limits_exhaust_into_service_unavailable(self, make_orchestrator, store, sleeps):
        orchestrator, llm = make_orchestrator([RateLimited("429")] * 3)

        with pytest.raises(ServiceUnavailable):
            orchestrator.generate("contact form")

        assert len(llm.calls) == 3
        assert sleeps == [2.0, 4.0]
        assert sleeps == sorted(sleeps)
        assert _roles(store.read("session-1")) == ["system", "user"]

    def test_rate_limits_do_not_consume_validation_budget(self, make_orchestrator, sleeps):
        orchestrator, llm = make_orchestrator(
            [
                RateLimited("429"),
                RateLimited("429"),
                "not json",
                RateLimited("429"),
                SELECT_WITHOUT_OPTIONS,
                CONTACT_FORM,
            ]
        )

        _, fields = orchestrator.generate("contact form")

        assert len(fields) == 2
        assert len(llm.calls) == 6
        assert sleeps == [2.0, 4.0, 2.0]

    def test_model_unavailable_is_not_retried(self, make_orchestrator, sleeps):
        orchestrator, llm = make_orchestrator([ModelDecommissioned("gone"), CONTACT_FORM])

        with pytest.raises(ModelUnavailable, match="Reconfigure"):
            orchestrator.generate("contact form")

        assert len(llm.calls) == 1
        assert sleeps == []

    def test_transport_error_is_service_unavailable(self, make_orchestrator):
        orchestrator, llm = make_orchestrator([LLMTransportError("reset"), CONTACT_FORM])

        with pytest.raises(ServiceUnavailable, match="AI service unavailable"):
            orchestrator.generate("contact form")
        assert len(llm.calls) == 1

    def test_cancelled_request(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([CONTACT_FORM])
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ServiceUnavailable, match="cancelled"):
            orchestrator.generate("contact form", cancel=cancel)

        assert llm.calls == []
        # The user turn is kept for continuity
        assert _roles(store.read("session-1")) == ["system", "user"]


class TestAmendFromFields:
    def test_seeds_new_session_with_existing_schema(self, make_orchestrator, store):
        existing = [
            FormField(label="Name", type="text", required=True),
            FormField(label="Plan", type="select", required=True, options=["Free", "Pro"]),
        ]
        orchestrator, llm = make_orchestrator([CONTACT_FORM])

        session_id, fields = orchestrator.amend_from_fields(existing, "make plan optional")

        assert session_id == "session-1"
        assert len(fields) == 2
        sent = llm.calls[0]["transcript"]
        assert _roles(sent) == ["system", "system", "user"]
        assert fields_to_json(existing) in sent[1].content
        assert sent[2].content == "make plan optional"
        assert _roles(store.read(session_id)) == ["system", "system", "user", "assistant"]

    def test_prompt_validated_first(self, make_orchestrator, store):
        orchestrator, _ = make_orchestrator([])
        with pytest.raises(InvalidInput):
            orchestrator.amend_from_fields([], "")
        assert store.calls == 0


class TestRefine:
    def test_unknown_session_fails_without_llm_call(self, make_orchestrator, store):
        orchestrator, llm = make_orchestrator([CONTACT_FORM])

        with pytest.raises(SessionNotFound):
            orchestrator.refine("missing", "add a phone field")

        assert llm.calls == []
        assert store.appends == 0

    def test_refine_returns_visible_transcript(self, make_orchestrator):
        with_phone = (
            '[{"label": "Name", "type": "text", "required": true},'
            ' {"label": "Phone", "type": "number", "required": false}]'
        )
        orchestrator, _ = make_orchestrator([CONTACT_FORM, with_phone])
        session_id, _ = orchestrator.generate("contact form")

        same_id, fields, transcript = orchestrator.refine(session_id, "replace email with phone")

        assert same_id == session_id
        assert [f.label for f in fields] == ["Name", "Phone"]
        assert fields[1].type == FieldType.NUMBER
        assert _roles(transcript) == ["user", "assistant", "user", "assistant"]
        assert transcript[2] == ConversationTurn(role="user", content="replace email with phone")

    def test_refine_validation_exceeded_keeps_user_turn(self, make_orchestrator, store):
        orchestrator, _ = make_orchestrator([CONTACT_FORM] + ["oops"] * 3)
        session_id, _ = orchestrator.generate("contact form")

        with pytest.raises(ValidationExceeded):
            orchestrator.refine(session_id, "add a category")

        assert _roles(store.read(session_id)) == ["system", "user", "assistant", "user"]


class TestCurrentSchema:
    def test_returns_latest_schema(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([CONTACT_FORM, DUPLICATE_NAMES])
        session_id, _ = orchestrator.generate("contact form")
        orchestrator.generate("two names", session_id)

        fields = orchestrator.current_schema(session_id)

        assert [f.label for f in fields] == ["Name", "Name_1"]

    def test_missing_session(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([])
        with pytest.raises(SessionNotFound):
            orchestrator.current_schema("missing")

    def test_session_without_schema(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(["bad"] * 3)
        with pytest.raises(ValidationExceeded):
            orchestrator.generate("contact form")
        with pytest.raises(SessionNotFound):
            orchestrator.current_schema("session-1")
