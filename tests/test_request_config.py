"""Tests for the layered request configuration resolver."""

from __future__ import annotations

from dataclasses import replace

import pytest

from aissist.ai.prompts import DEFAULT_SYSTEM_MESSAGE
from aissist.documents.metadata import read_metadata
from aissist.editor.buffer import TextBuffer
from aissist.errors import NoActiveDocument
from aissist.services.request_config import FIELD_SPECS, resolve_request_config
from aissist.services.settings import Settings


class _CountingBuffer(TextBuffer):
    def __init__(self, text: str = "") -> None:
        super().__init__(text)
        self.writes = 0

    def replace_range(self, text, start, end=None) -> None:  # type: ignore[override]
        self.writes += 1
        super().replace_range(text, start, end)

    def set_value(self, text: str) -> None:
        self.writes += 1
        super().set_value(text)


def test_fallbacks_come_from_settings_and_are_written_back(settings: Settings) -> None:
    buffer = TextBuffer("body")
    stored = replace(settings, model="gpt-4.1", max_output_tokens=256, temperature=0.3)

    config = resolve_request_config(buffer, stored)

    assert config.model == "gpt-4.1"
    assert config.max_tokens == 256
    assert config.temperature == pytest.approx(0.3)
    assert config.system_message == DEFAULT_SYSTEM_MESSAGE
    assert read_metadata(buffer.get_value()) == {
        "aissist_openai_chat_model": "gpt-4.1",
        "aissist_openai_chat_max_tokens": 256,
        "aissist_openai_chat_temperature": 0.3,
        "aissist_openai_chat_system_message": DEFAULT_SYSTEM_MESSAGE,
    }
    assert buffer.get_value().endswith("---\nbody")


def test_metadata_values_win_and_are_not_rewritten(settings: Settings) -> None:
    text = (
        "---\n"
        "aissist_openai_chat_model: gpt-4o-mini\n"
        "aissist_openai_chat_temperature: 0\n"
        "aissist_openai_chat_top_p: 0.5\n"
        "aissist_openai_chat_frequency_penalty: 0.25\n"
        "aissist_openai_chat_presence_penalty: -0.5\n"
        "aissist_openai_chat_n: 2\n"
        "---\n"
    )
    buffer = TextBuffer(text)

    config = resolve_request_config(buffer, settings)

    assert config.model == "gpt-4o-mini"
    assert config.temperature == 0.0
    assert config.top_p == pytest.approx(0.5)
    assert config.frequency_penalty == pytest.approx(0.25)
    assert config.presence_penalty == pytest.approx(-0.5)
    assert config.n == 2
    metadata_text = buffer.get_value()
    assert metadata_text.count("aissist_openai_chat_model") == 1
    assert metadata_text.count("aissist_openai_chat_temperature") == 1
    assert "aissist_openai_chat_max_tokens: 1000" in metadata_text


def test_fields_without_stored_tier_use_compiled_defaults_silently(settings: Settings) -> None:
    buffer = TextBuffer("")

    config = resolve_request_config(buffer, settings)

    assert (config.top_p, config.frequency_penalty, config.presence_penalty, config.n) == (1.0, 0.0, 0.0, 1)
    assert config.store is False
    assert config.vector_store_id is None
    metadata = read_metadata(buffer.get_value())
    assert "aissist_openai_chat_top_p" not in metadata
    assert "aissist_openai_store" not in metadata


def test_second_resolution_is_identical_and_writes_nothing(settings: Settings) -> None:
    buffer = _CountingBuffer("note")

    first = resolve_request_config(buffer, settings)
    writes_after_first = buffer.writes
    second = resolve_request_config(buffer, settings)

    assert writes_after_first == sum(1 for spec in FIELD_SPECS if spec.persist)
    assert buffer.writes == writes_after_first
    assert first == second


def test_persist_false_never_writes(settings: Settings) -> None:
    buffer = _CountingBuffer("note")

    resolve_request_config(buffer, settings, persist=False)

    assert buffer.writes == 0
    assert buffer.get_value() == "note"


def test_invalid_metadata_value_falls_back_without_overwrite(
    settings: Settings, caplog: pytest.LogCaptureFixture
) -> None:
    buffer = TextBuffer("---\naissist_openai_chat_max_tokens: lots\n---\n")

    with caplog.at_level("WARNING"):
        config = resolve_request_config(buffer, settings)

    assert config.max_tokens == settings.max_output_tokens
    assert buffer.get_value().count("aissist_openai_chat_max_tokens") == 1
    assert "invalid metadata value" in caplog.text.lower()


def test_compiled_defaults_can_be_overridden(settings: Settings) -> None:
    config = resolve_request_config(TextBuffer(""), settings, {"top_p": 0.9, "system_message": "Be terse."})

    assert config.top_p == pytest.approx(0.9)
    assert config.system_message == "Be terse."


def test_no_document_raises(settings: Settings) -> None:
    with pytest.raises(NoActiveDocument) as info:
        resolve_request_config(None, settings)

    assert info.value.user_message() == "[AIssist] No active note."


def test_request_params_include_store_metadata_only_when_enabled(settings: Settings) -> None:
    text = "---\naissist_openai_store: true\naissist_openai_vector_store_id: vs_123\n---\n"

    config = resolve_request_config(TextBuffer(text), settings)
    params = config.request_params()

    assert params["store"] is True
    assert params["metadata"] == {"vector_store_id": "vs_123"}
    assert "system_message" not in params

    plain = resolve_request_config(TextBuffer("---\naissist_openai_vector_store_id: vs_1\n---\n"), settings)
    assert "store" not in plain.request_params()
    assert "metadata" not in plain.request_params()
