"""
Tests for configuration precedence, option parsing and stage instrumentation.
"""

import logging

import pytest

from podsum.audio.models import DetailLevel, ProcessingOptions
from podsum.config import ConfigManager
from podsum.server.instrumentation import run_stage


def test_defaults(monkeypatch):
    monkeypatch.delenv("LLM_MODEL", raising=False)
    config = ConfigManager()

    assert config.get("LLM_MODEL") == "gpt-4-turbo-preview"
    assert config.is_using_default("LLM_MODEL")


def test_environment_beats_default(monkeypatch):
    monkeypatch.setenv("OPENAI_TEMPERATURE", "0.9")

    config = ConfigManager()

    assert config.get_float("OPENAI_TEMPERATURE") == 0.9
    assert config.get_display_value("OPENAI_TEMPERATURE") == ("0.9", "env")


def test_override_beats_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")

    config = ConfigManager({"PORT": "9000"})

    assert config.get_int("PORT") == 9000
    assert config.get("PORT", override="7000") == "7000"
    assert config.get_display_value("PORT") == ("9000", "override")


def test_typed_getters(monkeypatch):
    monkeypatch.setenv("ENABLE_URL_DOWNLOAD", "Yes")
    config = ConfigManager({"MAX_DOWNLOAD_MB": "lots", "NORMALIZE_LOUDNESS": False})

    assert config.get_bool("ENABLE_URL_DOWNLOAD") is True
    assert config.get_bool("NORMALIZE_LOUDNESS") is False
    with pytest.raises(ValueError, match="MAX_DOWNLOAD_MB"):
        config.get_int("MAX_DOWNLOAD_MB")


def test_processing_options_defaults():
    options = ProcessingOptions.from_dict(None)

    assert options.detail == DetailLevel.STANDARD
    assert options.timestamps is True
    assert options.lang is None


def test_processing_options_from_strings():
    options = ProcessingOptions.from_dict({"lang": "fr", "detail": "brief", "timestamps": "false"})

    assert options.to_dict() == {"lang": "fr", "detail": "brief", "timestamps": False}


def test_processing_options_reject_unknown_detail():
    with pytest.raises(ValueError):
        ProcessingOptions.from_dict({"detail": "verbose"})


def test_run_stage_captures_value_and_error(caplog):
    caplog.set_level(logging.INFO, logger="podsum.stage")

    ok = run_stage("job_1", "probe", lambda x: x * 2, 21)
    assert ok.ok and ok.unwrap() == 42
    assert ok.duration >= 0

    def explode():
        raise RuntimeError("boom")

    failed = run_stage("job_1", "transcription", explode)
    assert not failed.ok
    with pytest.raises(RuntimeError, match="boom"):
        failed.unwrap()

    messages = [record.getMessage() for record in caplog.records]
    assert any("probe finished" in m for m in messages)
    assert any("transcription failed" in m for m in messages)
