# tests/unit/test_config.py
"""Tests for configuration schema defaults and YAML loading."""

import pytest
import yaml
from pydantic import ValidationError

from linework.config import LineworkConfig, load_config, resolve_api_key
from linework.config.schema import QueueConfig, RetryPolicy


def test_defaults():
    config = LineworkConfig()

    assert config.genai.text_model == "gemini-3-flash-preview"
    assert config.genai.image_model == "gemini-2.5-flash-image"
    assert config.retry.max_retries == 12
    assert config.retry.base_delay == 6.0
    assert config.retry.growth_factor == 1.6
    assert config.queue.concurrency == 1
    assert config.queue.pacing_delay == 20.0
    assert config.queue.cover_delay == 5.0
    assert config.book.page_count == 20
    assert (config.book.width, config.book.height, config.book.unit) == (8.5, 11.0, "in")


def test_load_creates_default_file(tmp_path):
    path = tmp_path / "nested" / "config.yaml"

    config = load_config(path)

    assert path.exists()
    assert config == LineworkConfig()
    written = yaml.safe_load(path.read_text())
    assert written["queue"]["pacing_delay"] == 20.0


def test_load_overrides_and_ignores_unknown_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "queue": {"concurrency": 4, "pacing_delay": 1.5},
                "retry": {"max_retries": 3},
                "unknown_section": {"x": 1},
                "book": {"page_count": 10, "mystery": True},
            }
        )
    )

    config = load_config(path)

    assert config.queue.concurrency == 4
    assert config.queue.pacing_delay == 1.5
    assert config.retry.max_retries == 3
    assert config.retry.base_delay == 6.0
    assert config.book.page_count == 10


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_config(path) == LineworkConfig()


@pytest.mark.parametrize(
    "model,kwargs",
    [
        (QueueConfig, {"concurrency": 0}),
        (QueueConfig, {"concurrency": 9}),
        (QueueConfig, {"pacing_delay": -1}),
        (RetryPolicy, {"growth_factor": 3.0}),
        (RetryPolicy, {"max_jitter": 0.1}),
    ],
)
def test_out_of_range_values_rejected(model, kwargs):
    with pytest.raises(ValidationError):
        model(**kwargs)


class TestResolveApiKey:
    def test_config_value_wins(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        config = LineworkConfig(genai={"api_key": "file-key"})

        assert resolve_api_key(config) == "file-key"

    def test_env_fallback_order(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "generic-key")

        assert resolve_api_key(LineworkConfig()) == "generic-key"

        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        assert resolve_api_key(LineworkConfig()) == "gemini-key"

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)

        assert resolve_api_key(LineworkConfig()) is None
