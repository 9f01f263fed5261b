from __future__ import annotations

from pathlib import Path

import pytest

from gemini_relay.common.config import (
    DEFAULT_GENERATION_CONFIG,
    collect_api_keys,
    load_generation_config,
    load_settings,
)
from gemini_relay.common.errors import ConfigurationError
from gemini_relay.common.presets import load_presets, resolve_prompt


def test_keys_from_all_sources_in_order() -> None:
    env = {
        "GEMINI_API_KEYS": "a, b,,a",
        "GOOGLE_AI_API_KEY": "c",
        "GOOGLE_AI_API_KEY10": "e",
        "GOOGLE_AI_API_KEY2": "d",
        "GOOGLE_AI_API_KEY1": "b",
    }
    assert collect_api_keys(env) == ("a", "b", "c", "d", "e")


def test_missing_keys_is_fatal() -> None:
    with pytest.raises(ConfigurationError):
        load_settings({})


def test_settings_defaults(tmp_path: Path) -> None:
    s = load_settings({"GOOGLE_AI_API_KEY1": "k", "GENERATION_CONFIG_PATH": str(tmp_path / "missing.yaml")})
    assert s.api_keys == ("k",)
    assert s.port == 3010
    assert s.max_upload_bytes == 10 * 1024 * 1024
    assert not s.is_production
    assert s.generation_config == DEFAULT_GENERATION_CONFIG


def test_bad_number_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        load_settings({"GEMINI_API_KEYS": "k", "PORT": "eighty"})


def test_generation_config_from_yaml(tmp_path: Path) -> None:
    p = tmp_path / "gen.yaml"
    p.write_text("generationConfig:\n  temperature: 0.3\nsafetySettings: []\n", encoding="utf-8")
    gen, safety = load_generation_config(str(p))
    assert gen == {"temperature": 0.3}
    assert safety == []


def test_repo_generation_config_loads() -> None:
    gen, safety = load_generation_config("configs/generation.yaml")
    assert gen["responseModalities"] == ["Text", "Image"]
    assert len(safety) == 4


def test_repo_presets_expand_codes() -> None:
    presets = load_presets()
    assert "sunglasses" in resolve_prompt(presets, " 1 ")
    assert "profile" in resolve_prompt(presets, "5")


def test_unknown_prompt_passes_through_trimmed() -> None:
    assert resolve_prompt({"1": "preset"}, "  Add a hat  ") == "Add a hat"


def test_missing_presets_file(tmp_path: Path) -> None:
    assert load_presets(str(tmp_path / "nope.yaml")) == {}


@pytest.mark.parametrize(
    "text",
    [
        "generationConfig: [1, 2]\n",
        "safetySettings: threshold\n",
        "safetySettings: [BLOCK_NONE]\n",
        "generationConfig: {temperature: [unclosed\n",
        "- just\n- a list\n",
    ],
)
def test_malformed_generation_config_is_configuration_error(tmp_path: Path, text: str) -> None:
    p = tmp_path / "gen.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_generation_config(str(p))


@pytest.mark.parametrize(
    "text",
    [
        "presets:\n  \"1\":\n    label: no prompt here\n",
        "presets:\n  \"1\": just a string\n",
        "presets: [a, b]\n",
        "presets: {\"1\": [unclosed\n",
    ],
)
def test_malformed_presets_are_configuration_error(tmp_path: Path, text: str) -> None:
    p = tmp_path / "presets.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_presets(str(p))


def test_generation_config_path_feeds_settings(tmp_path: Path) -> None:
    p = tmp_path / "gen.yaml"
    p.write_text("generationConfig:\n  topK: 7\nsafetySettings: []\n", encoding="utf-8")
    s = load_settings({"GEMINI_API_KEYS": "k", "GENERATION_CONFIG_PATH": str(p)})
    assert s.generation_config == {"topK": 7}
    assert s.safety_settings == []
    assert not hasattr(s, "generation_config_path")
