"""Environment and YAML configuration for the relay."""
from __future__ import annotations
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from gemini_relay.common.errors import ConfigurationError

LOGGER = logging.getLogger("gemini_relay.config")

DEFAULT_MODEL = "gemini-2.0-flash-exp-image-generation"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

DEFAULT_GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 1,
    "topP": 0.95,
    "topK": 40,
    "responseModalities": ["Text", "Image"],
}

DEFAULT_SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

_NUMBERED_KEY = re.compile(r"^GOOGLE_AI_API_KEY(\d+)$")


@dataclass(frozen=True)
class Settings:
    api_keys: tuple[str, ...]
    model_name: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    host: str = "0.0.0.0"
    port: int = 3010
    request_timeout_s: float = 900.0
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    app_env: str = "development"
    log_level: str = "INFO"
    prompt_presets_path: str = "configs/prompt_presets.yaml"
    generation_config: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_GENERATION_CONFIG))
    safety_settings: list[dict[str, str]] = field(default_factory=lambda: list(DEFAULT_SAFETY_SETTINGS))

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


def collect_api_keys(env: Mapping[str, str]) -> tuple[str, ...]:
    """
    Gather API keys from the environment.

    Keys come from ``GEMINI_API_KEYS`` (comma-separated), then
    ``GOOGLE_AI_API_KEY``, then ``GOOGLE_AI_API_KEY1``..``N`` in numeric order.
    Blank entries and duplicates are dropped; order is preserved.

    Args:
        env: Environment mapping.
    """
    keys: list[str] = [k.strip() for k in env.get("GEMINI_API_KEYS", "").split(",")]
    keys.append(env.get("GOOGLE_AI_API_KEY", ""))
    numbered = sorted(
        (int(m.group(1)), value)
        for name, value in env.items()
        if (m := _NUMBERED_KEY.match(name))
    )
    keys.extend(value for _, value in numbered)

    seen: set[str] = set()
    out: list[str] = []
    for key in keys:
        key = key.strip()
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return tuple(out)


def load_generation_config(path: str) -> tuple[dict[str, Any], list[dict[str, str]]]:
    """
    Load ``generationConfig`` and ``safetySettings`` from a YAML file.

    Falls back to built-in defaults (with a warning) if the file is missing.

    Args:
        path: YAML config path.
    """
    p = Path(path)
    if not p.exists():
        LOGGER.warning("Generation config %s not found; using defaults", path)
        return dict(DEFAULT_GENERATION_CONFIG), list(DEFAULT_SAFETY_SETTINGS)
    try:
        with open(p, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Generation config {path} is not valid YAML: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigurationError(f"Generation config {path} must be a mapping")
    generation = cfg.get("generationConfig", DEFAULT_GENERATION_CONFIG) or {}
    safety = cfg.get("safetySettings", DEFAULT_SAFETY_SETTINGS) or []
    if not isinstance(generation, dict):
        raise ConfigurationError(f"generationConfig in {path} must be a mapping")
    if not isinstance(safety, list) or not all(isinstance(s, dict) for s in safety):
        raise ConfigurationError(f"safetySettings in {path} must be a list of mappings")
    return dict(generation), list(safety)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build settings from the process environment.

    Raises:
        ConfigurationError: if no API key is configured or a number is malformed.
    """
    env = os.environ if env is None else env
    keys = collect_api_keys(env)
    if not keys:
        raise ConfigurationError(
            "No Gemini API key configured. Set GEMINI_API_KEYS or GOOGLE_AI_API_KEY1."
        )

    try:
        port = int(env.get("PORT", "3010"))
        timeout = float(env.get("REQUEST_TIMEOUT_S", "900"))
        max_upload = int(env.get("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    gen_path = env.get("GENERATION_CONFIG_PATH", "configs/generation.yaml")
    generation_config, safety_settings = load_generation_config(gen_path)

    return Settings(
        api_keys=keys,
        model_name=env.get("GEMINI_MODEL_NAME", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
        base_url=env.get("GEMINI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        host=env.get("HOST", "0.0.0.0"),
        port=port,
        request_timeout_s=timeout,
        max_upload_bytes=max_upload,
        app_env=env.get("APP_ENV", "development"),
        log_level=env.get("LOG_LEVEL", "INFO"),
        prompt_presets_path=env.get("PROMPT_PRESETS_PATH", "configs/prompt_presets.yaml"),
        generation_config=generation_config,
        safety_settings=safety_settings,
    )
