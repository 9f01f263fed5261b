"""Prompt preset helpers."""
from __future__ import annotations
import logging
from pathlib import Path

import yaml

from gemini_relay.common.errors import ConfigurationError

LOGGER = logging.getLogger("gemini_relay.presets")

def load_presets(path: str = "configs/prompt_presets.yaml") -> dict[str, str]:
    """
    Load the preset code -> instruction mapping.

    Args:
        path: Path to the YAML presets file. A missing file yields no presets.
    """
    p = Path(path)
    if not p.exists():
        LOGGER.warning("Prompt presets file %s not found; presets disabled", path)
        return {}
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        presets = data.get("presets", {}) if isinstance(data, dict) else {}
        return {str(code): str(entry["prompt"]).strip() for code, entry in presets.items()}
    except (yaml.YAMLError, AttributeError, KeyError, TypeError) as e:
        raise ConfigurationError(f"Prompt presets file {path} is malformed: {e!r}") from e

def resolve_prompt(presets: dict[str, str], user_input: str) -> str:
    """
    Expand a preset code into its full instruction text.

    Args:
        presets: Mapping from code to instruction.
        user_input: Raw prompt field from the client.

    Returns:
        The preset text when the trimmed input is a known code, else the trimmed input.
    """
    text = user_input.strip()
    return presets.get(text, text)
