"""User settings and timing configuration consumed by the pipeline.

Settings are owned by the user and are read-only here: the pipeline loads
``settings.json`` from the home directory at the moment it needs them, so
edits take effect on the next start or tick.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .auth import get_home_dir

logger = logging.getLogger("notebooklm_pipeline.pipeline")


@dataclass
class PipelineSettings:
    """Per-artifact enable flags and options.

    Option values are names from the mappers in :mod:`constants`; unknown
    names fall back to each artifact's default when the request is built.
    """

    # Audio
    generate_audio: bool = True
    audio_format: str = "deep_dive"
    audio_length: str = "long"
    language: str = "en"
    audio_prompt: str = ""
    # Video
    generate_video: bool = False
    video_format: str = "explainer"
    video_style: str = "auto_select"
    video_prompt: str = ""
    # Report
    generate_report: bool = False
    report_format: str = "study_guide"
    report_prompt: str = ""
    # Quiz
    generate_quiz: bool = False
    quiz_quantity: str = "standard"
    quiz_difficulty: str = "medium"
    quiz_prompt: str = ""
    # Flashcards (share the quiz quantity/difficulty)
    generate_flashcards: bool = False
    flashcards_prompt: str = ""
    # Infographic
    generate_infographic: bool = True
    infographic_orientation: str = "landscape"
    infographic_detail: str = "standard"
    infographic_prompt: str = ""
    # Slide deck
    generate_slide_deck: bool = False
    slide_deck_format: str = "detailed_deck"
    slide_deck_length: str = "default"
    slide_deck_prompt: str = ""
    # Mind map
    generate_mind_map: bool = False
    # Data table
    generate_data_table: bool = False
    data_table_prompt: str = ""
    # Completion side effects
    notification_enabled: bool = True
    chime_enabled: bool = True
    auto_open_notebook: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineSettings":
        """Overlay ``data`` on the defaults, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            logger.debug(f"Ignoring unknown settings keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def get_settings_path() -> Path:
    return get_home_dir() / "settings.json"


def load_settings(path: Path | None = None) -> PipelineSettings:
    """Read settings from disk; a missing or malformed file yields the defaults."""
    settings_path = path or get_settings_path()
    if not settings_path.exists():
        return PipelineSettings()

    try:
        with open(settings_path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read settings from {settings_path}: {e}. Using defaults.")
        return PipelineSettings()

    if not isinstance(data, dict):
        logger.warning(f"Settings file {settings_path} is not a JSON object. Using defaults.")
        return PipelineSettings()

    return PipelineSettings.from_dict(data)


def _env_seconds(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
        if value < 0:
            raise ValueError
        return value
    except ValueError:
        logger.warning(f"Invalid {name} value '{raw}'; using {default}s")
        return default


@dataclass
class PipelineConfig:
    """Timing knobs of the orchestrator, in seconds."""

    poll_interval: float = 15.0
    source_timeout: float = 600.0
    artifact_timeout: float = 1200.0
    start_delay: float = 1.0

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            poll_interval=_env_seconds("NOTEBOOKLM_PIPELINE_POLL_INTERVAL", cls.poll_interval),
            source_timeout=_env_seconds("NOTEBOOKLM_PIPELINE_SOURCE_TIMEOUT", cls.source_timeout),
            artifact_timeout=_env_seconds("NOTEBOOKLM_PIPELINE_ARTIFACT_TIMEOUT", cls.artifact_timeout),
            start_delay=_env_seconds("NOTEBOOKLM_PIPELINE_START_DELAY", cls.start_delay),
        )
