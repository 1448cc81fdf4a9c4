# interview_capture/config.py
# Description: Configuration management for the capture pipeline.
#
# Imports
import copy
import os
import sys
if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Any, Optional
#
# Third-Party Imports
import toml
from loguru import logger
#
#######################################################################################################################
#
# Constants

# --- Path to the user's configuration file (can be overridden for tests / portable installs) ---
DEFAULT_CONFIG_PATH = Path(
    os.getenv("INTERVIEW_CAPTURE_CONFIG", str(Path.home() / ".config" / "interview_capture" / "config.toml"))
)

GROQ_API_BASE_URL = "https://api.groq.com/openai/v1"

# Models used by the remote services
TRANSCRIPTION_MODEL = "whisper-large-v3-turbo"
VISION_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"

LATE_RESULT_POLICIES = ("keep", "drop")

CONFIG_TOML_CONTENT = """
# Configuration for interview_capture
# Located at: ~/.config/interview_capture/config.toml
# Values missing from this file fall back to the defaults below.

[capture]
# Milliseconds between two screen samples
sample_interval_ms = 5000
# Delay before the first sample so the display surface can settle
initial_sample_delay_ms = 1000
# Encoded byte-length delta above which a frame counts as a significant change
change_threshold_bytes = 1000
# Number of screen captures / log events retained by the state store
max_screen_captures = 30
max_capture_logs = 50
# Screen to capture (1 = primary monitor)
monitor_index = 1
# JPEG quality for encoded frames
jpeg_quality = 80

[audio]
continuous = true
# Length of one transcription segment
segment_duration_ms = 10000
# How often buffered device data is drained into the current segment
chunk_interval_ms = 1000
# Segments smaller than this are dropped before any network call
min_segment_bytes = 1000
sample_rate = 16000
channels = 1
# Input device id, -1 for the system default
device_id = -1

[recognition]
backend = "tesseract"
language = "en"

[pipeline]
# What happens to results that arrive after the pipeline was deactivated: "keep" or "drop"
late_results = "keep"

[api_settings.groq]
api_key_env_var = "GROQ_API_KEY"
api_key = "<API_KEY_HERE>"
base_url = "https://api.groq.com/openai/v1"
transcription_model = "whisper-large-v3-turbo"
transcription_language = "en"
vision_model = "meta-llama/llama-4-scout-17b-16e-instruct"
vision_max_tokens = 2000
timeout = 60.0

[logging]
log_level = "INFO"
# Leave empty to log to stderr only
log_file = ""
log_rotation = "10 MB"
log_retention = "7 days"
"""

try:
    DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)
except tomllib.TOMLDecodeError as e:
    logger.critical(f"Could not parse internal CONFIG_TOML_CONTENT: {e}")
    DEFAULT_CONFIG_FROM_TOML = {}

#######################################################################################################################
#
# Functions:

def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update into base."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


_CONFIG_CACHE: Optional[Dict[str, Any]] = None


def load_cli_config_and_ensure_existence(force_reload: bool = False) -> Dict[str, Any]:
    """
    Loads settings from DEFAULT_CONFIG_PATH.
    If the file doesn't exist, it's created with the contents of CONFIG_TOML_CONTENT.
    The programmatic defaults are always used as a base so missing keys resolve.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not DEFAULT_CONFIG_PATH.exists():
        logger.info(f"Config file not found at {DEFAULT_CONFIG_PATH}. Creating it with default values.")
        try:
            DEFAULT_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
            with open(DEFAULT_CONFIG_PATH, "w", encoding="utf-8") as f:
                f.write(CONFIG_TOML_CONTENT)
            logger.info(f"Created default config file at {DEFAULT_CONFIG_PATH}")
        except OSError as e:
            logger.error(f"Could not create default config file {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")
    else:
        logger.debug(f"Loading config from: {DEFAULT_CONFIG_PATH}")
        try:
            with open(DEFAULT_CONFIG_PATH, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config file {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")

    _CONFIG_CACHE = loaded_config
    return _CONFIG_CACHE


def save_setting_to_cli_config(section: str, key: str, value: Any) -> bool:
    """
    Saves a single setting to the user's TOML configuration file.

    Nested sections are addressed with dots (e.g. "api_settings.groq").

    Returns:
        True if the setting was saved successfully, False otherwise.
    """
    global _CONFIG_CACHE
    logger.info(f"Saving setting: [{section}].{key}")

    try:
        DEFAULT_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create config directory {DEFAULT_CONFIG_PATH.parent}: {e}")
        return False

    config_data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        try:
            with open(DEFAULT_CONFIG_PATH, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Corrupted config file at {DEFAULT_CONFIG_PATH}. Cannot save. Error: {e}")
            return False

    current_level = config_data
    try:
        for part in section.split('.'):
            current_level = current_level.setdefault(part, {})
        current_level[key] = value
    except (TypeError, AttributeError):
        logger.error(f"Could not set '{key}' in section '{section}': part of the path is not a table")
        return False

    try:
        with open(DEFAULT_CONFIG_PATH, "w", encoding="utf-8") as f:
            toml.dump(config_data, f)
    except OSError as e:
        logger.error(f"Failed to write updated config to {DEFAULT_CONFIG_PATH}: {e}")
        return False

    _CONFIG_CACHE = None
    load_cli_config_and_ensure_existence(force_reload=True)
    logger.success(f"Saved setting to {DEFAULT_CONFIG_PATH}")
    return True


def get_cli_setting(section: str, key: str, default: Any = None) -> Any:
    """Helper to get a specific setting from the loaded configuration."""
    config = load_cli_config_and_ensure_existence()
    section_data: Any = config
    for part in section.split('.'):
        if not isinstance(section_data, dict):
            return default
        section_data = section_data.get(part)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


def get_api_settings(provider: str = "groq") -> Dict[str, Any]:
    """
    Returns the [api_settings.<provider>] table with the API key resolved.

    The environment variable named by `api_key_env_var` wins over the file value;
    placeholder values such as "<API_KEY_HERE>" are treated as missing.
    """
    settings = dict(get_cli_setting("api_settings", provider, {}) or {})
    env_var = settings.get("api_key_env_var", f"{provider.upper()}_API_KEY")
    api_key = os.getenv(env_var) or settings.get("api_key")
    if api_key and api_key.startswith("<") and api_key.endswith(">"):
        api_key = None
    settings["api_key"] = api_key
    return settings

#######################################################################################################################
#
# Typed pipeline configuration

@dataclass(frozen=True)
class CaptureConfig:
    """Tunables of the capture pipeline. All values have defaults."""

    sample_interval_ms: int = 5000
    initial_sample_delay_ms: int = 1000
    change_threshold_bytes: int = 1000
    max_screen_captures: int = 30
    max_capture_logs: int = 50
    segment_duration_ms: int = 10000
    chunk_interval_ms: int = 1000
    min_segment_bytes: int = 1000
    continuous: bool = True
    late_results: str = "keep"

    def __post_init__(self):
        for name in ("sample_interval_ms", "segment_duration_ms", "chunk_interval_ms",
                     "max_screen_captures", "max_capture_logs"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("initial_sample_delay_ms", "change_threshold_bytes", "min_segment_bytes"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.late_results not in LATE_RESULT_POLICIES:
            raise ValueError(f"late_results must be one of {LATE_RESULT_POLICIES}, got {self.late_results!r}")

    @property
    def sample_interval(self) -> float:
        return self.sample_interval_ms / 1000

    @property
    def initial_sample_delay(self) -> float:
        return self.initial_sample_delay_ms / 1000

    @property
    def segment_duration(self) -> float:
        return self.segment_duration_ms / 1000

    @property
    def chunk_interval(self) -> float:
        return self.chunk_interval_ms / 1000

    @property
    def keep_late_results(self) -> bool:
        return self.late_results == "keep"


def load_capture_config(overrides: Optional[Dict[str, Any]] = None) -> CaptureConfig:
    """
    Builds a CaptureConfig from the [capture], [audio] and [pipeline] sections.

    Args:
        overrides: Field values that take precedence over the file (e.g. from CLI flags)
    """
    config = load_cli_config_and_ensure_existence()
    merged: Dict[str, Any] = {}
    for section in ("capture", "audio", "pipeline"):
        section_data = config.get(section, {})
        if isinstance(section_data, dict):
            merged.update(section_data)
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(CaptureConfig)}
    values = {k: v for k, v in merged.items() if k in known}
    logger.debug(f"Capture config values: {values}")
    return CaptureConfig(**values)

#
# End of config.py
#######################################################################################################################
