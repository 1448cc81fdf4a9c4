"""
Root conftest.py for shared test fixtures and configuration.
Provides device fixtures, a fast pipeline configuration and config-file isolation.
"""

import sys
from pathlib import Path

import pytest

# Add project root to Python path for consistent imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from interview_capture import config as capture_config_module
from interview_capture.config import CaptureConfig
from interview_capture.errors import AcquisitionError
from Tests.capture_test_utils import FakeDisplayStream, FakeMicrophoneStream, FakeRecognitionBackend, FakeSource


# ========== Configuration Fixtures ==========

@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the config loader at a temporary file and clear its cache."""
    config_path = tmp_path / "interview_capture" / "config.toml"
    monkeypatch.setattr(capture_config_module, "DEFAULT_CONFIG_PATH", config_path)
    monkeypatch.setattr(capture_config_module, "_CONFIG_CACHE", None)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("CAPTURE_LOG_LEVEL", raising=False)
    yield config_path
    capture_config_module._CONFIG_CACHE = None


@pytest.fixture
def fast_config():
    """Millisecond-scale timings so loops run many iterations inside a test."""
    return CaptureConfig(
        sample_interval_ms=20,
        initial_sample_delay_ms=0,
        segment_duration_ms=60,
        chunk_interval_ms=10,
    )


# ========== Device Fixtures ==========

@pytest.fixture
def microphone_stream():
    return FakeMicrophoneStream()


@pytest.fixture
def display_stream():
    return FakeDisplayStream()


@pytest.fixture
def fake_backend():
    return FakeRecognitionBackend()


@pytest.fixture
def denied_source():
    return FakeSource(error=AcquisitionError("Permission denied", device="display"))
