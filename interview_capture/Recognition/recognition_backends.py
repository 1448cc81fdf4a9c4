# recognition_backends.py
"""
Pluggable text recognition backends for screen frames.

Backends are synchronous and CPU-bound; RecognitionEngine runs them in a
worker thread and enforces single-flight on top.
"""

import abc
import base64
import binascii
import io
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from loguru import logger

# Import optional dependencies
try:
    from PIL import Image
    PIL_AVAILABLE = True
except ImportError:
    PIL_AVAILABLE = False
    Image = None

try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False


ImageSource = Union[bytes, bytearray, str]
ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class RecognitionResult:
    """Standardized recognition result."""
    text: str
    confidence_score: float  # 0-100
    processing_time_ms: int

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class RecognitionBackendError(Exception):
    """Raised when a backend cannot process an image."""
    pass


def decode_image_source(image: ImageSource) -> bytes:
    """
    Normalize an image source to raw encoded bytes.

    Accepts raw bytes, a base64 string or a data: URL.
    """
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)
    if isinstance(image, str):
        payload = image.split(",", 1)[1] if image.startswith("data:") else image
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise RecognitionBackendError(f"Image string is not valid base64: {e}") from e
    raise RecognitionBackendError(f"Unsupported image source type: {type(image).__name__}")


class RecognitionBackend(abc.ABC):
    """Abstract base class for recognition backends."""

    name = "base"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._initialized = False

    @abc.abstractmethod
    def is_available(self) -> bool:
        """Check if this backend is available and properly configured."""
        pass

    @abc.abstractmethod
    def initialize(self) -> None:
        """Initialize the backend (load language data, models, etc.)."""
        pass

    @abc.abstractmethod
    def recognize(self, image_bytes: bytes, progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        """
        Extract text from an encoded image.

        Args:
            image_bytes: PNG/JPEG encoded image
            progress: Called with 0-100 while the work advances

        Returns:
            RecognitionResult with text, confidence (0-100) and timing
        """
        pass

    def cleanup(self) -> None:
        """Cleanup resources."""
        pass


class TesseractRecognitionBackend(RecognitionBackend):
    """Recognition backend using Tesseract through pytesseract."""

    name = "tesseract"

    LANGUAGE_MAP = {
        "en": "eng",
        "de": "deu",
        "fr": "fra",
        "es": "spa",
        "it": "ita",
        "pt": "por",
        "ru": "rus",
        "zh": "chi_sim",
        "ja": "jpn",
        "ko": "kor",
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        language = self.config.get("language", "en")
        self.language = self.LANGUAGE_MAP.get(language, language)
        self.tesseract_config = self.config.get("tesseract_config", "")

    def is_available(self) -> bool:
        if not (TESSERACT_AVAILABLE and PIL_AVAILABLE):
            return False
        try:
            pytesseract.get_tesseract_version()
            return True
        except (pytesseract.TesseractNotFoundError, OSError):
            return False

    def initialize(self) -> None:
        if self._initialized:
            return
        if not (TESSERACT_AVAILABLE and PIL_AVAILABLE):
            raise RecognitionBackendError("pytesseract and Pillow are required for the tesseract backend")
        try:
            self.available_langs = pytesseract.get_languages()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise RecognitionBackendError(f"Tesseract binary not available: {e}") from e
        self._initialized = True
        logger.info(f"Tesseract recognition backend initialized with languages: {self.available_langs}")

    def recognize(self, image_bytes: bytes, progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        if not self._initialized:
            self.initialize()

        report = progress or (lambda _value: None)
        start_time = time.monotonic()
        report(0)

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.load()
                image = img.convert("RGB")
        except (OSError, ValueError) as e:
            raise RecognitionBackendError(f"Cannot decode image: {e}") from e
        report(10)

        data = pytesseract.image_to_data(
            image,
            lang=self.language,
            output_type=pytesseract.Output.DICT,
            config=self.tesseract_config,
        )
        report(80)

        text_parts = []
        confidences = []
        words = data.get("text", [])
        for i, word in enumerate(words):
            txt = word.strip()
            if not txt:
                continue
            text_parts.append(txt)
            conf = float(data["conf"][i])
            if conf >= 0:  # Tesseract uses -1 for no confidence
                confidences.append(conf)
        report(100)

        return RecognitionResult(
            text=" ".join(text_parts),
            confidence_score=sum(confidences) / len(confidences) if confidences else 0.0,
            processing_time_ms=int((time.monotonic() - start_time) * 1000),
        )


RECOGNITION_BACKENDS = {
    TesseractRecognitionBackend.name: TesseractRecognitionBackend,
}


def create_recognition_backend(name: str = "tesseract", config: Optional[Dict[str, Any]] = None) -> RecognitionBackend:
    """Instantiate a backend by name."""
    backend_class = RECOGNITION_BACKENDS.get(name)
    if backend_class is None:
        raise ValueError(f"Unknown recognition backend '{name}'. Available: {list(RECOGNITION_BACKENDS)}")
    return backend_class(config)
