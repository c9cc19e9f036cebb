"""
Local recognition backend built on EasyOCR.

Works fully offline. The reader is created on first use because loading the
detection and recognition networks takes several seconds.
"""

import importlib.util
import logging
import os
import re
import threading
from typing import List, Tuple

from .backend import BackendKind, ImageInput, RecognitionBackend
from .exceptions import MalformedResponseError
from .models import BoundingBox, RecognitionResult, Token
from .preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)

# Detections below this EasyOCR score (0-1) are dropped
MIN_DETECTION_SCORE = 0.15


class EasyOCRBackend(RecognitionBackend):
    """Offline recognition engine."""

    kind = BackendKind.LOCAL

    # Known whole-word misreads; character-level fixes run afterwards
    WORD_CORRECTIONS = {
        "1nc": "Inc",
        "1NC": "INC",
        "L1C": "LLC",
        "11C": "LLC",
        "1LC": "LLC",
        "Corp0ration": "Corporation",
        "Corporat1on": "Corporation",
        "So1utions": "Solutions",
        "Techno1ogy": "Technology",
        "Techno1ogies": "Technologies",
        "G1oba1": "Global",
        "Manag3r": "Manager",
        "D1rector": "Director",
        "Eng1neer": "Engineer",
        "Deve1oper": "Developer",
        "Consu1tant": "Consultant",
        "Spec1alist": "Specialist",
        "Ana1yst": "Analyst",
    }

    def __init__(
        self,
        languages: List[str] = None,
        gpu: bool = False,
        model_dir: str = "./models",
        timeout: float = 30.0,
        enhance: bool = True,
        reader=None,
    ):
        """
        Initialize the local backend.

        Args:
            languages: EasyOCR language codes
            gpu: Use GPU for recognition
            model_dir: Directory for model storage
            timeout: Hard limit in seconds for one recognition call
            enhance: Run the denoise/contrast pass before recognition
            reader: Pre-built reader, mainly for tests
        """
        self.languages = languages or ["en"]
        self.gpu = gpu
        self.model_dir = model_dir
        self.timeout = timeout
        self.enhance = enhance
        self._reader = reader
        self._reader_lock = threading.Lock()

    def is_configured(self) -> bool:
        return self._reader is not None or importlib.util.find_spec("easyocr") is not None

    def _get_reader(self):
        with self._reader_lock:
            if self._reader is None:
                import easyocr

                os.makedirs(self.model_dir, exist_ok=True)
                logger.info(f"Initializing EasyOCR with languages: {self.languages}")
                self._reader = easyocr.Reader(
                    lang_list=self.languages,
                    gpu=self.gpu,
                    model_storage_directory=self.model_dir,
                    download_enabled=True,
                    verbose=False,
                )
                logger.info("EasyOCR initialized successfully")
            return self._reader

    def correct_text(self, text: str) -> str:
        """
        Fix the letter/digit swaps EasyOCR makes inside words.

        Args:
            text: Text of one detection

        Returns:
            Corrected text
        """
        for wrong, correct in self.WORD_CORRECTIONS.items():
            text = re.sub(rf"\b{re.escape(wrong)}\b", correct, text)

        # letter + 1 + letter ("b1ue" -> "blue")
        text = re.sub(r"([a-zA-Z])1([a-zA-Z])", r"\1l\2", text)
        text = re.sub(r"([a-zA-Z])11([a-zA-Z])", r"\1ll\2", text)
        text = re.sub(r"([a-zA-Z]{2,})1\b", r"\1l", text)
        # letter + 0 + letter ("s0lutions" -> "solutions")
        text = re.sub(r"([a-zA-Z])0([a-zA-Z])", r"\1o\2", text)
        text = re.sub(r"www\s*\.\s*", "www.", text, flags=re.IGNORECASE)

        return " ".join(text.split())

    @staticmethod
    def _quad_to_box(quad) -> BoundingBox:
        xs = [float(point[0]) for point in quad]
        ys = [float(point[1]) for point in quad]
        return BoundingBox(min(xs), min(ys), max(xs), max(ys))

    def _to_tokens(self, detections) -> Tuple[Token, ...]:
        tokens = []
        for quad, text, score in detections:
            text = self.correct_text(str(text).strip())
            if not text or score < MIN_DETECTION_SCORE:
                continue
            tokens.append(Token(text=text, bbox=self._quad_to_box(quad), confidence=float(score) * 100.0))

        # Reading order: top to bottom, then left to right
        tokens.sort(key=lambda t: (round(t.bbox.center_y / 10.0), t.bbox.x0))
        return tuple(tokens)

    @staticmethod
    def _weighted_confidence(tokens: Tuple[Token, ...]) -> float:
        """Average token confidence weighted by text length."""
        total_weight = sum(len(t.text) for t in tokens)
        if not total_weight:
            return 0.0
        return sum(t.confidence * len(t.text) for t in tokens) / total_weight

    def recognize(self, image: ImageInput) -> RecognitionResult:
        """
        Recognize text on a card image.

        Args:
            image: File path, encoded bytes or BGR array

        Returns:
            RecognitionResult with word boxes in the enhanced image's frame

        Raises:
            MalformedResponseError: If the image cannot be decoded or the engine fails
        """
        img = ImagePreprocessor.load(image)
        if self.enhance:
            img = ImagePreprocessor.enhance(img)

        try:
            reader = self._get_reader()
            detections = reader.readtext(img, detail=1, paragraph=False)
        except Exception as e:
            logger.error(f"EasyOCR recognition error: {e}", exc_info=True)
            raise MalformedResponseError(f"Local engine failed: {e}", backend=self.identifier) from e

        tokens = self._to_tokens(detections)
        confidence = self._weighted_confidence(tokens)
        raw_text = "\n".join(t.text for t in tokens)

        logger.info(f"Extracted {len(tokens)} tokens with {confidence:.1f}% confidence")

        return RecognitionResult(
            raw_text=raw_text,
            tokens=tokens,
            overall_confidence=confidence,
            backend=self.identifier,
        )
