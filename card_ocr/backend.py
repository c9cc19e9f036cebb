"""
Backend adapter contract shared by the local and cloud recognition engines.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Union

import numpy as np

from .models import RecognitionResult

ImageInput = Union[str, Path, bytes, np.ndarray]


class BackendKind(str, Enum):
    """The closed set of recognition engines the orchestrator chooses from."""
    CLOUD = "gemini"
    LOCAL = "easyocr"


class RecognitionBackend(ABC):
    """A recognition engine the orchestrator can invoke.

    ``recognize`` either returns a RecognitionResult or raises one of the
    ``RecognitionError`` subclasses; nothing else is part of the contract.
    """

    kind: BackendKind
    timeout: float = 30.0

    @property
    def identifier(self) -> str:
        return self.kind.value

    @abstractmethod
    def recognize(self, image: ImageInput) -> RecognitionResult:
        """Run recognition on one image."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the backend could be invoked right now."""

    def describe(self) -> dict:
        return {
            "identifier": self.identifier,
            "configured": self.is_configured(),
            "timeout": self.timeout,
        }
