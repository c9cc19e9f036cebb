"""
Image loading and enhancement for business card recognition.

Both backends accept a file path, raw encoded bytes or a decoded array;
this module turns any of those into what each engine wants.
"""

import logging
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np

from .backend import ImageInput
from .exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


class ImagePreprocessor:
    """Decodes card images and prepares them for recognition."""

    TARGET_WIDTH = 1600
    MAX_WIDTH = 2400

    @staticmethod
    def load(image: ImageInput) -> np.ndarray:
        """
        Decode an image into a BGR uint8 array.

        Args:
            image: File path, encoded bytes or an already decoded array

        Returns:
            BGR image array

        Raises:
            MalformedResponseError: If the input cannot be decoded
        """
        if isinstance(image, np.ndarray):
            img = image
        elif isinstance(image, (bytes, bytearray)):
            buffer = np.frombuffer(bytes(image), dtype=np.uint8)
            img = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
        else:
            img = cv2.imread(str(image))

        if img is None:
            raise MalformedResponseError("Cannot decode image input")

        if len(img.shape) == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        elif img.shape[2] == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)

        if img.dtype != np.uint8:
            img = img.astype(np.uint8)
        return img

    @staticmethod
    def encode(image: ImageInput) -> Tuple[bytes, str]:
        """
        Produce encoded bytes and a mime type for upload to a remote engine.

        Paths and bytes pass through untouched; arrays are PNG-encoded.
        """
        if isinstance(image, (bytes, bytearray)):
            return bytes(image), ImagePreprocessor._sniff_mime(bytes(image))
        if isinstance(image, np.ndarray):
            ok, buffer = cv2.imencode(".png", image)
            if not ok:
                raise MalformedResponseError("Cannot encode image array")
            return buffer.tobytes(), "image/png"

        path = Path(image)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise MalformedResponseError(f"Cannot read image: {path}", details={"error": str(e)}) from e
        return data, MIME_TYPES.get(path.suffix.lower(), "image/jpeg")

    @staticmethod
    def _sniff_mime(data: bytes) -> str:
        if data.startswith(b"\x89PNG"):
            return "image/png"
        if data.startswith(b"GIF8"):
            return "image/gif"
        if data.startswith(b"BM"):
            return "image/bmp"
        if data[8:12] == b"WEBP":
            return "image/webp"
        return "image/jpeg"

    @classmethod
    def enhance(cls, img: np.ndarray) -> np.ndarray:
        """
        Resize, denoise and sharpen a card photo for the local engine.

        Args:
            img: BGR image array

        Returns:
            Enhanced BGR image array (same coordinate frame as the resized input)
        """
        h, w = img.shape[:2]
        if w < cls.TARGET_WIDTH:
            scale = cls.TARGET_WIDTH / w
            img = cv2.resize(img, (cls.TARGET_WIDTH, int(h * scale)), interpolation=cv2.INTER_CUBIC)
        elif w > cls.MAX_WIDTH:
            scale = cls.MAX_WIDTH / w
            img = cv2.resize(img, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)

        logger.debug(f"Resized from {w}x{h} to {img.shape[1]}x{img.shape[0]}")

        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        gray = cv2.fastNlMeansDenoising(gray, None, h=8, templateWindowSize=7, searchWindowSize=21)

        clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(12, 12))
        gray = clahe.apply(gray)

        # Unsharp mask
        blurred = cv2.GaussianBlur(gray, (0, 0), 1.0)
        gray = cv2.addWeighted(gray, 1.5, blurred, -0.5, 0)

        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
