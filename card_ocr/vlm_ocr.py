"""
Cloud recognition backend using Gemini (google-genai).

The model is asked for a transcription plus word boxes so the layout analyzer
sees the same kind of tokens the local engine produces.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Tuple

import httpx
from google import genai
from google.genai import errors, types

from .backend import BackendKind, ImageInput, RecognitionBackend
from .exceptions import (
    AuthMissingError,
    BackendNetworkError,
    MalformedResponseError,
    QuotaExceededError,
)
from .models import BoundingBox, RecognitionResult, Token
from .preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)

# Gemini does not report per-word scores
DEFAULT_WORD_CONFIDENCE = 95.0


class GeminiBackend(RecognitionBackend):
    """
    Gemini-based recognition for business cards.
    Transcribes only; field extraction stays in the local parser.
    """

    kind = BackendKind.CLOUD

    EXTRACTION_PROMPT = """Transcribe every piece of text printed on this business card.

Return a JSON object with exactly these fields:
{
    "raw_text": "All visible text, one printed line per line, separated by \\n",
    "words": [
        {"text": "one word or short phrase", "box_2d": [ymin, xmin, ymax, xmax]}
    ]
}

Rules:
- Copy text EXACTLY as printed, do not correct or invent anything
- box_2d coordinates are integers normalized to 0-1000
- List words top to bottom, left to right
- Return ONLY valid JSON, no markdown or explanation"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        timeout: float = 60.0,
        client=None,
    ):
        """
        Initialize the cloud backend.

        Args:
            api_key: Google API key
            model: Gemini model name
            timeout: Hard limit in seconds for one recognition call
            client: Pre-built genai client, mainly for tests
        """
        self.api_key = api_key
        self.model_name = model
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Replace the credential; the client is rebuilt on next use."""
        self.api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise AuthMissingError("Gemini API key not configured", backend=self.identifier)
            self._client = genai.Client(api_key=self.api_key)
            logger.info(f"Gemini client initialized with model: {self.model_name}")
        return self._client

    @staticmethod
    def _parse_response(response_text: str) -> Dict:
        """Parse JSON from Gemini response."""
        try:
            return json.loads(response_text)
        except json.JSONDecodeError:
            pass

        # Markdown code block
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
        if json_match:
            try:
                return json.loads(json_match.group(1))
            except json.JSONDecodeError:
                pass

        # Bare object somewhere in the text
        json_match = re.search(r"\{[\s\S]*\}", response_text)
        if json_match:
            try:
                return json.loads(json_match.group(0))
            except json.JSONDecodeError:
                pass

        return {}

    @staticmethod
    def _to_tokens(words: List[Dict]) -> Tuple[Token, ...]:
        tokens = []
        for word in words:
            if not isinstance(word, dict):
                continue
            text = str(word.get("text") or "").strip()
            box = word.get("box_2d")
            if not text or not isinstance(box, (list, tuple)) or len(box) != 4:
                continue
            try:
                ymin, xmin, ymax, xmax = (float(v) for v in box)
            except (TypeError, ValueError):
                continue
            tokens.append(Token(text=text, bbox=BoundingBox(xmin, ymin, xmax, ymax),
                                confidence=DEFAULT_WORD_CONFIDENCE))
        return tuple(tokens)

    def _map_api_error(self, error: "errors.APIError"):
        code = getattr(error, "code", None)
        message = f"Gemini API error {code}: {error}"
        if code == 429:
            return QuotaExceededError(message, backend=self.identifier, details={"code": code})
        if code in (401, 403):
            return AuthMissingError(message, backend=self.identifier, details={"code": code})
        return BackendNetworkError(message, backend=self.identifier, details={"code": code})

    def recognize(self, image: ImageInput) -> RecognitionResult:
        """
        Send the card to Gemini and convert the answer into tokens.

        Args:
            image: File path, encoded bytes or BGR array

        Returns:
            RecognitionResult with boxes in Gemini's 0-1000 frame

        Raises:
            AuthMissingError: No key, or the key was rejected
            QuotaExceededError: Gemini answered 429
            BackendNetworkError: Transport failure or other API error
            MalformedResponseError: The answer is not the requested JSON
        """
        client = self._get_client()
        image_bytes, mime_type = ImagePreprocessor.encode(image)

        logger.info(f"Calling Gemini API ({self.model_name}, {len(image_bytes)} bytes)")

        try:
            response = client.models.generate_content(
                model=self.model_name,
                contents=[
                    types.Content(
                        parts=[
                            types.Part.from_text(text=self.EXTRACTION_PROMPT),
                            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                        ]
                    )
                ],
                config=types.GenerateContentConfig(
                    temperature=0.1,
                    max_output_tokens=2048,
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini request failed: {e}")
            raise self._map_api_error(e) from e
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Gemini transport failed: {e}")
            raise BackendNetworkError(f"Gemini unreachable: {e}", backend=self.identifier) from e

        response_text = response.text or ""
        logger.debug(f"Gemini response: {response_text[:500]}")

        data = self._parse_response(response_text)
        raw_text = data.get("raw_text") if isinstance(data, dict) else None
        if not isinstance(raw_text, str):
            raise MalformedResponseError(
                "Failed to parse Gemini response",
                backend=self.identifier,
                details={"response": response_text[:200]},
            )

        words = data.get("words") or []
        tokens = self._to_tokens(words if isinstance(words, list) else [])
        confidence = DEFAULT_WORD_CONFIDENCE if raw_text.strip() else 0.0

        return RecognitionResult(
            raw_text=raw_text.strip(),
            tokens=tokens,
            overall_confidence=confidence,
            backend=self.identifier,
        )
