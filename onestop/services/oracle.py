"""
Generative AI Oracle

The model is treated as an opaque text-completion oracle: it receives
instruction text (and optionally an inline image) and returns text.
The reply is UNTRUSTED. parse_oracle_json is the only way callers turn
it into data, and it is strict: anything other than a JSON object is
rejected.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel

from onestop.config import get_settings
from onestop.errors import OracleParseError, OracleUnavailableError


logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\n?")


class ContentPart(BaseModel):
    """One part of an oracle request: either text or inline binary data."""

    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def inline(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(data=data, mime_type=mime_type)

    @property
    def is_inline(self) -> bool:
        return self.data is not None


class GenerativeOracle(ABC):
    """Interface to the generative model."""

    @abstractmethod
    async def generate(self, parts: list[ContentPart]) -> str:
        """
        Send the parts to the model and return its text reply.

        Raises:
            OracleUnavailableError: If the call fails
        """
        pass


class GeminiOracle(GenerativeOracle):
    """
    Gemini implementation using google-generativeai.

    No retries: a failed call surfaces immediately and the caller decides.
    """

    def __init__(self):
        self._settings = get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @staticmethod
    def _to_content(part: ContentPart) -> Any:
        if part.is_inline:
            return {"mime_type": part.mime_type, "data": part.data}
        return part.text or ""

    async def generate(self, parts: list[ContentPart]) -> str:
        contents = [self._to_content(part) for part in parts]
        try:
            response = await self._model.generate_content_async(contents)
            return response.text
        except Exception as e:
            logger.error(
                "oracle_call_failed",
                model=self._settings.model_name,
                error=str(e),
            )
            raise OracleUnavailableError()


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (``` and ```json) around a reply."""
    return _FENCE_RE.sub("", text).strip()


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_oracle_json(text: Optional[str]) -> dict:
    """
    Parse an oracle reply as a JSON object.

    Code fences are stripped first. NaN/Infinity literals, arrays,
    scalars and malformed JSON are all rejected.

    Raises:
        OracleParseError: If the reply is not a JSON object
    """
    cleaned = strip_code_fences(text or "")
    try:
        data = json.loads(cleaned, parse_constant=_reject_constant)
    except ValueError as e:
        raise OracleParseError(details={"reason": str(e)})

    if not isinstance(data, dict):
        raise OracleParseError(details={"reason": f"expected object, got {type(data).__name__}"})
    return data
