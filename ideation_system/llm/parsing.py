"""
Attempt-parse-else-fallback for structured generation output.

``parse_or_fallback`` never raises: it returns ``Parsed(value)`` when the
response could be decoded and validated, otherwise ``Fallback(value, reason)``
carrying the caller's default.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union
import json
import logging
import re

from ideation_system.monitoring_metrics import GENERATION_FALLBACKS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class Fallback(Generic[T]):
    value: T
    reason: str
    raw: str = ""

    @property
    def is_fallback(self) -> bool:
        return True


ParseResult = Union[Parsed[T], Fallback[T]]


def extract_json(text: str) -> Any:
    """
    Decode the JSON payload in a model response.

    Accepts bare JSON, a fenced ```json block, or JSON embedded in prose
    (the outermost object or array). Raises ValueError when none decodes.
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    candidates = [text.strip()]
    candidates.extend(m.strip() for m in _FENCE_RE.findall(text))
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = text.find(open_ch), text.rfind(close_ch)
        if start != -1 and end > start:
            candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError("no JSON payload found in response")


def parse_or_fallback(
    raw: str,
    parse: Callable[[Any], T],
    fallback: Callable[[], T],
    stage: str = "generation",
) -> ParseResult:
    """Decode ``raw`` as JSON and hand it to ``parse``; on any failure use ``fallback()``."""
    try:
        return Parsed(parse(extract_json(raw)))
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"
        logger.warning(f"Unparseable {stage} response, using fallback: {reason}")
        GENERATION_FALLBACKS.labels(stage=stage).inc()
        return Fallback(fallback(), reason=reason, raw=(raw or "")[:500])
