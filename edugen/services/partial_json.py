"""Best-effort parsing of JSON documents that are still being streamed.

Structured generation arrives as raw JSON text, a few characters at a time.
To expose "latest state" snapshots while the model is still writing, the
accumulated prefix is parsed in partial mode: open containers are closed and
an unfinished trailing string, key or literal is dropped.
"""

import logging
from typing import Any

from pydantic_core import from_json

__all__ = ["parse_partial_json"]

logger = logging.getLogger(__name__)


def parse_partial_json(text: str) -> Any | None:
    """Parse the longest sensible prefix of ``text``.

    Returns None when no JSON object or array has started yet, or when the
    prefix is not valid JSON at all.
    """
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        return None
    try:
        return from_json(text[min(starts) :], allow_partial=True)
    except ValueError:
        logger.debug("Could not parse partial JSON prefix of length %d", len(text))
        return None
