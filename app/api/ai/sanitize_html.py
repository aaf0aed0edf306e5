"""
sanitize_html.py
================

Scrubs markup out of AI-generated strings before an analysis is stored or
returned, so nothing an LLM writes can reach a browser as live HTML.

Uses **bleach** with an empty tag whitelist, so every tag is stripped and
only its text content is kept.

Public API
----------
sanitize_html(text: str) -> str
cleanse_json(value: Any) -> Any   # recursively sanitises str leaves
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

import bleach

logger = logging.getLogger(__name__)

ALLOWED_TAGS: frozenset = frozenset()
ALLOWED_ATTRIBUTES: dict = {}

TAG_START = re.compile(r"<[A-Za-z!/?]")


def sanitize_html(text: str) -> str:
    """
    Return ``text`` with all markup removed.

    Strings without a ``<`` cannot carry a tag and are returned untouched,
    so plain values like ``"R&D"`` keep their ampersands. After stripping,
    the entities bleach introduced are decoded again (``"<$1M & rising"``
    survives as is) unless decoding would bring back something tag-like, in
    which case the escaped form is returned.
    """
    if "<" not in text:
        return text
    cleaned = bleach.clean(text, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)
    if cleaned != text:
        logger.debug("Stripped markup from generated text (%d -> %d chars)", len(text), len(cleaned))
    decoded = html.unescape(cleaned)
    if TAG_START.search(decoded):
        return cleaned
    return decoded


def cleanse_json(value: Any) -> Any:
    """
    Walk a nested dict / list and sanitise every string leaf.

    Useful when you want to scrub an entire JSON payload before
    `json.dumps` or DB insertion::

        safe_dict = cleanse_json(raw_json_dict)
    """
    if isinstance(value, str):
        return sanitize_html(value)
    if isinstance(value, list):
        return [cleanse_json(v) for v in value]
    if isinstance(value, dict):
        return {k: cleanse_json(v) for k, v in value.items()}
    return value
