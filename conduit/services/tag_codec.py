"""
Encode/decode of an article's ordered tag list into one text column.

The stored form is a JSON array of strings.  Decoding is fail-soft: a
corrupt field yields an empty list so that one bad record can never make
an article unreadable.
"""
import json
import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

EMPTY = "[]"


def encode(tags: Iterable[str] | None) -> str:
    """
    Serialize *tags* preserving order.

    Surrounding whitespace is stripped, blank entries are dropped and
    repeated tags keep only their first position.  ``None`` encodes to
    the empty list, never to a null marker.
    """
    if tags is None:
        return EMPTY
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return json.dumps(list(seen), ensure_ascii=False)


def decode(field: str | None) -> list[str]:
    if not field:
        return []
    try:
        value = json.loads(field)
    except (TypeError, ValueError):
        logger.debug("Unreadable tag list %r, treating as empty", field)
        return []
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        logger.debug("Tag list %r is not a list of strings, treating as empty", field)
        return []
    return value


def tag_token(tag: str) -> str:
    """
    The exact substring *tag* occupies inside an encoded list.

    Matching on the quoted form means ``py`` does not match an article
    tagged ``python``.
    """
    return json.dumps(tag.strip(), ensure_ascii=False)
