from __future__ import annotations

import json
import logging
from urllib.parse import parse_qs, unquote, urlsplit

from pydantic import ValidationError

from .models import InitPayload

logger = logging.getLogger(__name__)


def _query_string(location: str) -> str:
    if "?" in location or "://" in location:
        return urlsplit(location).query
    return location.lstrip("?")


def init_from_location(location: str | None, param: str = "init") -> InitPayload | None:
    """Parse the INIT payload a host may embed in the launch URL.

    Malformed input returns ``None`` so the session keeps its defaults.
    """
    if not location:
        return None
    values = parse_qs(_query_string(location)).get(param)
    if not values:
        return None
    # The value is decoded once more, matching hosts that double-encode the blob.
    raw = unquote(values[0])
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("launch_init_ignored", extra={"reason": "invalid json"})
        return None
    if not isinstance(parsed, dict):
        logger.debug("launch_init_ignored", extra={"reason": "not an object"})
        return None
    try:
        return InitPayload.model_validate(parsed)
    except ValidationError as exc:
        logger.debug("launch_init_ignored", extra={"errors": exc.error_count()})
        return None
