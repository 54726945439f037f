"""Standardized API response helpers.

Every endpoint answers with the same envelope:
    {"success": true, "message": "...", <payload key>: ...}

The payload key varies per resource (``order``, ``items``, ``bin``,
``request``, ``data``...) and is part of the public contract consumed by the
dashboard, so callers pass it explicitly.
"""

from typing import Any, Optional

from pydantic import BaseModel


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def envelope(message: str = "", **payload: Any) -> dict:
    """Wrap a payload in the success envelope.

    Pydantic models (and lists/dicts of them) are serialized with their
    camelCase aliases.
    """
    body = {"success": True, "message": message}
    body.update({key: _dump(value) for key, value in payload.items()})
    return body


def error_body(message: str, extra: Optional[dict] = None) -> dict:
    """Build the failure envelope."""
    body = {"success": False, "message": message}
    if extra:
        body.update(_dump(extra))
    return body
