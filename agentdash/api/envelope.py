"""
Uniform response envelope: ``{success, data?, error?, message?}``.

Payloads are encoded like stored documents: camelCase keys, unset optionals
omitted, and timestamps as millisecond UTC strings.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from agentdash.db.codec import format_timestamp


def _plain(value: Any) -> Any:
    # Dump models in python mode so datetimes reach the timestamp encoder.
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def encode_payload(value: Any) -> Any:
    return jsonable_encoder(_plain(value), exclude_none=True, custom_encoder={datetime: format_timestamp})


def api_response(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": encode_payload(data)}
    if message is not None:
        body["message"] = message
    return body


def api_error(error: str, message: Optional[str] = None, code: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": error}
    if message is not None:
        body["message"] = message
    if code is not None:
        body["code"] = code
    body.update(encode_payload(extra))
    return body
