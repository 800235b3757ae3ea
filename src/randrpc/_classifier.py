"""
Response classifier for the randrpc SDK.

Turns a decoded JSON-RPC reply into a tagged `Response`. The classifier is
pure: it never touches pacing state and never raises for server-reported
errors (those become Error-variant responses). It only raises `DecodeError`
when the reply's shape does not match the expected data kind.

Example:
    >>> from randrpc._json import parse
    >>> raw = parse('{"result":{"random":{"data":[4,1],"completionTime":"2024-01-01 10:00:00Z"},'
    ...             '"bitsUsed":6,"bitsLeft":9994,"requestsLeft":999,"advisoryDelay":200},"id":7}')
    >>> classify(raw.as_object(), DataKind.INTEGER).integers
    (4, 1)
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from randrpc._json import JsonObject, JsonTypeError, JsonValue
from randrpc._models import (
    DECODE_FAILURE_CODE,
    DataKind,
    DecodeError,
    Response,
    Usage,
    UsageStatus,
)

logger = logging.getLogger(__name__)


def _to_uuid(value: JsonValue) -> uuid.UUID:
    return uuid.UUID(value.as_str())


_DATA_CONVERTERS: dict[DataKind, Callable[[JsonValue], Any]] = {
    DataKind.INTEGER: lambda value: value.as_int(),
    DataKind.STRING: lambda value: value.as_str(),
    DataKind.BLOB: lambda value: value.as_str(),
    DataKind.DECIMAL: lambda value: value.as_float(),
    DataKind.GAUSSIAN: lambda value: value.as_float(),
    DataKind.UUID: _to_uuid,
}


def classify(raw: JsonObject, expected_kind: DataKind) -> Response:
    """
    Classify a decoded reply into a tagged `Response`.

    Args:
        raw: The decoded JSON-RPC reply object.
        expected_kind: The data kind the request asked for.

    Returns:
        A Response of `expected_kind`, or an Error-variant response when the
        server reported an error or the reply carries no usable result.

    Raises:
        DecodeError: If the reply's shape does not match `expected_kind`
            (missing fields, wrong value variants, unparseable timestamps or UUIDs).
    """
    assert raw is not None, "🌀 Sanity check | Raw reply cannot be None."
    assert expected_kind is not None, "🌀 Sanity check | Expected kind cannot be None."
    assert expected_kind != DataKind.ERROR, "🌀 Sanity check | Expected kind cannot be ERROR."

    try:
        return _classify(raw, expected_kind)
    except DecodeError:
        raise
    except (JsonTypeError, KeyError, ValueError) as e:
        logger.error(
            f"Classifier | ❌ Reply does not match the expected kind {expected_kind.name}: {e}",
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
        raise DecodeError(f"Reply does not match the expected kind {expected_kind.name}: {e}", cause=e) from e


def _classify(raw: JsonObject, expected_kind: DataKind) -> Response:
    reply_id = _id_of(raw)

    error = raw.get("error")
    if error is not None and not error.is_null():
        error = error.as_object()
        return Response.of_error(
            code=error["code"].as_int(),
            message=error["message"].as_str(),
            id=reply_id,
        )

    result = raw.get("result")
    if not isinstance(result, JsonObject):
        return Response.of_error(
            code=DECODE_FAILURE_CODE,
            message="Reply carries no 'result' object.",
            id=reply_id,
        )

    bits_left = result["bitsLeft"].as_long()
    requests_left = result["requestsLeft"].as_long()

    if expected_kind == DataKind.USAGE:
        return Response(
            kind=DataKind.USAGE,
            id=reply_id,
            bits_left=bits_left,
            requests_left=requests_left,
            payload=_usage_of(result),
        )

    advisory_delay = result["advisoryDelay"].as_long()
    bits_used = result["bitsUsed"].as_long()

    random = result.get("random")
    if not isinstance(random, JsonObject):
        return Response.of_error(
            code=DECODE_FAILURE_CODE,
            message="Reply carries no 'random' object.",
            id=reply_id,
        )

    convert = _DATA_CONVERTERS[expected_kind.base]
    data = tuple(convert(item) for item in random["data"].as_array())

    signature = None
    if expected_kind.is_signed:
        signature = result["signature"].as_str()

    return Response(
        kind=expected_kind,
        id=reply_id,
        bits_used=bits_used,
        bits_left=bits_left,
        requests_left=requests_left,
        advisory_delay=advisory_delay,
        completion_time=_datetime_of(random["completionTime"]),
        payload=data,
        raw_random=random,
        raw_signature=signature,
    )


def _id_of(raw: JsonObject) -> int | None:
    value = raw.get("id")
    if value is None or value.is_null():
        return None
    return value.as_long()


def _datetime_of(value: JsonValue) -> datetime:
    # random.org sends e.g. "2011-10-10 13:19:12Z"
    return datetime.fromisoformat(value.as_str())


def _usage_of(result: JsonObject) -> Usage:
    status = result["status"].as_str()
    try:
        usage_status = UsageStatus(status)
    except ValueError as e:
        logger.error(f"Classifier | ❌ Unknown API key status: '{status}'")
        raise DecodeError(f"Unknown API key status: '{status}'", cause=e) from e

    return Usage(
        status=usage_status,
        creation_time=_datetime_of(result["creationTime"]),
        total_bits=result["totalBits"].as_long(),
        total_requests=result["totalRequests"].as_long(),
    )
