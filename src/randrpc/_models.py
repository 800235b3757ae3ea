"""
Data models for random.org JSON-RPC responses.

This module contains the core data structures returned by the client:
- DataKind: Tag of a response payload (odd members are signed variants)
- Response: Tagged response holding exactly one payload (frozen/immutable)
- Usage / UsageStatus: Usage record returned by `getUsage`
- RpcError: Error payload (code and message)
"""

import enum
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from randrpc._json import JsonObject

# Code used for replies whose shape could not be decoded at all (no `result` object)
DECODE_FAILURE_CODE = -1


# =============================================================================
# Exceptions
# =============================================================================


class PayloadKindError(TypeError):
    """
    Raised when a payload accessor does not match the response kind.

    This is a programming error: check `response.kind` (or `has_error()`)
    before reading a payload.

    Example:
        >>> response.strings  # response.kind == DataKind.INTEGER
        Traceback (most recent call last):
        ...
        randrpc._models.PayloadKindError: 'strings' is not available on a INTEGER response
    """

    def __init__(self, accessor: str, kind: "DataKind"):
        self.accessor = accessor
        self.kind = kind
        super().__init__(f"'{accessor}' is not available on a {kind.name} response")


class DecodeError(ValueError):
    """
    Raised when a reply's shape does not match the expected data kind.

    For example, non-numeric entries in `data` when integers were requested.
    The response is never silently defaulted to empty data.

    Attributes:
        cause: The underlying error, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ProtocolError(Exception):
    """
    Raised for server-reported JSON-RPC errors when the client is configured to raise them.

    Only raised when `raise_protocol_errors` is enabled. Otherwise the error is
    returned as a `Response` of kind `DataKind.ERROR`.

    Attributes:
        code: The JSON-RPC error code.
        message: The server's error message.
        response: The Error-variant response.

    Example:
        >>> try:
        ...     client.generate_integers(IntegersRequest(n=5, min=1, max=6))
        ... except ProtocolError as e:
        ...     print(f"({e.code}) {e.message}")
    """

    def __init__(self, code: int, message: str, response: "Response | None" = None):
        self.code = code
        self.message = message
        self.response = response
        super().__init__(f"({code}) {message}")


# =============================================================================
# Enums
# =============================================================================


class DataKind(enum.IntEnum):
    """
    Kind of payload carried by a `Response`.

    Signed kinds are the odd-numbered counterparts of the even-numbered base
    kinds, so `kind.is_signed` is simply `kind % 2 == 1`.
    """
    INTEGER = 0
    SIGNED_INTEGER = 1
    STRING = 2
    SIGNED_STRING = 3
    DECIMAL = 4
    SIGNED_DECIMAL = 5
    GAUSSIAN = 6
    SIGNED_GAUSSIAN = 7
    UUID = 8
    SIGNED_UUID = 9
    BLOB = 10
    SIGNED_BLOB = 11
    USAGE = 12
    ERROR = 14

    @property
    def is_signed(self) -> bool:
        return self.value % 2 == 1

    @property
    def base(self) -> "DataKind":
        """Return the unsigned kind of this kind."""
        return DataKind(self.value - 1) if self.is_signed else self

    def with_signature(self, signed: bool) -> "DataKind":
        """
        Return the signed (or unsigned) variant of this kind.

        Example:
            >>> DataKind.INTEGER.with_signature(True)
            <DataKind.SIGNED_INTEGER: 1>
        """
        if self in (DataKind.USAGE, DataKind.ERROR):
            return self
        return DataKind(self.base.value + 1) if signed else self.base


class UsageStatus(enum.StrEnum):
    """Status of an API key."""
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class Usage:
    """
    Usage of an API key, as reported by `getUsage`.

    Attributes:
        status: The API key's current status.
        creation_time: When the API key was created.
        total_bits: Total number of bits used (cumulative, server-side).
        total_requests: Total number of requests (cumulative, server-side).
    """
    status: UsageStatus
    creation_time: datetime
    total_bits: int
    total_requests: int


@dataclass(frozen=True)
class RpcError:
    """A JSON-RPC error: numeric code and message."""
    code: int
    message: str


_ACCESSOR_KINDS: dict[str, frozenset[DataKind]] = {
    "integers": frozenset({DataKind.INTEGER, DataKind.SIGNED_INTEGER}),
    "strings": frozenset({DataKind.STRING, DataKind.SIGNED_STRING}),
    "blobs": frozenset({DataKind.BLOB, DataKind.SIGNED_BLOB}),
    "decimals": frozenset({DataKind.DECIMAL, DataKind.SIGNED_DECIMAL}),
    "gaussians": frozenset({DataKind.GAUSSIAN, DataKind.SIGNED_GAUSSIAN}),
    "uuids": frozenset({DataKind.UUID, DataKind.SIGNED_UUID}),
    "usage": frozenset({DataKind.USAGE}),
    "error": frozenset({DataKind.ERROR}),
}


# =============================================================================
# Response
# =============================================================================


@dataclass(frozen=True)
class Response:
    """
    Tagged response from the random.org API.

    Exactly one payload is held, chosen by `kind`. Read it through the
    matching accessor (`integers`, `strings`, `blobs`, `decimals`,
    `gaussians`, `uuids`, `usage` or `error`). Any other accessor raises
    `PayloadKindError`.

    Attributes:
        kind: The payload kind.
        id: The request id echoed by the server (None if the server sent none).
        bits_used: Number of true random bits used by this request.
        bits_left: Number of bits still available to the API key.
        requests_left: Number of requests still available to the API key.
        advisory_delay: Milliseconds the server advises to wait before the
            next request (raw value, before it is applied to pacing).
        completion_time: When the request was completed by the server.
        payload: The payload for `kind`. Prefer the typed accessors.
        raw_random: The raw `random` object (generation kinds only).
        raw_signature: The base64 signature (signed kinds only).

    Example:
        >>> response = client.generate_integers(IntegersRequest(n=3, min=1, max=6))
        >>> if response.has_error():
        ...     print(response.error.message)
        ... else:
        ...     print(response.integers)
        (4, 1, 6)
    """
    kind: DataKind
    id: int | None = None
    bits_used: int = 0
    bits_left: int = 0
    requests_left: int = 0
    advisory_delay: int = 0
    completion_time: datetime | None = None
    payload: Any = field(default=None, repr=False)
    raw_random: JsonObject | None = field(default=None, repr=False)
    raw_signature: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        assert self.kind is not None, "Response kind cannot be None."

    @classmethod
    def of_error(cls, code: int, message: str, id: int | None = None) -> "Response":
        """Create an Error-variant response."""
        return cls(kind=DataKind.ERROR, id=id, payload=RpcError(code=code, message=message))

    def _payload_for(self, accessor: str) -> Any:
        if self.kind not in _ACCESSOR_KINDS[accessor]:
            raise PayloadKindError(accessor, self.kind)
        return self.payload

    @property
    def is_signed(self) -> bool:
        """Returns True if the response is signed (odd-numbered kind)."""
        return self.kind.is_signed

    @property
    def integers(self) -> Sequence[int]:
        """The generated integers."""
        return self._payload_for("integers")

    @property
    def strings(self) -> Sequence[str]:
        """The generated strings."""
        return self._payload_for("strings")

    @property
    def blobs(self) -> Sequence[str]:
        """The generated Binary Large OBjects (base64 or hex encoded)."""
        return self._payload_for("blobs")

    @property
    def decimals(self) -> Sequence[float]:
        """The generated decimal fractions."""
        return self._payload_for("decimals")

    @property
    def gaussians(self) -> Sequence[float]:
        """The generated gaussians."""
        return self._payload_for("gaussians")

    @property
    def uuids(self) -> Sequence[uuid.UUID]:
        """The generated UUIDs."""
        return self._payload_for("uuids")

    @property
    def usage(self) -> Usage:
        """The API key usage."""
        return self._payload_for("usage")

    @property
    def error(self) -> RpcError:
        """The error reported by the server."""
        return self._payload_for("error")

    @property
    def random(self) -> JsonObject:
        """The raw `random` object, as needed by `verify_signature()`."""
        if self.raw_random is None:
            raise PayloadKindError("random", self.kind)
        return self.raw_random

    @property
    def signature(self) -> str:
        """The base64 signature of the `random` object (signed kinds only)."""
        if not self.is_signed or self.raw_signature is None:
            raise PayloadKindError("signature", self.kind)
        return self.raw_signature

    def has_error(self) -> bool:
        """Returns True if this response carries an error."""
        return self.kind == DataKind.ERROR

    def is_usage(self) -> bool:
        """Returns True if this response carries a usage record."""
        return self.kind == DataKind.USAGE
