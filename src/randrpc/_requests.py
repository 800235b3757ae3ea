"""
Request option objects for the random.org JSON-RPC methods.

Each generation method has one frozen request class listing its options
with their defaults. The `signed` flag selects the signed counterpart of the
method (e.g. `generateSignedIntegers`), and `id` defaults to a random 31-bit
integer. Options are validated on construction.

Example:
    >>> request = IntegersRequest(n=6, min=1, max=49, replacement=False)
    >>> request.method
    'generateIntegers'
    >>> IntegersRequest(n=6, min=1, max=49, signed=True).method
    'generateSignedIntegers'
"""

import random
import string
from dataclasses import dataclass, field
from typing import Any, ClassVar

from randrpc._json import JsonString, serialize_object
from randrpc._models import DataKind

# Characters used by `generateStrings` when none are given: a-z, then A-Z
DEFAULT_CHARACTERS = string.ascii_lowercase + string.ascii_uppercase

MAX_N = 10_000
MAX_UUIDS = 1_000
MAX_BLOBS = 100
MAX_BLOB_SIZE = 1024 * 1024
BLOB_FORMATS = ("base64", "hex")


class RequestValidationError(ValueError):
    """
    Raised when a request option is out of its allowed range.

    Attributes:
        field: Name of the offending option.
        value: The rejected value.

    Example:
        >>> IntegersRequest(n=0, min=1, max=6)
        Traceback (most recent call last):
        ...
        randrpc._requests.RequestValidationError: Invalid 'n': 0 (must be within [1, 10000])
    """

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid '{field}': {value!r} ({message})")


def _random_id() -> int:
    return random.randint(0, 2**31 - 1)


def _check_range(name: str, value: Any, low: float, high: float) -> None:
    if value is None or not (low <= value <= high):
        raise RequestValidationError(name, value, f"must be within [{low:g}, {high:g}]")


# =============================================================================
# Base Request
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class RpcRequest:
    """
    Base class of all request option objects.

    Attributes:
        signed: Whether to call the signed counterpart of the method.
        id: Request id echoed by the server. Random 31-bit integer by default.
    """
    signed: bool = False
    id: int = field(default_factory=_random_id)

    base_kind: ClassVar[DataKind]
    method_suffix: ClassVar[str]

    def __post_init__(self) -> None:
        assert self.id is not None, "Request id cannot be None."
        self.validate()

    def validate(self) -> None:
        """
        Validate the options of this request.

        Raises:
            RequestValidationError: If an option is out of range.
        """
        pass

    @property
    def kind(self) -> DataKind:
        """The data kind the server will answer with."""
        return self.base_kind.with_signature(self.signed)

    @property
    def method(self) -> str:
        """The JSON-RPC method name."""
        return f"generate{'Signed' if self.signed else ''}{self.method_suffix}"

    def params(self) -> list[Any]:
        """Return the method's parameters (besides `apiKey`) as alternating key/value entries."""
        return []

    def to_params(self, api_key: str) -> str:
        """
        Serialize the JSON-RPC params object of this request.

        Args:
            api_key: The random.org API key.

        Returns:
            The params object, serialized with the built-in codec.
        """
        assert api_key, "API key cannot be empty."
        return serialize_object("apiKey", JsonString(api_key), *self.params())


# =============================================================================
# Generation Requests
# =============================================================================


@dataclass(frozen=True)
class IntegersRequest(RpcRequest):
    """
    Options of `generateIntegers`: true random integers within a range.

    Attributes:
        n: How many integers to generate, within [1, 1e4].
        min: Lower bound (inclusive), within [-1e9, 1e9].
        max: Upper bound (inclusive), within [-1e9, 1e9].
        replacement: If True, the same integer may occur more than once.

    Example:
        >>> IntegersRequest(n=5, min=1, max=6)
    """
    n: int
    min: int
    max: int
    replacement: bool = True

    base_kind: ClassVar[DataKind] = DataKind.INTEGER
    method_suffix: ClassVar[str] = "Integers"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_N)
        _check_range("min", self.min, -1e9, 1e9)
        _check_range("max", self.max, -1e9, 1e9)
        if self.min > self.max:
            raise RequestValidationError("min", self.min, f"must not exceed max={self.max}")

    def params(self) -> list[Any]:
        return ["n", self.n, "min", self.min, "max", self.max, "replacement", self.replacement]


@dataclass(frozen=True)
class DecimalFractionsRequest(RpcRequest):
    """
    Options of `generateDecimalFractions`: uniform decimal fractions in [0, 1].

    Attributes:
        n: How many fractions to generate, within [1, 1e4].
        decimal_places: Number of decimal places, within [1, 20].
        replacement: If True, the same fraction may occur more than once.
    """
    n: int
    decimal_places: int
    replacement: bool = True

    base_kind: ClassVar[DataKind] = DataKind.DECIMAL
    method_suffix: ClassVar[str] = "DecimalFractions"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_N)
        _check_range("decimal_places", self.decimal_places, 1, 20)

    def params(self) -> list[Any]:
        return ["n", self.n, "decimalPlaces", self.decimal_places, "replacement", self.replacement]


@dataclass(frozen=True)
class GaussiansRequest(RpcRequest):
    """
    Options of `generateGaussians`: numbers from a Gaussian distribution.

    Attributes:
        n: How many numbers to generate, within [1, 1e4].
        mean: Mean of the distribution, within [-1e6, 1e6].
        standard_deviation: Standard deviation, within [-1e6, 1e6].
        significant_digits: Significant digits, within [2, 20].
    """
    n: int
    mean: float
    standard_deviation: float
    significant_digits: int

    base_kind: ClassVar[DataKind] = DataKind.GAUSSIAN
    method_suffix: ClassVar[str] = "Gaussians"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_N)
        _check_range("mean", self.mean, -1e6, 1e6)
        _check_range("standard_deviation", self.standard_deviation, -1e6, 1e6)
        _check_range("significant_digits", self.significant_digits, 2, 20)

    def params(self) -> list[Any]:
        return [
            "n", self.n,
            "mean", self.mean,
            "standardDeviation", self.standard_deviation,
            "significantDigits", self.significant_digits,
        ]


@dataclass(frozen=True)
class StringsRequest(RpcRequest):
    """
    Options of `generateStrings`: random strings over a character set.

    Attributes:
        n: How many strings to generate, within [1, 1e4].
        length: Length of each string, within [1, 20].
        characters: Characters that may occur, 1 to 80 of them (a-zA-Z by default).
        replacement: If True, the same string may occur more than once.
    """
    n: int
    length: int
    characters: str = DEFAULT_CHARACTERS
    replacement: bool = True

    base_kind: ClassVar[DataKind] = DataKind.STRING
    method_suffix: ClassVar[str] = "Strings"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_N)
        _check_range("length", self.length, 1, 20)
        if not self.characters or len(self.characters) > 80:
            raise RequestValidationError("characters", self.characters, "must hold 1 to 80 characters")

    def params(self) -> list[Any]:
        return [
            "n", self.n,
            "length", self.length,
            "characters", JsonString(self.characters),
            "replacement", self.replacement,
        ]


@dataclass(frozen=True)
class UUIDsRequest(RpcRequest):
    """
    Options of `generateUUIDs`: version 4 UUIDs.

    Attributes:
        n: How many UUIDs to generate, within [1, 1e3].
    """
    n: int

    base_kind: ClassVar[DataKind] = DataKind.UUID
    method_suffix: ClassVar[str] = "UUIDs"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_UUIDS)

    def params(self) -> list[Any]:
        return ["n", self.n]


@dataclass(frozen=True)
class BlobsRequest(RpcRequest):
    """
    Options of `generateBlobs`: Binary Large OBjects.

    Attributes:
        n: How many blobs to generate, within [1, 100].
        size: Size of each blob in bits, within [1, 1048576] and divisible by 8.
        format: Encoding of the blobs, "base64" (default) or "hex".
    """
    n: int
    size: int
    format: str = "base64"

    base_kind: ClassVar[DataKind] = DataKind.BLOB
    method_suffix: ClassVar[str] = "Blobs"

    def validate(self) -> None:
        _check_range("n", self.n, 1, MAX_BLOBS)
        _check_range("size", self.size, 1, MAX_BLOB_SIZE)
        if self.size % 8 != 0:
            raise RequestValidationError("size", self.size, "must be divisible by 8")
        if self.format not in BLOB_FORMATS:
            raise RequestValidationError("format", self.format, f"must be one of {BLOB_FORMATS}")

    def params(self) -> list[Any]:
        return ["n", self.n, "size", self.size, "format", self.format]


# =============================================================================
# Usage Request
# =============================================================================


@dataclass(frozen=True)
class UsageRequest(RpcRequest):
    """Options of `getUsage`. Only `id` applies; usage replies are never signed."""

    base_kind: ClassVar[DataKind] = DataKind.USAGE
    method_suffix: ClassVar[str] = "Usage"

    def validate(self) -> None:
        if self.signed:
            raise RequestValidationError("signed", self.signed, "getUsage has no signed counterpart")

    @property
    def method(self) -> str:
        return "getUsage"
