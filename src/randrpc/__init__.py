"""
random.org JSON-RPC SDK for Python.

A Python SDK for the random.org JSON-RPC API (true random numbers, strings,
UUIDs and blobs, optionally signed), with a built-in JSON codec and
client-side pacing that honours the server's advisory delay.

Quick Start:
    >>> from randrpc import RandomOrgClient, IntegersRequest
    >>> client = RandomOrgClient(api_key="6b1e65b9-4186-45c2-8981-b77a9842c4f0")
    >>> response = client.generate_integers(IntegersRequest(n=6, min=1, max=49))
    >>> print(response.integers)

Signed responses:
    >>> response = client.generate_uuids(UUIDsRequest(n=2, signed=True))
    >>> client.verify_signature(response.random, response.signature)
    True

Global Configuration:
    >>> from randrpc import RANDRPC
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> tolerance = RANDRPC.config.client.max_blocking_time
    >>>
    >>> # Custom configuration
    >>> RANDRPC.configure(
    ...     auth={"api_key": "6b1e65b9-4186-45c2-8981-b77a9842c4f0"},
    ...     client={"max_blocking_time": 5.0, "raise_protocol_errors": True},
    ... )

Main Classes:
    - RandomOrgClient: Client for the random.org JSON-RPC API.
    - ClientOptions: Per-client options (timeouts, pacing tolerance, error policy).
    - IntegersRequest, DecimalFractionsRequest, GaussiansRequest, StringsRequest,
      UUIDsRequest, BlobsRequest, UsageRequest: Request option objects.
    - Response: Tagged response holding exactly one payload.
    - DataKind: Payload kind of a response.
    - Usage, UsageStatus: API key usage record.

JSON:
    - parse, serialize, serialize_object, serialize_array: Built-in JSON codec.
    - JsonValue and its variants: Dynamic JSON value model.

Pacing and transport:
    - PacingState: Advisory delay bookkeeping.
    - RpcDispatcher: JSON-RPC dispatcher enforcing the advisory delay.
    - HttpClient, RequestsHttpClient: HTTP transports.

Configuration:
    - RANDRPC: Global SDK singleton for configuration.
    - RandRpcConfig, AuthConfig, ClientConfig, SdkConfig: Configuration dataclasses.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("randrpc")

from randrpc._classifier import classify
from randrpc._client import ClientOptions, RandomOrgClient
from randrpc._config import (
    RANDRPC,
    AuthConfig,
    ClientConfig,
    ConfigEntry,
    ConfigEnvVarError,
    ConfigValidationError,
    RandRpcConfig,
    SdkConfig,
)
from randrpc._dispatcher import RpcDispatcher
from randrpc._http import HttpClient, RequestsHttpClient, TransportError
from randrpc._json import (
    JSON_FALSE,
    JSON_NULL,
    JSON_TRUE,
    MAX_NESTING_DEPTH,
    InvalidKeyError,
    InvalidNumberError,
    JsonArray,
    JsonBoolean,
    JsonDouble,
    JsonError,
    JsonFormatError,
    JsonInteger,
    JsonLong,
    JsonNull,
    JsonObject,
    JsonParseError,
    JsonSerializeError,
    JsonString,
    JsonTypeError,
    JsonValue,
    KeyTypeError,
    UnexpectedEOFError,
    UnknownTokenError,
    parse,
    serialize,
    serialize_array,
    serialize_object,
)
from randrpc._models import (
    DECODE_FAILURE_CODE,
    DataKind,
    DecodeError,
    PayloadKindError,
    ProtocolError,
    Response,
    RpcError,
    Usage,
    UsageStatus,
)
from randrpc._pacing import PacingCancelledError, PacingExceededError, PacingState
from randrpc._requests import (
    DEFAULT_CHARACTERS,
    BlobsRequest,
    DecimalFractionsRequest,
    GaussiansRequest,
    IntegersRequest,
    RequestValidationError,
    RpcRequest,
    StringsRequest,
    UsageRequest,
    UUIDsRequest,
)

__all__ = [
    "__version__",
    # Configuration
    "RANDRPC",
    "RandRpcConfig",
    "SdkConfig",
    "ConfigEntry",
    "ConfigEnvVarError",
    "ConfigValidationError",
    "AuthConfig",
    "ClientConfig",
    # Client
    "RandomOrgClient",
    "ClientOptions",
    # Requests
    "RpcRequest",
    "IntegersRequest",
    "DecimalFractionsRequest",
    "GaussiansRequest",
    "StringsRequest",
    "UUIDsRequest",
    "BlobsRequest",
    "UsageRequest",
    "RequestValidationError",
    "DEFAULT_CHARACTERS",
    # Responses
    "Response",
    "DataKind",
    "Usage",
    "UsageStatus",
    "RpcError",
    "DECODE_FAILURE_CODE",
    "classify",
    "DecodeError",
    "PayloadKindError",
    "ProtocolError",
    # Pacing and transport
    "PacingState",
    "PacingExceededError",
    "PacingCancelledError",
    "RpcDispatcher",
    "HttpClient",
    "RequestsHttpClient",
    "TransportError",
    # JSON
    "parse",
    "serialize",
    "serialize_object",
    "serialize_array",
    "JsonValue",
    "JsonObject",
    "JsonArray",
    "JsonString",
    "JsonInteger",
    "JsonLong",
    "JsonDouble",
    "JsonBoolean",
    "JsonNull",
    "JSON_NULL",
    "JSON_TRUE",
    "JSON_FALSE",
    "MAX_NESTING_DEPTH",
    "JsonError",
    "JsonParseError",
    "UnexpectedEOFError",
    "UnknownTokenError",
    "InvalidNumberError",
    "JsonFormatError",
    "InvalidKeyError",
    "JsonSerializeError",
    "KeyTypeError",
    "JsonTypeError",
]
