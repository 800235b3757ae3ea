"""
random.org JSON-RPC client.

This module provides the synchronous client facade: it validates request
options, sends them through the pacing-aware dispatcher, classifies the
replies and applies the configured protocol-error policy.
"""

import base64
import hashlib
import logging
import random
import threading
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from randrpc._config import ClientConfig

from randrpc._classifier import classify
from randrpc._dispatcher import RpcDispatcher
from randrpc._http import HttpClient, RequestsHttpClient
from randrpc._json import JsonObject, JsonString, JsonTypeError, serialize, serialize_object
from randrpc._models import DataKind, DecodeError, ProtocolError, Response
from randrpc._pacing import PacingState
from randrpc._requests import (
    BlobsRequest,
    DecimalFractionsRequest,
    GaussiansRequest,
    IntegersRequest,
    RpcRequest,
    StringsRequest,
    UsageRequest,
    UUIDsRequest,
)

logger = logging.getLogger(__name__)

VERIFY_SIGNATURE_METHOD = "verifySignature"

# Usage counters the server adds to a signed `random` object; they are not part of what was signed
_USAGE_FIELDS = ("bitsUsed", "bitsLeft", "requestsLeft", "advisoryDelay")


@dataclass(frozen=True)
class ClientOptions:
    """
    Configuration options for RandomOrgClient.

    Fields set to None will use values from global config (RANDRPC.config.client).

    Attributes:
        request_timeout: HTTP request timeout in seconds.
        max_blocking_time: Maximum seconds a call may block to honour the
            server's advisory delay. Longer waits raise PacingExceededError.
        raise_protocol_errors: If True, server-reported errors raise
            ProtocolError instead of being returned as Error-variant responses.

    Example:
        >>> options = ClientOptions(max_blocking_time=10.0, raise_protocol_errors=True)
        >>> client = RandomOrgClient(api_key="...", options=options)
    """
    request_timeout: float | None = None
    max_blocking_time: float | None = None
    raise_protocol_errors: bool | None = None

    def with_defaults_from(self, cfg: "ClientConfig") -> "ClientOptions":
        """
        Returns a new ClientOptions with None values filled from config.

        Args:
            cfg: The ClientConfig to use for default values.

        Returns:
            A new ClientOptions with all fields resolved (no None values).
        """
        return ClientOptions(
            request_timeout=self.request_timeout if self.request_timeout is not None else cfg.request_timeout,
            max_blocking_time=self.max_blocking_time if self.max_blocking_time is not None else cfg.max_blocking_time,
            raise_protocol_errors=self.raise_protocol_errors if self.raise_protocol_errors is not None else cfg.raise_protocol_errors,
        )


class RandomOrgClient:
    """
    Synchronous client for the random.org JSON-RPC API.

    Every call honours the `advisoryDelay` of the previous reply: it blocks
    for the remaining delay when it is within `max_blocking_time`, and is
    refused with `PacingExceededError` (without any network call) otherwise.
    A client can be shared between threads; calls are serialized.

    Example:
        >>> from randrpc import RandomOrgClient, IntegersRequest
        >>> client = RandomOrgClient(api_key="6b1e65b9-4186-45c2-8981-b77a9842c4f0")
        >>> response = client.generate_integers(IntegersRequest(n=6, min=1, max=49))
        >>> if not response.has_error():
        ...     print(response.integers)

    Attributes:
        api_key: The random.org API key.
        base_url: The JSON-RPC endpoint.
        options: Resolved configuration options for the client.
        http_client: HTTP transport (default: RequestsHttpClient).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        options: ClientOptions | None = None,
        http_client: HttpClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: The random.org API key.
                If None, uses global config (RANDRPC.config.auth.api_key).
            base_url: The JSON-RPC endpoint.
                If None, uses global config (RANDRPC.config.client.base_url).
            options: Configuration options for the client.
                Partial options are merged with config defaults via with_defaults_from().
            http_client: Custom HTTP transport. If None, uses RequestsHttpClient.

        Raises:
            ValueError: If the API key is missing, empty or whitespace, or if
                max_blocking_time is negative.
        """
        from randrpc._config import RANDRPC
        cfg = RANDRPC.config

        resolved_options = (options or ClientOptions()).with_defaults_from(cfg.client)

        if api_key is None:
            api_key = cfg.auth.api_key
        if base_url is None:
            base_url = cfg.client.base_url

        if not api_key or not api_key.strip():
            raise ValueError("api_key should contain a valid key.")

        assert resolved_options.max_blocking_time is not None, \
            "🌀 Sanity check | max_blocking_time must be set after with_defaults_from()"
        assert resolved_options.request_timeout is not None, \
            "🌀 Sanity check | request_timeout must be set after with_defaults_from()"
        if resolved_options.max_blocking_time < 0:
            raise ValueError(f"max_blocking_time cannot be negative: {resolved_options.max_blocking_time}")

        self._owns_http_client = http_client is None
        if not http_client:
            http_client = RequestsHttpClient()

        assert base_url, "Client base_url cannot be empty."

        self.api_key = api_key
        self.base_url = base_url
        self.options = resolved_options
        self.http_client: HttpClient = http_client

        self._pacing = PacingState(max_blocking_time=resolved_options.max_blocking_time)
        self._dispatcher = RpcDispatcher(
            http_client=http_client,
            base_url=base_url,
            pacing=self._pacing,
            request_timeout=resolved_options.request_timeout,
        )

    # -------------------------------------------------------------------------
    # Pacing
    # -------------------------------------------------------------------------

    @property
    def max_blocking_time(self) -> float:
        """Maximum seconds a call may block waiting for the advisory delay."""
        return self._pacing.max_blocking_time

    @max_blocking_time.setter
    def max_blocking_time(self, value: float) -> None:
        if value is None or value < 0:
            raise ValueError(f"max_blocking_time cannot be negative: {value}")
        self._pacing.max_blocking_time = value

    def time_until_next_request(self) -> float:
        """Return the seconds remaining before the next request is allowed (0.0 if none)."""
        return self._pacing.time_until_next_allowed()

    def reset_pacing(self) -> None:
        """Forget the server's current advisory delay."""
        self._pacing.reset()

    @cached_property
    def hashed_api_key(self) -> str:
        """The base64-encoded SHA-512 hash of the API key, as found in signed `random` objects."""
        digest = hashlib.sha512(self.api_key.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    # -------------------------------------------------------------------------
    # Generation methods
    # -------------------------------------------------------------------------

    def generate_integers(
        self,
        request: IntegersRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate true random integers within a user-defined range.

        Args:
            request: The options of the request (`signed=True` for a signed response).
            cancel_event: Optional event that interrupts a pacing wait.

        Returns:
            A Response of kind INTEGER (or SIGNED_INTEGER), or an Error-variant response.

        Raises:
            PacingExceededError: If the advised wait exceeds max_blocking_time.
            PacingCancelledError: If the pacing wait was cancelled.
            TransportError: On network failures and non-2xx statuses.
            JsonParseError: If the reply is not valid JSON.
            DecodeError: If the reply does not match the expected kind.
            ProtocolError: If the server reported an error and raise_protocol_errors is set.

        Example:
            >>> response = client.generate_integers(IntegersRequest(n=5, min=1, max=6))
            >>> response.integers
            (3, 6, 1, 1, 4)
        """
        assert isinstance(request, IntegersRequest), "🌀 Sanity check | Expected an IntegersRequest."
        return self._execute(request, cancel_event)

    def generate_decimal_fractions(
        self,
        request: DecimalFractionsRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate true random decimal fractions from a uniform distribution in [0, 1].

        See `generate_integers()` for the errors raised.
        """
        assert isinstance(request, DecimalFractionsRequest), "🌀 Sanity check | Expected a DecimalFractionsRequest."
        return self._execute(request, cancel_event)

    def generate_gaussians(
        self,
        request: GaussiansRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate true random numbers from a Gaussian distribution.

        See `generate_integers()` for the errors raised.
        """
        assert isinstance(request, GaussiansRequest), "🌀 Sanity check | Expected a GaussiansRequest."
        return self._execute(request, cancel_event)

    def generate_strings(
        self,
        request: StringsRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate true random strings.

        See `generate_integers()` for the errors raised.
        """
        assert isinstance(request, StringsRequest), "🌀 Sanity check | Expected a StringsRequest."
        return self._execute(request, cancel_event)

    def generate_uuids(
        self,
        request: UUIDsRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate version 4 true random UUIDs.

        See `generate_integers()` for the errors raised.
        """
        assert isinstance(request, UUIDsRequest), "🌀 Sanity check | Expected a UUIDsRequest."
        return self._execute(request, cancel_event)

    def generate_blobs(
        self,
        request: BlobsRequest,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Generate Binary Large OBjects containing true random data.

        See `generate_integers()` for the errors raised.
        """
        assert isinstance(request, BlobsRequest), "🌀 Sanity check | Expected a BlobsRequest."
        return self._execute(request, cancel_event)

    def get_usage(
        self,
        request: UsageRequest | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        """
        Return information about the usage of the API key.

        Returns:
            A Response of kind USAGE, or an Error-variant response.

        Example:
            >>> usage = client.get_usage().usage
            >>> print(usage.status, usage.total_bits)
        """
        return self._execute(request or UsageRequest(), cancel_event)

    def verify_signature(
        self,
        random_object: JsonObject,
        signature: str,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """
        Verify the signature of a previously received signed response.

        Usage counters (`bitsUsed`, `bitsLeft`, `requestsLeft`, `advisoryDelay`)
        are removed from `random_object` before it is sent, since they are not
        part of the signed data.

        Args:
            random_object: The `random` object of a signed response (`response.random`).
            signature: The signature of that response (`response.signature`).
            cancel_event: Optional event that interrupts a pacing wait.

        Returns:
            True if random.org confirms the authenticity of the object.
            False if it does not, or if it reported an error and
            raise_protocol_errors is not set.

        Raises:
            ProtocolError: If the server reported an error and raise_protocol_errors is set.
            DecodeError: If the reply carries no boolean `authenticity`.

        Example:
            >>> response = client.generate_integers(IntegersRequest(n=5, min=1, max=6, signed=True))
            >>> client.verify_signature(response.random, response.signature)
            True
        """
        assert random_object is not None, "🌀 Sanity check | Random object cannot be None."
        assert signature, "🌀 Sanity check | Signature cannot be empty."

        request_id = random.randint(0, 2**31 - 1)
        params = serialize_object(
            "random", serialize(random_object.without(*_USAGE_FIELDS)),
            "signature", JsonString(signature),
        )
        raw = self._dispatcher.dispatch(VERIFY_SIGNATURE_METHOD, params, request_id, cancel_event)

        error = raw.get("error")
        if error is not None and not error.is_null():
            response = classify(raw, DataKind.USAGE)
            self._apply_error_policy(response, request_id)
            return False

        try:
            authentic = raw["result"].as_object()["authenticity"].as_bool()
        except (JsonTypeError, KeyError) as e:
            logger.error(f"{request_id:<10} | Client | ❌ Reply carries no boolean 'authenticity'.")
            raise DecodeError("Reply carries no boolean 'authenticity'.", cause=e) from e

        logger.info(f"{request_id:<10} | Client | Signature verified: authenticity={authentic}")
        return authentic

    def close(self) -> None:
        """Close the HTTP transport, if it was created by this client."""
        if self._owns_http_client and isinstance(self.http_client, RequestsHttpClient):
            self.http_client.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _execute(self, request: RpcRequest, cancel_event: threading.Event | None) -> Response:
        assert request is not None, "🌀 Sanity check | Request cannot be None."

        raw = self._dispatcher.dispatch(
            method=request.method,
            serialized_params=request.to_params(self.api_key),
            id=request.id,
            cancel_event=cancel_event,
        )
        response = classify(raw, request.kind)
        return self._apply_error_policy(response, request.id)

    def _apply_error_policy(self, response: Response, request_id: int) -> Response:
        if not response.has_error():
            return response

        error = response.error
        if self.options.raise_protocol_errors:
            logger.error(f"{request_id:<10} | Client | ❌ Server reported error ({error.code}): {error.message}")
            raise ProtocolError(code=error.code, message=error.message, response=response)

        logger.warning(f"{request_id:<10} | Client | ⚠️ Server reported error ({error.code}): {error.message}")
        return response
