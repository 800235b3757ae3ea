"""
JSON-RPC dispatcher for the randrpc SDK.

Builds the JSON-RPC 2.0 envelope, honours the server's pacing advice, posts
the request through an `HttpClient` and decodes the reply with the built-in
JSON codec.
"""

import logging
import threading

import requests

from randrpc._http import HttpClient, TransportError
from randrpc._json import (
    JsonFormatError,
    JsonObject,
    JsonParseError,
    JsonTypeError,
    parse,
    serialize_object,
)
from randrpc._pacing import PacingState

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
CONTENT_TYPE = "application/json"


class RpcDispatcher:
    """
    Sends JSON-RPC requests while enforcing the server's advisory delay.

    The whole check-wait-send-record sequence runs under one lock. Two
    threads sharing a dispatcher therefore never both skip a wait they owe.

    Example:
        >>> dispatcher = RpcDispatcher(
        ...     http_client=RequestsHttpClient(),
        ...     base_url="https://api.random.org/json-rpc/1/invoke",
        ...     pacing=PacingState(max_blocking_time=3.0),
        ... )
        >>> raw = dispatcher.dispatch("getUsage", '{"apiKey":"..."}', id=42)

    Attributes:
        http_client: Transport used for the POST.
        base_url: The JSON-RPC endpoint.
        pacing: Pacing state updated after every exchange.
        request_timeout: HTTP timeout in seconds.
    """

    def __init__(
        self,
        http_client: HttpClient,
        base_url: str,
        pacing: PacingState,
        request_timeout: float = 30,
    ):
        assert http_client is not None, "Dispatcher http_client cannot be None."
        assert base_url, "Dispatcher base_url cannot be empty."
        assert pacing is not None, "Dispatcher pacing cannot be None."
        assert request_timeout > 0, "Dispatcher request_timeout must be greater than 0."

        self.http_client = http_client
        self.base_url = base_url
        self.pacing = pacing
        self.request_timeout = request_timeout
        self._lock = threading.Lock()

    def dispatch(
        self,
        method: str,
        serialized_params: str,
        id: int,
        cancel_event: threading.Event | None = None,
    ) -> JsonObject:
        """
        Send one JSON-RPC request and return the decoded reply.

        Args:
            method: The JSON-RPC method name.
            serialized_params: The params object, already serialized with the codec.
            id: Request id, echoed by the server.
            cancel_event: Optional event that interrupts a pacing wait.

        Returns:
            The decoded reply object (either a `result` or an `error` branch).

        Raises:
            PacingExceededError: If the advised wait exceeds the tolerance. Nothing is sent.
            PacingCancelledError: If the wait was cancelled. Nothing is sent.
            TransportError: On network failures and non-2xx statuses.
            JsonParseError: If the reply body is not valid UTF-8 JSON (or not an object).
        """
        assert method, "🌀 Sanity check | JSON-RPC method cannot be empty."
        assert serialized_params, "🌀 Sanity check | JSON-RPC params cannot be empty."

        envelope = serialize_object(
            "jsonrpc", JSONRPC_VERSION,
            "method", method,
            "params", serialized_params,
            "id", id,
        )

        with self._lock:
            self.pacing.wait_until_allowed(cancel_event=cancel_event)

            logger.info(f"{id:<10} | RPC | Sending '{method}' request...")
            try:
                body = self._post(envelope, id)
                reply = self._decode(body)
            except (TransportError, JsonParseError):
                self.pacing.record_failed_exchange()
                raise

            advisory_delay_ms = self._advisory_delay_of(reply)
            if advisory_delay_ms is None:
                # Unreadable advice: keep the previous one, the classifier reports the shape error
                logger.warning(f"{id:<10} | RPC | ⚠️ Reply carries an unreadable 'advisoryDelay'.")
                self.pacing.record_failed_exchange()
            else:
                self.pacing.record_exchange(advisory_delay=advisory_delay_ms / 1000)

        logger.info(f"{id:<10} | RPC | ✅ Reply received for '{method}'.")
        return reply

    def _post(self, envelope: str, id: int) -> str:
        try:
            http_response = self.http_client.post(
                self.base_url,
                data=envelope.encode("utf-8"),
                headers={"Content-Type": CONTENT_TYPE},
                timeout=self.request_timeout,
            )
            http_response.raise_for_status()
        except (requests.RequestException, OSError) as e:
            logger.error(
                f"{id:<10} | RPC | ❌ Transport failure: {e}",
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise TransportError.from_request_exception(e) from e

        try:
            return http_response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error(f"{id:<10} | RPC | ❌ Reply body is not valid UTF-8: {e.reason}")
            raise JsonParseError(f"Reply body is not valid UTF-8: {e.reason}", e.start) from e

    @staticmethod
    def _decode(body: str) -> JsonObject:
        value = parse(body)
        if not isinstance(value, JsonObject):
            raise JsonFormatError("JSON-RPC reply object", 0, value.type_name)
        return value

    @staticmethod
    def _advisory_delay_of(reply: JsonObject) -> int | None:
        """
        Return the advisory delay in milliseconds.

        Returns 0 when the field is absent (e.g. error replies), and None when
        it is present but not an integer.
        """
        if "error" in reply:
            return 0
        result = reply.get("result")
        if not isinstance(result, JsonObject):
            return 0
        delay = result.get("advisoryDelay")
        if delay is None or delay.is_null():
            return 0
        try:
            return max(0, delay.as_long())
        except JsonTypeError:
            return None
