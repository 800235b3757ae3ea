"""
HTTP transport abstraction for the randrpc SDK.

The JSON-RPC layer only needs one capability from the network: POST a body
and read the reply body. This module defines that interface and its default
implementation on top of `requests`.

Available implementations:
    - HttpClient: Abstract base class for transports.
    - RequestsHttpClient: Default transport using a pooled `requests.Session`.

Example:
    >>> from randrpc._http import RequestsHttpClient
    >>> client = RequestsHttpClient()
    >>> response = client.post(
    ...     "https://api.random.org/json-rpc/1/invoke",
    ...     data=b'{"jsonrpc":"2.0","method":"getUsage","params":{"apiKey":"..."},"id":1}',
    ...     headers={"Content-Type": "application/json"},
    ... )
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import override

import requests

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class TransportError(Exception):
    """
    Raised when the HTTP exchange itself fails.

    Covers connection failures, timeouts and non-2xx statuses. It is distinct
    from `PacingExceededError` (no request was sent) and from `ProtocolError`
    (the server answered with a JSON-RPC error). Never retried internally.

    Attributes:
        status_code: HTTP status code, or None when no response was received.
        response: The HTTP response, or None when no response was received.

    Example:
        >>> try:
        ...     client.get_usage()
        ... except TransportError as e:
        ...     if e.is_timeout():
        ...         print("Network timeout")
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: requests.Response | None = None,
    ):
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    def is_timeout(self) -> bool:
        """Return True if this failure was caused by a network timeout."""
        return isinstance(self.__cause__, (requests.Timeout, TimeoutError))

    @classmethod
    def from_request_exception(cls, exc: OSError) -> "TransportError":
        """Build a TransportError from a `requests` exception (or a bare `OSError`), keeping its status code."""
        response = getattr(exc, "response", None)
        if response is not None:
            return cls(
                f"HTTP error {response.status_code}: {exc}",
                status_code=response.status_code,
                response=response,
            )
        return cls(f"HTTP request failed: {exc}")


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP transports.

    Implementations send raw bytes and return the raw HTTP response. They do
    not interpret the body. Errors surface as `requests.RequestException`
    (or any `OSError`, such as `ConnectionRefusedError`).

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def post(self, url, data, headers=None, timeout=30):
        ...         return requests.post(url, data=data, headers=headers, timeout=timeout)
    """

    @abstractmethod
    def post(
        self,
        url: str,
        data: bytes,
        headers: dict[str, str] | None = None,
        timeout: float = 30,
    ) -> requests.Response:
        """
        Execute a POST request with a raw body.

        Args:
            url: The full URL to request.
            data: The request body.
            headers: Headers to include.
            timeout: Request timeout in seconds.

        Returns:
            The HTTP response.

        Raises:
            requests.RequestException: If the HTTP request fails.
            OSError: If a socket-level failure is not wrapped by the implementation.
        """
        pass


# =============================================================================
# Requests Implementation
# =============================================================================


class RequestsHttpClient(HttpClient):
    """
    HTTP transport backed by a `requests.Session`.

    The session (and its connection pool) is created lazily on the first
    request, using double-checked locking so the client can be shared
    between threads.

    Example:
        >>> client = RequestsHttpClient()
        >>> response = client.post(url, data=b"{}", headers={"Content-Type": "application/json"})
        >>> client.close()
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session
        self._lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self._session is None:
            with self._lock:
                if self._session is None:
                    logger.debug("RequestsHttpClient: Creating HTTP session.")
                    self._session = requests.Session()
        return self._session

    @override
    def post(
        self,
        url: str,
        data: bytes,
        headers: dict[str, str] | None = None,
        timeout: float = 30,
    ) -> requests.Response:
        """
        Execute a POST request with a raw body.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        return self._get_session().post(
            url,
            data=data,
            headers=headers,
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the underlying session, if one was created."""
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None
