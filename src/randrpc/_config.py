"""
Global configuration for the randrpc SDK.

Convention over configuration: calling RANDRPC.configure() at application
startup is optional. Without it, the defaults below (plus any RANDRPC_*
environment variables) are used.

Hierarchy of precedence (highest to lowest):
1. Arguments and ClientOptions passed to RandomOrgClient
2. Values set via RANDRPC.configure()
3. Environment variables (RANDRPC_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from randrpc import RANDRPC
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> tolerance = RANDRPC.config.client.max_blocking_time
    >>>
    >>> # Custom configuration
    >>> RANDRPC.configure(
    ...     auth={"api_key": "00000000-0000-0000-0000-000000000000"},
    ...     client={"max_blocking_time": 5.0},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from functools import wraps
from typing import Any, Self

DEFAULT_BASE_URL = "https://api.random.org/json-rpc/1/invoke"

_SECTIONS = ("auth", "client")
_SENSITIVE_FIELDS = ("api_key",)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


def _to_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("true", "1", "yes", "on"):
        return True
    if normalized in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


class EnvVars:
    """
    Reads environment variables with type conversion.

    Example:
        >>> EnvVars.get("RANDRPC_CLIENT_REQUEST_TIMEOUT", type_hint=float)
        30.0
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if the env var is not set or empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        # Annotations are strings here (from __future__ import annotations)
        type_str = str(type_hint)

        if type_hint is int or type_str == "int":
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return _to_bool
        return str


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration sections.

    Provides `.with_overrides()` for partial updates (unknown field names are
    rejected) and `.with_env_vars()` for applying the env vars declared in
    field metadata.

    Example:
        >>> config = ClientConfig()
        >>> config.with_overrides({"request_timeout": 60}).request_timeout
        60
    """

    def with_overrides(
        self,
        overrides: dict[str, Any],
        allow_none_fields: set[str] | None = None,
    ) -> Self:
        """
        Return a new instance with the given fields overridden.

        Args:
            overrides: Dict of field names to new values. None values are ignored
                unless listed in `allow_none_fields`.
            allow_none_fields: Field names that accept None as a value.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        allow_none = allow_none_fields or set()
        filtered = {k: v for k, v in overrides.items() if v is not None or k in allow_none}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return a new instance with environment variables applied.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.type,
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class SdkConfig:
    """
    SDK metadata (read-only, not configurable).

    Attributes:
        version: The installed SDK version.
    """

    version: str

    @classmethod
    def detect(cls) -> SdkConfig:
        from randrpc import __version__

        return cls(version=__version__)


@dataclass(frozen=True)
class AuthConfig(OverridableConfig):
    """
    Authentication configuration for the random.org API.

    Attributes:
        api_key: The random.org API key, used to track the key's bit allowance.
            Env var: RANDRPC_AUTH_API_KEY

    Example:
        >>> from randrpc import RANDRPC
        >>> if RANDRPC.config.auth.has_api_key():
        ...     print("API key configured")
    """

    api_key: str | None = field(default=None, metadata={"env": "RANDRPC_AUTH_API_KEY"})

    def has_api_key(self) -> bool:
        """Check if a non-blank API key is set."""
        return bool(self.api_key and self.api_key.strip())

    def validate(self) -> Self:
        """Validate auth configuration fields."""
        if self.api_key is not None and not self.api_key.strip():
            raise ConfigValidationError(
                "api_key", self.api_key,
                "Must not be empty or whitespace.", section="auth"
            )
        return self


@dataclass(frozen=True)
class ClientConfig(OverridableConfig):
    """
    Configuration for RandomOrgClient.

    These settings are used as defaults when creating a RandomOrgClient
    without explicitly providing ClientOptions.

    Attributes:
        base_url: The JSON-RPC endpoint.
            Env var: RANDRPC_CLIENT_BASE_URL

        request_timeout: HTTP request timeout in seconds.
            Env var: RANDRPC_CLIENT_REQUEST_TIMEOUT

        max_blocking_time: Maximum seconds a call may block waiting for the
            server's advisory delay. Longer waits are refused with
            PacingExceededError instead.
            Env var: RANDRPC_CLIENT_MAX_BLOCKING_TIME

        raise_protocol_errors: If True, server-reported errors raise
            ProtocolError. If False (default), they are returned as
            Error-variant responses.
            Env var: RANDRPC_CLIENT_RAISE_PROTOCOL_ERRORS

    Example:
        >>> from randrpc import RANDRPC
        >>> RANDRPC.config.client.max_blocking_time
        3.0
    """

    base_url: str = field(default=DEFAULT_BASE_URL, metadata={"env": "RANDRPC_CLIENT_BASE_URL"})
    request_timeout: float = field(default=30, metadata={"env": "RANDRPC_CLIENT_REQUEST_TIMEOUT"})
    max_blocking_time: float = field(default=3.0, metadata={"env": "RANDRPC_CLIENT_MAX_BLOCKING_TIME"})
    raise_protocol_errors: bool = field(default=False, metadata={"env": "RANDRPC_CLIENT_RAISE_PROTOCOL_ERRORS"})

    def validate(self) -> Self:
        """Validate client configuration fields."""
        if not self.base_url:
            raise ConfigValidationError(
                "base_url", self.base_url,
                "Must not be empty.", section="client"
            )
        if not (self.base_url.startswith("http://") or self.base_url.startswith("https://")):
            raise ConfigValidationError(
                "base_url", self.base_url,
                "Must start with 'http://' or 'https://'.", section="client"
            )
        if self.request_timeout <= 0:
            raise ConfigValidationError(
                "request_timeout", self.request_timeout,
                "Must be greater than 0.", section="client"
            )
        if self.max_blocking_time < 0:
            raise ConfigValidationError(
                "max_blocking_time", self.max_blocking_time,
                "Must be non-negative.", section="client"
            )
        return self


# =============================================================================
# Source Tracking
# =============================================================================


@dataclass(frozen=True)
class ConfigEntry:
    """
    A configuration field with its resolved value and source.

    Attributes:
        name: The field name (e.g., "request_timeout").
        value: The resolved value.
        source: Where the value came from:
            - "default": Hardcoded default value
            - "env:VAR_NAME": Environment variable
            - "user": Set via RANDRPC.configure()

    Example:
        >>> ConfigEntry("request_timeout", 60, "user").formatted_value
        '60'
    """

    name: str
    value: Any
    source: str

    @property
    def formatted_value(self) -> str:
        """
        Return the value formatted for display.

        Sensitive fields (the API key) are masked and long strings truncated.

        Examples:
            >>> ConfigEntry("api_key", "6b1e65b9-4186-45c2-8981-b77a9842c4f0", "user").formatted_value
            '6b1e********c4f0'
            >>> ConfigEntry("api_key", "short", "user").formatted_value
            '********t'
        """
        if self.name in _SENSITIVE_FIELDS and self.value is not None:
            secret = str(self.value)
            if len(secret) >= 12:
                return f"{secret[:4]}********{secret[-4:]}"
            if len(secret) >= 3:
                visible = max(1, len(secret) // 3)
                return f"********{secret[-visible:]}"
            return "********"

        if self.value is None:
            return "None"

        str_value = str(self.value)
        max_length = 50
        if len(str_value) > max_length:
            return str_value[: max_length - 3] + "..."

        return str_value


@dataclass(frozen=True)
class RandRpcConfigTracker:
    """
    Tracks where each configuration value came from.

    Attributes:
        sources: Source of each touched field.
            Structure: {"section": {"field": "source"}}
            Source values: "env:VAR_NAME" or "user"

    Example:
        >>> tracker = RandRpcConfigTracker()
        >>> tracker = tracker.with_changes_tracked(new_cfg, "env")
        >>> tracker.sources.get("client", {}).get("request_timeout")
        'env:RANDRPC_CLIENT_REQUEST_TIMEOUT'
    """

    sources: dict[str, dict[str, str]] = field(default_factory=dict)

    @staticmethod
    def track_changes(
        source_type: str,
    ) -> Callable[[Callable[..., RandRpcConfig]], Callable[..., RandRpcConfig]]:
        """
        Decorator that records the fields touched by the decorated method.

        Args:
            source_type: Source label for tracking ("env" or "user").
        """

        def decorator(
            method: Callable[..., RandRpcConfig],
        ) -> Callable[..., RandRpcConfig]:
            @wraps(method)
            def wrapper(self: RandRpcConfig, *args: Any, **kwargs: Any) -> RandRpcConfig:
                new_config = method(self, *args, **kwargs)
                new_tracker = self._tracker.with_changes_tracked(
                    new_config, source_type, overrides=kwargs
                )
                return replace(new_config, _tracker=new_tracker)

            return wrapper

        return decorator

    def with_changes_tracked(
        self,
        new_config: RandRpcConfig,
        source_type: str,
        overrides: dict[str, Any] | None = None,
    ) -> RandRpcConfigTracker:
        """
        Return a new tracker with the fields touched by a source recorded.

        A field is touched when the source provided it, even if the value is
        unchanged.

        Args:
            new_config: The config after changes.
            source_type: Source label ("env" or "user").
            overrides: For the "user" source, the dict of overrides per section.
        """
        new_sources = {section: dict(flds) for section, flds in self.sources.items()}

        for section_name in _SECTIONS:
            section_overrides = (overrides or {}).get(section_name) or {}
            for f in fields(getattr(new_config, section_name)):
                env_var = f.metadata.get("env")
                if source_type == "env":
                    # Same rule as EnvVars.get: empty means unset
                    if env_var and os.environ.get(env_var):
                        new_sources.setdefault(section_name, {})[f.name] = f"env:{env_var}"
                elif source_type == "user" and f.name in section_overrides:
                    new_sources.setdefault(section_name, {})[f.name] = "user"

        return RandRpcConfigTracker(sources=new_sources)


@dataclass(frozen=True)
class RandRpcConfig:
    """
    Global configuration for the randrpc SDK.

    Access via the global `RANDRPC.config` property.

    Attributes:
        sdk: SDK metadata (version). Read-only.
        auth: Authentication configuration.
        client: RandomOrgClient configuration.

    Example:
        >>> from randrpc import RANDRPC
        >>> RANDRPC.config.client.base_url
        'https://api.random.org/json-rpc/1/invoke'
        >>> RANDRPC.config.auth.has_api_key()
        False
    """

    sdk: SdkConfig = field(default_factory=SdkConfig.detect)
    auth: AuthConfig = field(default_factory=AuthConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    _tracker: RandRpcConfigTracker = field(default_factory=RandRpcConfigTracker, repr=False)

    @RandRpcConfigTracker.track_changes("env")
    def with_env_vars(self) -> RandRpcConfig:
        """Return a new config with RANDRPC_* environment variables applied on top."""
        return RandRpcConfig(
            sdk=self.sdk,
            auth=self.auth.with_env_vars(),
            client=self.client.with_env_vars(),
        )

    @RandRpcConfigTracker.track_changes("user")
    def with_section_overrides(
        self,
        *,
        auth: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
    ) -> RandRpcConfig:
        """
        Return a new config with overrides applied to nested sections.

        Args:
            auth: Authentication config overrides.
            client: Client config overrides.

        Example:
            >>> RandRpcConfig().with_section_overrides(client={"request_timeout": 60})
        """
        return RandRpcConfig(
            sdk=self.sdk,
            auth=self.auth.with_overrides(auth or {}),
            client=self.client.with_overrides(client or {}),
        )

    def explain_data(self) -> dict[str, list[ConfigEntry]]:
        """
        Return config values and their sources, per section.

        Example:
            >>> for entry in RandRpcConfig().with_env_vars().explain_data()["client"]:
            ...     print(f"{entry.name}: {entry.value} ({entry.source})")
            base_url: https://api.random.org/json-rpc/1/invoke (default)
            ...
        """
        result: dict[str, list[ConfigEntry]] = {
            "sdk": [
                ConfigEntry(name=f.name, value=getattr(self.sdk, f.name), source="-")
                for f in fields(self.sdk)
            ]
        }

        for section_name in _SECTIONS:
            section_config = getattr(self, section_name)
            section_sources = self._tracker.sources.get(section_name, {})
            result[section_name] = [
                ConfigEntry(
                    name=f.name,
                    value=getattr(section_config, f.name),
                    source=section_sources.get(f.name, "default"),
                )
                for f in fields(section_config)
            ]

        return result


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _RandRpc:
    """
    Singleton for SDK configuration.

    Example:
        >>> from randrpc import RANDRPC
        >>> RANDRPC.configure(auth={"api_key": "..."})
        >>> print(RANDRPC.config.client.request_timeout)
    """

    def __init__(self) -> None:
        self._config: RandRpcConfig = RandRpcConfig().with_env_vars()

    def configure(
        self,
        *,
        auth: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> RandRpcConfig:
        """
        Configure SDK settings.

        Call at application startup to customize defaults.

        Args:
            auth: Authentication config overrides (api_key).
            client: Client config overrides (base_url, request_timeout,
                max_blocking_time, raise_protocol_errors).
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, env vars are ignored entirely.

        Returns:
            The configured RandRpcConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.

        Example:
            >>> RANDRPC.configure(
            ...     auth={"api_key": "..."},
            ...     client={"raise_protocol_errors": True},
            ... )
        """
        base = RandRpcConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(auth=auth, client=client)
        return self.validate()

    @property
    def config(self) -> RandRpcConfig:
        """Access the current configuration (read-only)."""
        return self._config

    def reset(self) -> RandRpcConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config = RandRpcConfig().with_env_vars()
        return self.validate()

    def validate(self) -> RandRpcConfig:
        """
        Validate the current configuration.

        Called automatically on module load and after configure().

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.auth.validate()
        self._config.client.validate()
        return self._config

    def explain(
        self,
        output: Callable[[str], None] = print,
    ) -> None:
        """
        Print the current configuration with sources.

        Args:
            output: Callable to output each line. Defaults to print.
                    Can be used with logging: `RANDRPC.explain(logger.info)`

        Example:
            >>> RANDRPC.explain()
            RANDRPC Configuration:
            ====================
            [client]
              max_blocking_time ....... 5.0 ✎ user
            ...
        """
        name_width = 25
        value_width = 50
        total_width = 2 + name_width + 2 + (value_width + 2) + 1 + 8

        output("RANDRPC Configuration:")
        output("=" * total_width)

        output(f"  {'Field':<{name_width}} │ {'Value':<{value_width}} │ Source")
        output(f"--{'-' * name_width}-+{'-' * (value_width + 2)}+--------")

        for section_name, entries in self._config.explain_data().items():
            output(f"[{section_name}]")
            for entry in entries:
                dots = "." * (name_width - len(entry.name))
                value_padded = entry.formatted_value.ljust(value_width)
                marker = "✎" if entry.source not in ("default", "-") else " "
                output(f"  {entry.name} {dots} {value_padded} {marker} {entry.source}")

        output("=" * total_width)

    def __repr__(self) -> str:
        return f"RANDRPC(config={self._config!r})"


# Global singleton instance - always reflects current configuration
RANDRPC: _RandRpc = _RandRpc()
RANDRPC.validate()
