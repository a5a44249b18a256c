"""Retirement configuration.

Two layers:
  RetirementConfig   — immutable, validated controller configuration
  RetirementSettings — environment-driven settings (SEPPUKU_* env vars)

Durations are milliseconds. ``max_requests == 0`` disables automatic
triggering by request volume.
"""

from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from seppuku.errors import ConfigurationError

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_MIN_DEFERRAL_MS = 5000
DEFAULT_MAX_DEFERRAL_MS = 10000
DEFAULT_MAX_REQUESTS = 0
DEFAULT_TRAP_FATAL_ERRORS = True
DEFAULT_EXIT_CODE = 1

WeightFunction = Callable[[Any, float], float]
TerminationHandler = Callable[[], Any]


class RetirementConfig(BaseModel):
    """Validated retirement configuration.

    Accepts snake_case names or their camelCase aliases
    (``minDeferralTime``, ``maxRequests``, ...).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    min_deferral_time: float = Field(default=DEFAULT_MIN_DEFERRAL_MS, ge=0)
    max_deferral_time: float = Field(default=DEFAULT_MAX_DEFERRAL_MS, ge=0)
    max_requests: int = Field(default=DEFAULT_MAX_REQUESTS, ge=0)
    trap_fatal_errors: bool = DEFAULT_TRAP_FATAL_ERRORS
    weight_function: Optional[WeightFunction] = None
    custom_termination_handler: Optional[TerminationHandler] = None
    exit_code: int = DEFAULT_EXIT_CODE

    # When True, cancelling a pending retirement re-arms the controller so a
    # later threshold breach or fatal error can retire the process again.
    rearm_after_cancel: bool = False

    @model_validator(mode="after")
    def validate_deferral_window(self) -> "RetirementConfig":
        if self.min_deferral_time > self.max_deferral_time:
            raise ValueError(
                f"min_deferral_time ({self.min_deferral_time}) must not exceed "
                f"max_deferral_time ({self.max_deferral_time})"
            )
        return self

    @property
    def counting_enabled(self) -> bool:
        return self.max_requests > 0


def build_config(
    config: Union[RetirementConfig, Mapping[str, Any], None] = None,
    **overrides: Any,
) -> RetirementConfig:
    """Merge ``config`` and ``overrides`` over the defaults.

    Raises:
        ConfigurationError: if any value is rejected.
    """
    if isinstance(config, RetirementConfig) and not overrides:
        return config

    if isinstance(config, RetirementConfig):
        values = config.model_dump()
    else:
        values = dict(config or {})
    values.update(overrides)

    try:
        return RetirementConfig.model_validate(values)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            first.get("msg", "invalid value"),
            field=loc or None,
            value=first.get("input") if loc else None,
        ) from exc


class RetirementSettings(BaseSettings):
    """Retirement settings read from the environment.

    Every field maps to a ``SEPPUKU_``-prefixed variable, e.g.
    ``SEPPUKU_MAX_REQUESTS=10000``. Range checks happen in ``to_config``.
    """

    min_deferral_time: float = DEFAULT_MIN_DEFERRAL_MS
    max_deferral_time: float = DEFAULT_MAX_DEFERRAL_MS
    max_requests: int = DEFAULT_MAX_REQUESTS
    trap_fatal_errors: bool = DEFAULT_TRAP_FATAL_ERRORS
    exit_code: int = DEFAULT_EXIT_CODE
    rearm_after_cancel: bool = False

    # =========================================================================
    # LOGGING
    # =========================================================================
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_prefix="SEPPUKU_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def to_config(
        self,
        *,
        weight_function: Optional[WeightFunction] = None,
        custom_termination_handler: Optional[TerminationHandler] = None,
    ) -> RetirementConfig:
        """Build a controller config; callables cannot come from the environment."""
        return build_config(
            {
                "min_deferral_time": self.min_deferral_time,
                "max_deferral_time": self.max_deferral_time,
                "max_requests": self.max_requests,
                "trap_fatal_errors": self.trap_fatal_errors,
                "exit_code": self.exit_code,
                "rearm_after_cancel": self.rearm_after_cancel,
                "weight_function": weight_function,
                "custom_termination_handler": custom_termination_handler,
            }
        )


# =============================================================================
# GLOBAL SETTINGS (Lazy Initialization)
# =============================================================================

_settings: Optional[RetirementSettings] = None


def get_settings() -> RetirementSettings:
    """Get global settings instance.

    Prefer passing a RetirementConfig explicitly; this getter exists for
    entry points that configure everything from the environment.
    """
    global _settings
    if _settings is None:
        _settings = RetirementSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    global _settings
    _settings = None


__all__ = [
    "DEFAULT_EXIT_CODE",
    "DEFAULT_MAX_DEFERRAL_MS",
    "DEFAULT_MAX_REQUESTS",
    "DEFAULT_MIN_DEFERRAL_MS",
    "DEFAULT_TRAP_FATAL_ERRORS",
    "RetirementConfig",
    "RetirementSettings",
    "build_config",
    "get_settings",
    "reset_settings",
]
