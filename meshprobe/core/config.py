"""Harness settings loaded from ``MESHPROBE_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from .environment import EnvironmentKind
from .errors import ConfigurationError
from .retry_policy import DEFAULT_CONVERGE, DEFAULT_RETRY_DELAY, FixedDelay, RetryPolicy
from .transport.interfaces import DEFAULT_CALL_TIMEOUT

ENV_PREFIX = "MESHPROBE_"


class HarnessSettings(BaseSettings):
    """meshprobe configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field("INFO", description="Level of the stderr log sink.")
    debug_scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        description="Comma-separated module scopes that log at DEBUG regardless of level.",
    )
    environment: EnvironmentKind = Field(
        EnvironmentKind.NATIVE, description="Kind of environment suites run against."
    )

    # Default convergence budget
    retry_timeout: float | None = Field(
        None,
        gt=0,
        description="Deadline in seconds; 30s applies when no attempt budget is set either.",
    )
    retry_delay: float = Field(
        DEFAULT_RETRY_DELAY, ge=0, description="Seconds to wait between attempts."
    )
    retry_max_attempts: int | None = Field(None, description="Attempt budget.")
    retry_converge: int = Field(
        DEFAULT_CONVERGE, ge=1, description="Consecutive successes required."
    )

    call_timeout: float = Field(
        DEFAULT_CALL_TIMEOUT, gt=0, description="Seconds allowed for one data-plane call."
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        upper = v.strip().upper()
        if upper not in valid:
            raise ValueError(f"log level must be one of {', '.join(sorted(valid))}")
        return upper

    @field_validator("debug_scopes", mode="before")
    @classmethod
    def parse_debug_scopes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return tuple(scope.strip() for scope in v.split(",") if scope.strip())
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @classmethod
    def from_env(cls) -> HarnessSettings:
        """Load settings, reporting invalid variables as ``ConfigurationError``."""
        try:
            return cls()
        except ValidationError as e:
            problems = "; ".join(
                f"invalid {ENV_PREFIX}{'.'.join(map(str, error['loc'])).upper()}"
                f"={error.get('input')!r}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(problems) from e
        except SettingsError as e:
            raise ConfigurationError(str(e)) from e

    def retry_policy(self) -> RetryPolicy:
        """Build the default retry policy described by these settings."""
        bounds: dict[str, Any] = {"max_attempts": self.retry_max_attempts}
        if self.retry_timeout is not None:
            bounds["deadline"] = self.retry_timeout
        return RetryPolicy(
            delay=FixedDelay(self.retry_delay),
            converge=self.retry_converge,
            **bounds,
        )


@lru_cache
def get_settings() -> HarnessSettings:
    """Cached process-wide settings."""
    return HarnessSettings.from_env()


def reset_settings() -> None:
    """Forget the cached settings so the next ``get_settings`` re-reads the environment."""
    get_settings.cache_clear()
