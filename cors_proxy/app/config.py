"""
Configuration module for the CORS proxy service.

This module uses Pydantic Settings to load and validate environment variables
for the server bind address, outbound HTTP behaviour (timeouts, TLS, redirects,
allowed hosts) and error/preflight reply policy.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every setting has a default, so the proxy starts with no configuration.
    """

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Proxy Server Configuration
    # =========================================================================

    PROXY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PROXY_PORT: int = Field(
        default=8080,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    # =========================================================================
    # Outbound HTTP Configuration
    # =========================================================================

    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Overall deadline for one upstream exchange in seconds",
        gt=0,
    )

    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for establishing the upstream connection in seconds",
        gt=0,
    )

    ALLOWED_OUTBOUND_HOSTS: str = Field(
        default="*",
        description="Comma-separated host patterns the proxy may contact ('*', 'api.example.com', '*.example.com')",
        min_length=1,
    )

    FOLLOW_REDIRECTS: bool = Field(
        default=False,
        description="Follow upstream redirects instead of passing 3xx responses through",
    )

    VERIFY_TLS: bool = Field(
        default=True,
        description="Verify upstream TLS certificates",
    )

    MAX_CONNECTIONS: int = Field(
        default=100,
        description="Maximum pooled outbound connections",
        ge=1,
    )

    # =========================================================================
    # Reply Policy
    # =========================================================================

    PREFLIGHT_STATUS_CODE: int = Field(
        default=200,
        description="Status code returned for OPTIONS preflight requests (200 or 204)",
    )

    DISTINGUISH_ERROR_STATUS: bool = Field(
        default=False,
        description="Reply 400/502/504 for proxy errors instead of a flat 500",
    )

    STRIP_UPSTREAM_CORS_HEADERS: bool = Field(
        default=False,
        description="Remove the target's own Access-Control-* and Vary headers before decorating",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_outbound_hosts_list(self) -> List[str]:
        """
        Parse and return ALLOWED_OUTBOUND_HOSTS as a clean list.

        Returns:
            List of lowercase host patterns without whitespace.
        """
        return [
            host.strip().lower()
            for host in self.ALLOWED_OUTBOUND_HOSTS.split(",")
            if host.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return v

    @field_validator("ALLOWED_OUTBOUND_HOSTS")
    @classmethod
    def validate_allowed_outbound_hosts(cls, v: str) -> str:
        """
        Validate that ALLOWED_OUTBOUND_HOSTS contains usable host patterns.

        Raises:
            ValueError: If no pattern is given or a pattern is not a bare host
        """
        hosts = [h.strip() for h in v.split(",") if h.strip()]

        if not hosts:
            raise ValueError("ALLOWED_OUTBOUND_HOSTS must contain at least one host pattern")

        for host in hosts:
            if "://" in host or "/" in host or " " in host:
                raise ValueError(
                    f"Invalid host pattern: '{host}'. "
                    "Expected '*', 'example.com' or '*.example.com'"
                )
            if "*" in host and host != "*" and not (host.startswith("*.") and host.count("*") == 1):
                raise ValueError(
                    f"Invalid wildcard pattern: '{host}'. "
                    "Wildcards are only allowed as '*' or a leading '*.'"
                )

        return v

    @field_validator("PREFLIGHT_STATUS_CODE")
    @classmethod
    def validate_preflight_status(cls, v: int) -> int:
        if v not in (200, 204):
            raise ValueError(f"PREFLIGHT_STATUS_CODE must be 200 or 204, got: {v}")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If an environment variable is invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Check settings for risky combinations and return a status report.

    Called during application startup; warnings are logged, errors prevent
    nothing but are reported.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS > settings.UPSTREAM_TIMEOUT_SECONDS:
        errors.append(
            "UPSTREAM_CONNECT_TIMEOUT_SECONDS exceeds UPSTREAM_TIMEOUT_SECONDS"
        )

    if "*" in settings.allowed_outbound_hosts_list:
        warnings.append("ALLOWED_OUTBOUND_HOSTS allows every host")

    if not settings.VERIFY_TLS:
        warnings.append("VERIFY_TLS is disabled; upstream certificates are not checked")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "allowed_outbound_hosts": settings.allowed_outbound_hosts_list,
        "upstream_timeout_seconds": settings.UPSTREAM_TIMEOUT_SECONDS,
    }


if __name__ == "__main__":
    """
    Print the effective configuration:
        python -m cors_proxy.app.config
    """
    print("=" * 80)
    print("CORS PROXY CONFIGURATION")
    print("=" * 80)

    try:
        config = get_settings()
    except Exception as e:
        print(f"\n✗ Configuration error: {e}")
        raise SystemExit(1)

    print("\nServer:")
    print(f"  Host:             {config.PROXY_HOST}")
    print(f"  Port:             {config.PROXY_PORT}")
    print(f"  Log level:        {config.LOG_LEVEL}")

    print("\nOutbound:")
    print(f"  Timeout:          {config.UPSTREAM_TIMEOUT_SECONDS}s")
    print(f"  Connect timeout:  {config.UPSTREAM_CONNECT_TIMEOUT_SECONDS}s")
    print(f"  Allowed hosts:    {', '.join(config.allowed_outbound_hosts_list)}")
    print(f"  Follow redirects: {config.FOLLOW_REDIRECTS}")
    print(f"  Verify TLS:       {config.VERIFY_TLS}")

    print("\nReplies:")
    print(f"  Preflight status: {config.PREFLIGHT_STATUS_CODE}")
    print(f"  Distinct errors:  {config.DISTINGUISH_ERROR_STATUS}")

    status = validate_configuration(config)
    print()
    for error in status["errors"]:
        print(f"✗ {error}")
    for warning in status["warnings"]:
        print(f"⚠ {warning}")
    if status["valid"] and not status["warnings"]:
        print("✓ All checks passed!")
