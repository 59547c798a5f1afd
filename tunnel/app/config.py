"""
Configuration module for the tun-proxy gateway.

This module uses Pydantic Settings to load and validate the gateway
configuration: the shared bearer credential, the listen address, TLS
material and the outbound client options.

Sources, highest priority first:
    1. Keyword arguments passed to ``Settings(...)``
    2. Environment variables prefixed with ``TUN_`` (e.g. ``TUN_TOKEN``)
    3. A ``.env`` file in the working directory
    4. A JSON config file (``config.json`` or the path in ``TUN_CONFIG_FILE``)
"""

import json
import logging
import os
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Type, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "TUN_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "config.json"
TEMPLATE_FILE_NAME = "config.temp.json"


def _generate_token() -> str:
    return str(uuid.uuid4())


class Settings(BaseSettings):
    """
    Gateway settings.

    The bearer credential and the outbound client options are read once at
    startup and never mutated afterwards.
    """

    # =========================================================================
    # Authentication
    # =========================================================================

    token: str = Field(
        default_factory=_generate_token,
        description="Shared bearer credential required on every proxied request",
        min_length=1,
    )

    # =========================================================================
    # Listener / TLS
    # =========================================================================

    listening: str = Field(
        default="0.0.0.0:10010",
        description="Listen address in host:port form",
    )

    tls: bool = Field(
        default=False,
        description="Serve HTTPS using tls_cert / tls_key",
    )

    tls_cert: str = Field(
        default="",
        description="Path to the PEM certificate chain",
    )

    tls_key: str = Field(
        default="",
        description="Path to the PEM private key",
    )

    # =========================================================================
    # Outbound client
    # =========================================================================

    http_proxy: str = Field(
        default="",
        description="Optional outbound proxy URL (e.g. http://127.0.0.1:7890)",
    )

    insecure_skip_verify: bool = Field(
        default=False,
        description="Skip TLS certificate verification of origin servers (development only)",
    )

    upstream_timeout_seconds: float = Field(
        default=300.0,
        description="Total timeout for a forwarded call",
        gt=0,
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = SettingsConfigDict(
        env_prefix="TUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # An explicit json_file in model_config wins over the environment
        json_file = settings_cls.model_config.get("json_file") or os.environ.get(
            CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=json_file),
            file_secret_settings,
        )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def listen_host(self) -> str:
        """Host part of ``listening`` (brackets stripped for IPv6 literals)."""
        host, _, _ = self.listening.rpartition(":")
        return host.strip("[]") or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        """Port part of ``listening``."""
        _, _, port = self.listening.rpartition(":")
        return int(port)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("token must not be empty or only whitespace")
        return v

    @field_validator("listening")
    @classmethod
    def validate_listening(cls, v: str) -> str:
        """
        Validate that ``listening`` is a host:port pair with a usable port.

        Raises:
            ValueError: If the port is missing or out of range
        """
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(
                f"Invalid listen address: '{v}'. Expected format: 'host:port'"
            )
        if not 1 <= int(port) <= 65535:
            raise ValueError(f"Listen port out of range: {port}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v.upper()

    @model_validator(mode="after")
    def validate_tls_material(self) -> "Settings":
        if self.tls and (not self.tls_cert.strip() or not self.tls_key.strip()):
            raise ValueError("tls_cert and tls_key are required when tls is enabled")
        return self


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so the configuration (and a generated token, if none is
    configured) is resolved only once per process.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def write_config_template(path: Union[str, Path]) -> Path:
    """
    Write a JSON config file populated with default values.

    The template contains a freshly generated token so it is usable as-is
    once renamed.
    """
    path = Path(path)
    # model_construct skips every settings source, leaving only field defaults
    template = Settings.model_construct()
    path.write_text(json.dumps(template.model_dump(), indent=2), encoding="utf-8")
    return path


def settings_from_file(path: Union[str, Path]) -> Settings:
    """Load settings with ``path`` as the JSON config file, leaving os.environ alone."""

    class FileSettings(Settings):
        model_config = SettingsConfigDict(json_file=str(path))

    return FileSettings()


def load_or_create(path: Union[str, Path]) -> Optional[Settings]:
    """
    Load settings from ``path``; create a template beside it when missing.

    Returns:
        Settings if the config file exists, None if a template was written
        instead (the caller should exit and let the operator fill it in).
    """
    path = Path(path)
    if path.exists():
        return settings_from_file(path)

    template_path = write_config_template(path.with_name(TEMPLATE_FILE_NAME))
    logger.warning(
        "Config file not found, template created",
        extra={"config_path": str(path), "template_path": str(template_path)},
    )
    return None


def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    if settings.tls:
        for label, file_path in (("tls_cert", settings.tls_cert), ("tls_key", settings.tls_key)):
            if not Path(file_path).is_file():
                errors.append(f"{label} does not point to a readable file: {file_path}")

    if len(settings.token) < 16:
        warnings.append("token is shorter than recommended (16+ chars)")

    if settings.insecure_skip_verify:
        warnings.append("insecure_skip_verify is enabled; origin certificates are not checked")

    if not settings.tls and not settings.listen_host.startswith("127."):
        warnings.append("Serving plain HTTP on a non-loopback address; the token travels in clear text")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "listening": settings.listening,
        "tls": settings.tls,
    }
