"""
Configuration management for the authentication source registry.
Everything is read from AUTHSOURCES_* environment variables.
"""

import logging
import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class AuthConfig:
    """Centralized configuration for login sources."""

    def __init__(self):
        # Environment metadata for Audit Logging
        self.ENV = os.getenv("AUTHSOURCES_ENV", "production")

        # --- Database Configuration (Peewee SQL) ---
        self.DATABASE_URL = os.getenv("AUTHSOURCES_DATABASE_URL", "sqlite:///authsources.db")

        # --- File-backed sources ---
        # Sources live in <custom dir>/conf/auth.d, one file per source
        self.CUSTOM_DIR = os.getenv("AUTHSOURCES_CUSTOM_DIR", "./custom")
        self.SOURCES_DIR = os.getenv(
            "AUTHSOURCES_SOURCES_DIR", os.path.join(self.CUSTOM_DIR, "conf", "auth.d")
        )
        self.SOURCE_SUFFIX = os.getenv("AUTHSOURCES_SOURCE_SUFFIX", ".conf")

        # When a source becomes default, other file sources get its config section
        self.MIRROR_DEFAULT_CONFIG = _env_bool("AUTHSOURCES_MIRROR_DEFAULT_CONFIG", "true")

        # Backend adapters
        self.SMTP_HELO = os.getenv("AUTHSOURCES_SMTP_HELO", "authsources")
        self.GITHUB_TIMEOUT = float(os.getenv("AUTHSOURCES_GITHUB_TIMEOUT", "10"))

        # Logging and Audit
        self.LOG_LEVEL = os.getenv("AUTHSOURCES_LOG_LEVEL", "INFO")
        self.AUDIT_LOG_ENABLED = _env_bool("AUTHSOURCES_AUDIT_LOG", "true")

        self._validate()

    def _validate(self):
        """Validate configuration settings."""
        if not isinstance(logging.getLevelName(self.LOG_LEVEL.upper()), int):
            raise ValueError(f"Invalid LOG_LEVEL: {self.LOG_LEVEL}")

        if self.GITHUB_TIMEOUT <= 0:
            raise ValueError("GITHUB_TIMEOUT must be a positive number of seconds")

        if not self.SOURCE_SUFFIX.startswith("."):
            raise ValueError(f"SOURCE_SUFFIX must start with a dot: {self.SOURCE_SUFFIX}")

    def __repr__(self):
        """Safe representation hiding sensitive data."""
        return (
            f"<AuthConfig env={self.ENV} "
            f"sources_dir={self.SOURCES_DIR} "
            f"audit={'enabled' if self.AUDIT_LOG_ENABLED else 'disabled'}>"
        )


# Global config instance
config = AuthConfig()
