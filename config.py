"""
Application configuration module.

This module defines configuration classes for different environments
(development, testing, production). BenchBoost keeps no local database:
every setting here describes how to reach and trust the hosted backend
(table API, auth API and the secret its access tokens are signed with).
Values are loaded from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent


def _load_secret(raw_env_var: str, path_env_var: str) -> str:
    """Load a secret from direct env content or from a path env variable."""
    raw_value = os.environ.get(raw_env_var, "").strip()
    if raw_value:
        return raw_value

    secret_path = os.environ.get(path_env_var, "").strip()
    if secret_path:
        try:
            return Path(secret_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise RuntimeError(
                f"Unable to read secret file at '{secret_path}' from {path_env_var}."
            ) from exc

    raise RuntimeError(
        f"Missing backend secret configuration: set {raw_env_var} or {path_env_var}."
    )


def _has_secret_source(raw_env_var: str, path_env_var: str) -> bool:
    """Return True when at least one secret source variable is configured."""
    return bool(
        os.environ.get(raw_env_var, "").strip()
        or os.environ.get(path_env_var, "").strip()
    )


def load_backend_jwt_secret(*, testing: bool) -> str:
    """Resolve the secret used to verify backend-issued access tokens."""
    if testing and _has_secret_source("TEST_BACKEND_JWT_SECRET", "TEST_BACKEND_JWT_SECRET_PATH"):
        return _load_secret("TEST_BACKEND_JWT_SECRET", "TEST_BACKEND_JWT_SECRET_PATH")
    return _load_secret("BACKEND_JWT_SECRET", "BACKEND_JWT_SECRET_PATH")


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Base configuration with default settings."""

    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Hosted backend: table API under /rest/v1, auth API under /auth/v1
    BACKEND_URL: str = os.environ.get("BACKEND_URL", "http://localhost:54321")
    BACKEND_ANON_KEY: str = os.environ.get("BACKEND_ANON_KEY", "")
    BACKEND_TIMEOUT: int = int(os.environ.get("BACKEND_TIMEOUT", "5"))
    BACKEND_JWT_AUDIENCE: str = os.environ.get("BACKEND_JWT_AUDIENCE", "authenticated")
    BACKEND_JWT_ALGORITHMS: list[str] = _split_csv(
        os.environ.get("BACKEND_JWT_ALGORITHMS", "HS256")
    )
    JWT_CLOCK_SKEW_SECONDS: int = int(os.environ.get("JWT_CLOCK_SKEW_SECONDS", "30"))

    RECENT_TASKS_LIMIT: int = int(os.environ.get("RECENT_TASKS_LIMIT", "5"))
    LEADERBOARD_LIMIT: int = int(os.environ.get("LEADERBOARD_LIMIT", "50"))

    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE: bool = (
        os.environ.get("SESSION_COOKIE_SECURE", "false").strip().lower() == "true"
    )


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG: bool = True
    TESTING: bool = False
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Testing environment configuration."""

    DEBUG: bool = True
    TESTING: bool = True

    BACKEND_URL: str = os.environ.get("TEST_BACKEND_URL", "http://backend.test")
    BACKEND_ANON_KEY: str = os.environ.get("TEST_BACKEND_ANON_KEY", "test-anon-key")
    BACKEND_TIMEOUT: int = int(os.environ.get("TEST_BACKEND_TIMEOUT", "1"))


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG: bool = False
    TESTING: bool = False
    SESSION_COOKIE_SECURE: bool = (
        os.environ.get("SESSION_COOKIE_SECURE", "true").strip().lower() == "true"
    )


# Configuration mapping for easy access
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, production).
             If None, uses FLASK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
