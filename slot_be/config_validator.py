"""
Configuration validation and startup checks.

This module implements fail-fast validation of the environment driven settings:
the Flask secret in production and the numeric game tuning knobs (starting credit,
near-miss frequency, drift probability, cascade cap, RTP target, volatility).
"""

import os
import sys
import warnings
import secrets
from typing import List, Optional


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


class ConfigValidator:
    """Validates application configuration and enforces production safety."""

    def __init__(self, is_production: bool = None):
        """
        Initialize the configuration validator.

        Args:
            is_production: If None, auto-detect from FLASK_ENV
        """
        if is_production is None:
            is_production = os.getenv('FLASK_ENV', '').lower() == 'production'

        self.is_production = is_production
        self.is_testing = os.getenv('TESTING', 'False').lower() in ('true', '1', 't')
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_required_env_var(self, var_name: str, description: str = None) -> Optional[str]:
        """
        Validate that a required environment variable is set.

        Returns:
            The environment variable value if set, None otherwise
        """
        value = os.getenv(var_name)
        if not value:
            desc = description or var_name
            if self.is_production:
                self.errors.append(f"CRITICAL: {desc} ({var_name}) must be set in production environment")
            else:
                self.warnings.append(f"WARNING: {desc} ({var_name}) not set - using development fallback")
        return value

    def validate_secret_key(self) -> str:
        """Validate the Flask secret key."""
        secret_key = self.validate_required_env_var('SECRET_KEY', 'Flask Secret Key')

        if not secret_key:
            if self.is_production:
                raise ConfigValidationError("SECRET_KEY is required in production")
            secret_key = secrets.token_urlsafe(32)
        elif len(secret_key) < 32:
            error_msg = "SECRET_KEY must be at least 32 characters long"
            if self.is_production:
                self.errors.append(f"CRITICAL: {error_msg}")
            else:
                self.warnings.append(f"WARNING: {error_msg}")

        return secret_key

    def _read_int(self, var_name: str, default: int, minimum: int = 1) -> int:
        raw = os.getenv(var_name, str(default))
        try:
            value = int(raw)
        except ValueError:
            self.errors.append(f"CRITICAL: {var_name} must be an integer, got '{raw}'")
            return default
        if value < minimum:
            self.errors.append(f"CRITICAL: {var_name} must be >= {minimum}, got {value}")
            return default
        return value

    def _read_float(self, var_name: str, default: float, low: float = None, high: float = None) -> float:
        raw = os.getenv(var_name, str(default))
        try:
            value = float(raw)
        except ValueError:
            self.errors.append(f"CRITICAL: {var_name} must be a number, got '{raw}'")
            return default
        if (low is not None and value < low) or (high is not None and value > high):
            self.errors.append(f"CRITICAL: {var_name} must be within [{low}, {high}], got {value}")
            return default
        return value

    def validate_game_config(self) -> dict:
        """Validate the numeric game tuning values."""
        game = {
            'DEFAULT_CREDIT': self._read_int('DEFAULT_CREDIT', 100, minimum=0),
            'DEFAULT_BET': self._read_int('DEFAULT_BET', 5),
            'ADD_CREDIT_AMOUNT': self._read_int('ADD_CREDIT_AMOUNT', 50),
            'MAX_CASCADE_ITERATIONS': self._read_int('MAX_CASCADE_ITERATIONS', 1000),
            'NEAR_MISS_FREQUENCY': self._read_float('NEAR_MISS_FREQUENCY', 0.25, 0.0, 1.0),
            'DRIFT_PROBABILITY': self._read_float('DRIFT_PROBABILITY', 0.05, 0.0, 1.0),
            'RTP_TARGET': self._read_float('RTP_TARGET', 0.95, 0.0, 1.0),
            'VOLATILITY': self._read_float('VOLATILITY', 1.0, 0.5, 2.0),
        }
        if game['MAX_CASCADE_ITERATIONS'] < 50:
            self.warnings.append(
                f"MAX_CASCADE_ITERATIONS={game['MAX_CASCADE_ITERATIONS']} is low; "
                "long legitimate cascades may be reported as invariant violations"
            )
        return game

    def validate_logging_config(self) -> str:
        level = os.getenv('LOG_LEVEL', 'INFO').upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            self.warnings.append(f"Unknown LOG_LEVEL '{level}', falling back to INFO")
            level = 'INFO'
        return level

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing or malformed
        """
        config = {}

        try:
            config['SECRET_KEY'] = self.validate_secret_key()
            config.update(self.validate_game_config())
            config['LOG_LEVEL'] = self.validate_logging_config()
            config['DEBUG'] = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 't')

            if self.is_production and config['DEBUG']:
                self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            if self.warnings and not self.is_testing:
                for warning in self.warnings:
                    warnings.warn(warning, UserWarning)

            return config

        except Exception as e:
            if isinstance(e, ConfigValidationError):
                raise
            else:
                raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_production_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator()
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nApplication startup ABORTED\n", file=sys.stderr)
        sys.exit(1)
