"""Configuration management - loads plans.yaml and environment variables."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from shop_billing.models import BillingSettings, PlanDefinition, PlansConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader.

    Loads plans.yaml and provides validated access to:
    - Plan catalog
    - Service settings (account store backend, gateway, retry bounds)
    - Gateway secrets from the environment
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to plans.yaml file. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/plans.yaml
            environ: Environment mapping to read secrets from (defaults to os.environ)
        """
        self._environ = os.environ if environ is None else environ
        self._config_path = self._resolve_config_path(config_path)
        self._plans_config: Optional[PlansConfig] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = self._environ.get("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/plans.yaml")

    def _load_config(self) -> None:
        """Load and validate plans.yaml configuration."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/plans.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._plans_config = PlansConfig(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

        ids = [plan.id for plan in self._plans_config.plans]
        duplicates = sorted({plan_id for plan_id in ids if ids.count(plan_id) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate plan ids in configuration: {duplicates}")

    @property
    def plans_config(self) -> PlansConfig:
        """Get validated plans configuration."""
        if self._plans_config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._plans_config

    @property
    def plans(self) -> list[PlanDefinition]:
        """Get the plan catalog."""
        return self.plans_config.plans

    @property
    def settings(self) -> BillingSettings:
        """Get service settings."""
        return self.plans_config.settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    def _secret(self, name: str) -> Optional[str]:
        value = self._environ.get(name, "").strip()
        return value or None

    @property
    def key_id(self) -> Optional[str]:
        """Gateway API key id (only needed to create gateway subscriptions)."""
        return self._secret("RAZORPAY_KEY_ID")

    @property
    def key_secret(self) -> Optional[str]:
        """Secret used to sign checkout confirmations and authenticate gateway calls."""
        return self._secret("RAZORPAY_KEY_SECRET")

    @property
    def webhook_secret(self) -> Optional[str]:
        """Secret used to sign webhook deliveries."""
        return self._secret("RAZORPAY_WEBHOOK_SECRET")

    @property
    def admin_api_token(self) -> Optional[str]:
        """Bearer token for the admin API; admin routes are disabled without it."""
        return self._secret("ADMIN_API_TOKEN")

    @property
    def firebase_service_account(self) -> Optional[str]:
        """Service account JSON for Firestore; application default credentials otherwise."""
        return self._secret("FIREBASE_SERVICE_ACCOUNT_KEY")

    def require_secrets(self) -> None:
        """Fail fast when the signing secrets are missing or identical.

        Raises:
            ConfigurationError: If a required secret is absent or both are the same value
        """
        missing = [
            name
            for name, value in (
                ("RAZORPAY_KEY_SECRET", self.key_secret),
                ("RAZORPAY_WEBHOOK_SECRET", self.webhook_secret),
            )
            if value is None
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        if self.key_secret == self.webhook_secret:
            raise ConfigurationError(
                "RAZORPAY_KEY_SECRET and RAZORPAY_WEBHOOK_SECRET must be distinct values"
            )

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()
