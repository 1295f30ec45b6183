"""Tests for configuration loading and management."""

from pathlib import Path

import pytest

from shop_billing.config import Config, ConfigurationError

PLANS_YAML = """
plans:
  - id: monthly
    name: Monthly
    price: 799
    duration_months: 1
    gateway_plan_id: plan_m
    order: 1
  - id: yearly
    name: Yearly
    price: 7499
    billing_period: P1Y
    order: 2
settings:
  account_store: memory
  max_update_attempts: 5
"""

SECRETS = {
    "RAZORPAY_KEY_ID": "rzp_test_key",
    "RAZORPAY_KEY_SECRET": "key-secret",
    "RAZORPAY_WEBHOOK_SECRET": "webhook-secret",
}


@pytest.fixture
def config_file(tmp_path):
    """Write a plans.yaml into a temporary directory."""
    path = tmp_path / "plans.yaml"
    path.write_text(PLANS_YAML, encoding="utf-8")
    return path


@pytest.fixture
def config(config_file):
    """Create a Config instance for testing."""
    return Config(str(config_file), environ=dict(SECRETS))


class TestConfigurationLoading:
    """Test basic configuration loading."""

    def test_config_loads_plans(self, config):
        assert [plan.id for plan in config.plans] == ["monthly", "yearly"]

    def test_settings_loaded(self, config):
        assert config.settings.account_store == "memory"
        assert config.settings.max_update_attempts == 5

    def test_settings_defaults(self, config):
        assert config.settings.accounts_collection == "users"
        assert config.settings.gateway_total_count == 12
        assert config.settings.default_duration_months == 12

    def test_config_path_from_environment(self, config_file):
        config = Config(environ={"CONFIG_PATH": str(config_file)})
        assert config.config_path == Path(str(config_file))

    def test_bundled_catalog_loads(self):
        root = Path(__file__).resolve().parents[2]
        config = Config(str(root / "config" / "plans.yaml"), environ={})
        prices = {plan.name: (plan.price, plan.months) for plan in config.plans}
        assert prices == {
            "Monthly": (799, 1),
            "Quarterly": (2099, 3),
            "Yearly": (7499, 12),
            "Permanent": (29999, 1200),
        }

    def test_reload_picks_up_changes(self, config, config_file):
        config_file.write_text(
            PLANS_YAML.replace("price: 799", "price: 899"), encoding="utf-8"
        )
        config.reload()
        assert config.plans[0].price == 899


class TestConfigurationErrors:
    """Test invalid configuration handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "missing.yaml"), environ={})

    def test_empty_file(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="empty"):
            Config(str(path), environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text("plans: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="YAML"):
            Config(str(path), environ={})

    def test_plan_without_duration(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text("plans:\n  - id: x\n    name: X\n    price: 1\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="validation"):
            Config(str(path), environ={})

    def test_duplicate_plan_ids(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text(
            "plans:\n"
            "  - {id: x, name: X, price: 1, duration_months: 1}\n"
            "  - {id: x, name: Y, price: 2, duration_months: 2}\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError, match="Duplicate"):
            Config(str(path), environ={})

    def test_unknown_store_backend(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text("plans: []\nsettings:\n  account_store: redis\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Config(str(path), environ={})


class TestSecrets:
    """Test secrets read from the environment."""

    def test_secret_accessors(self, config):
        assert config.key_id == "rzp_test_key"
        assert config.key_secret == "key-secret"
        assert config.webhook_secret == "webhook-secret"
        assert config.admin_api_token is None
        assert config.firebase_service_account is None

    def test_require_secrets_passes(self, config):
        config.require_secrets()

    def test_missing_webhook_secret(self, config_file):
        environ = {"RAZORPAY_KEY_SECRET": "key-secret"}
        config = Config(str(config_file), environ=environ)
        with pytest.raises(ConfigurationError, match="RAZORPAY_WEBHOOK_SECRET"):
            config.require_secrets()

    def test_blank_secret_counts_as_missing(self, config_file):
        environ = dict(SECRETS, RAZORPAY_KEY_SECRET="   ")
        config = Config(str(config_file), environ=environ)
        assert config.key_secret is None
        with pytest.raises(ConfigurationError, match="RAZORPAY_KEY_SECRET"):
            config.require_secrets()

    def test_secrets_must_differ(self, config_file):
        environ = dict(SECRETS, RAZORPAY_WEBHOOK_SECRET="key-secret")
        config = Config(str(config_file), environ=environ)
        with pytest.raises(ConfigurationError, match="distinct"):
            config.require_secrets()
