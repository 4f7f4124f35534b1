"""Client and developer configuration"""
from oneauth.core.config import DeveloperConfig, ProviderConfig


def test_dialog_url_defaults_to_provider_url():
    config = ProviderConfig(provider_url="https://passkey.example/")

    assert config.provider_url == "https://passkey.example"
    assert config.dialog_url == "https://passkey.example"
    assert config.dialog_origin == "https://passkey.example"


def test_separate_dialog_origin():
    config = ProviderConfig(provider_url="https://api.example", dialog_url="https://dialog.example:8443/base/")
    assert config.dialog_origin == "https://dialog.example:8443"


def test_provider_config_from_env(monkeypatch):
    monkeypatch.setenv("ONEAUTH_PROVIDER_URL", "https://env.example")
    monkeypatch.setenv("ONEAUTH_CLIENT_ID", "env-app")
    monkeypatch.setenv("ONEAUTH_THEME", "dark")
    monkeypatch.setenv("ONEAUTH_STATUS_POLL_MAX_ATTEMPTS", "7")

    config = ProviderConfig.from_env(hash_timeout=1.0)

    assert config.provider_url == "https://env.example"
    assert config.client_id == "env-app"
    assert config.theme.mode == "dark"
    assert config.status_poll_max_attempts == 7
    assert config.hash_timeout == 1.0


def test_developer_config():
    assert not DeveloperConfig().is_complete
    assert DeveloperConfig(merchant_id="m", private_key="k").resolved_developer_id == "m"
    assert DeveloperConfig(developer_id="d", merchant_id="m", private_key="k").resolved_developer_id == "d"


def test_developer_config_from_env(monkeypatch):
    monkeypatch.setenv("ONEAUTH_DEVELOPER_ID", "dev-env")
    monkeypatch.setenv("ONEAUTH_DEVELOPER_PRIVATE_KEY", "key")
    monkeypatch.setenv("ONEAUTH_INTENT_EXPIRY_SECONDS", "60")

    config = DeveloperConfig.from_env()

    assert config.is_complete
    assert config.expiry_seconds == 60
