import pytest

from config import ConfigError, load_settings

BASE_ENV = {
    "TELEGRAM_BOT_TOKEN": "123:abc",
    "DATABASE_URL": "sqlite:///:memory:",
    "ADMIN_ID": "7057639075",
}


@pytest.mark.parametrize("missing", ["TELEGRAM_BOT_TOKEN", "DATABASE_URL", "ADMIN_ID"])
def test_missing_required_setting_is_fatal(missing):
    env = {k: v for k, v in BASE_ENV.items() if k != missing}

    with pytest.raises(ConfigError, match=missing):
        load_settings(env)


def test_defaults():
    settings = load_settings(BASE_ENV)

    assert settings.admin_id == 7057639075
    assert settings.webhook_secret == ""
    assert settings.ticket_list_limit == 10
    assert settings.run_mode == "polling"
    assert settings.webhook_path == "/api/telegram"
    assert not settings.auth_admin_enabled


def test_optional_settings():
    settings = load_settings({
        **BASE_ENV,
        "TG_WEBHOOK_SECRET": "s3cret",
        "SUPABASE_URL": "https://x.supabase.co",
        "SUPABASE_KEY": "service-key",
        "RUN_MODE": "Webhook",
        "PORT": "9000",
        "LOG_LEVEL": "debug",
    })

    assert settings.webhook_secret == "s3cret"
    assert settings.auth_admin_enabled
    assert settings.run_mode == "webhook"
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("key, value", [("ADMIN_ID", "not-a-number"), ("RUN_MODE", "lambda")])
def test_malformed_settings(key, value):
    with pytest.raises(ConfigError):
        load_settings({**BASE_ENV, key: value})
