import yaml
import pytest
from pathlib import Path
from pydantic import ValidationError

from queuecast.config.settings import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run each test in an empty directory without QUEUECAST_ variables."""
    for name in ("QUEUECAST_POLL_INTERVAL", "QUEUECAST_LOG_TO_FILE", "QUEUECAST_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    settings = Settings()

    assert settings.discovery_timeout == 3.0
    assert settings.poll_interval == 2.0
    assert settings.max_recovery_attempts == 5
    assert settings.log_to_file is False
    assert "{room_id}" in settings.room_state_path


def test_yaml_config_loading(tmp_path):
    """Test that settings are loaded from queuecast.yaml."""
    config_data = {
        "poll_interval": 5,
        "room_state_path": "/rooms/{room_id}/state",
    }
    (tmp_path / "queuecast.yaml").write_text(yaml.dump(config_data))

    settings = Settings()

    assert settings.poll_interval == 5.0
    assert settings.room_state_path == "/rooms/{room_id}/state"


def test_yaml_ignores_unknown_keys(tmp_path):
    (tmp_path / "queuecast.yaml").write_text(yaml.dump({"unknown": 1, "ssdp_mx": 1}))

    settings = Settings()

    assert settings.ssdp_mx == 1
    assert not hasattr(settings, "unknown")


def test_yaml_config_override_env(tmp_path, monkeypatch):
    """Env vars take precedence over queuecast.yaml."""
    (tmp_path / "queuecast.yaml").write_text(yaml.dump({"poll_interval": 5}))
    monkeypatch.setenv("QUEUECAST_POLL_INTERVAL", "7")

    settings = Settings()

    assert settings.poll_interval == 7.0


def test_init_overrides_env(monkeypatch):
    monkeypatch.setenv("QUEUECAST_POLL_INTERVAL", "7")

    settings = Settings(poll_interval=3)

    assert settings.poll_interval == 3.0


def test_log_to_file_toggle(monkeypatch):
    monkeypatch.setenv("QUEUECAST_LOG_TO_FILE", "true")

    assert Settings().log_to_file is True


def test_log_file_expands_user():
    settings = Settings(log_file="~/queuecast-test.log")

    assert settings.log_file == Path.home() / "queuecast-test.log"


@pytest.mark.parametrize(
    "template",
    ["api/rooms/{room_id}", "/api/rooms/current"],
)
def test_room_path_template_validation(template):
    with pytest.raises(ValidationError):
        Settings(room_state_path=template)


def test_mx_clamped_to_discovery_timeout():
    settings = Settings(discovery_timeout=1.5, ssdp_mx=4)

    assert settings.ssdp_mx == 1
