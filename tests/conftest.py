import pytest
from unittest.mock import patch

from queuecast.config.settings import Settings
from queuecast.models import (
    AV_TRANSPORT,
    RENDERING_CONTROL,
    Device,
    RoomState,
    ServiceEndpoint,
    Track,
)


@pytest.fixture(scope="session")
def test_settings(tmp_path_factory):
    """Override settings for tests."""
    return Settings(
        discovery_timeout=0.5,
        ssdp_mx=1,
        http_timeout=1.0,
        control_retries=2,
        control_backoff=0,
        poll_interval=0.01,
        status_interval=0.01,
        recovery_interval=0.01,
        max_recovery_attempts=3,
        log_file=tmp_path_factory.mktemp("logs") / "test.log",
    )


@pytest.fixture(scope="session", autouse=True)
def mock_settings(test_settings):
    """Patch get_settings to return test settings."""
    with patch("queuecast.config.get_settings", return_value=test_settings):
        yield


@pytest.fixture
def device():
    """A renderer with AVTransport and RenderingControl."""
    return Device(
        udn="uuid:renderer-1",
        friendly_name="Living Room TV",
        location="http://192.168.1.20:49152/description.xml",
        device_type="urn:schemas-upnp-org:device:MediaRenderer:1",
        services=(
            ServiceEndpoint(
                service_type=AV_TRANSPORT,
                control_url="http://192.168.1.20:49152/upnp/control/AVTransport1",
            ),
            ServiceEndpoint(
                service_type=RENDERING_CONTROL,
                control_url="http://192.168.1.20:49152/upnp/control/RenderingControl1",
            ),
        ),
    )


@pytest.fixture
def track_a():
    return Track(id="a", title="Song A", url="http://media.example.com/a.mp4", duration=180)


@pytest.fixture
def track_b():
    return Track(id="b", title="Song B", url="http://media.example.com/b.mp4", duration=200)


@pytest.fixture
def room_state():
    """Factory for room snapshots."""

    def make(track=None, revision=1, **kwargs):
        return RoomState(current_track=track, revision=revision, **kwargs)

    return make
