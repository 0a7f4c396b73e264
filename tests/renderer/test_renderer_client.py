"""Tests for the renderer control client."""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from queuecast.exceptions import ControlError, DeviceUnreachable, OperationCancelled
from queuecast.models import Device, TransportState
from queuecast.renderer import RendererClient


def soap_response(action, **values):
    args = "".join(f"<{k}>{v}</{k}>" for k, v in values.items())
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.text = (
        '<?xml version="1.0"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"><s:Body>'
        f'<u:{action}Response xmlns:u="urn:schemas-upnp-org:service:AVTransport:1">{args}'
        f"</u:{action}Response></s:Body></s:Envelope>"
    )
    return response


def fault_response(code="701", description="Transition not available"):
    response = MagicMock()
    response.ok = False
    response.status_code = 500
    response.text = (
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"><s:Body><s:Fault>'
        "<faultcode>s:Client</faultcode><faultstring>UPnPError</faultstring><detail>"
        '<UPnPError xmlns="urn:schemas-upnp-org:control-1-0">'
        f"<errorCode>{code}</errorCode><errorDescription>{description}</errorDescription>"
        "</UPnPError></detail></s:Fault></s:Body></s:Envelope>"
    )
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(device, test_settings, session):
    return RendererClient(device, settings=test_settings, session=session)


def test_set_track_sends_escaped_didl(client, session, device):
    session.post.return_value = soap_response("SetAVTransportURI")

    client.set_track("http://media/a.mp4?x=1&y=2", title="Rock & Roll")

    url = session.post.call_args[0][0]
    kwargs = session.post.call_args.kwargs
    body = kwargs["data"].decode()
    assert url == device.av_transport.control_url
    assert kwargs["headers"]["SOAPACTION"] == '"urn:schemas-upnp-org:service:AVTransport:1#SetAVTransportURI"'
    assert "<CurrentURI>http://media/a.mp4?x=1&amp;y=2</CurrentURI>" in body
    # metadata is escaped once inside DIDL and once more as an argument
    assert "&lt;DIDL-Lite" in body
    assert "Rock &amp;amp; Roll" in body
    assert "http://media/a.mp4?x=1&amp;amp;y=2" in body
    assert "<InstanceID>0</InstanceID>" in body


def test_play_sends_speed(client, session):
    session.post.return_value = soap_response("Play")

    client.play()

    body = session.post.call_args.kwargs["data"].decode()
    assert "<u:Play " in body
    assert "<Speed>1</Speed>" in body


def test_fault_raises_control_error_without_retry(client, session):
    session.post.return_value = fault_response()

    with pytest.raises(ControlError) as exc_info:
        client.pause()

    assert exc_info.value.code == "701"
    assert exc_info.value.description == "Transition not available"
    assert session.post.call_count == 1


def test_http_error_without_fault(client, session):
    response = MagicMock(ok=False, status_code=503, text="busy")
    session.post.return_value = response

    with pytest.raises(ControlError, match="HTTP 503"):
        client.stop()


def test_connection_errors_retry_then_unreachable(client, session, test_settings):
    session.post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(DeviceUnreachable) as exc_info:
        client.play()

    attempts = test_settings.control_retries + 1
    assert session.post.call_count == attempts
    assert exc_info.value.attempts == attempts


def test_retry_recovers_after_transient_error(client, session):
    session.post.side_effect = [requests.Timeout("slow"), soap_response("Play")]

    client.play()

    assert session.post.call_count == 2


def test_cancelled_client_does_not_send(device, test_settings, session):
    cancel = threading.Event()
    cancel.set()
    client = RendererClient(device, settings=test_settings, session=session, cancel=cancel)

    with pytest.raises(OperationCancelled):
        client.play()
    session.post.assert_not_called()


def test_get_status(client, session):
    session.post.side_effect = [
        soap_response(
            "GetTransportInfo",
            CurrentTransportState="PLAYING",
            CurrentTransportStatus="OK",
            CurrentSpeed="1",
        ),
        soap_response("GetPositionInfo", RelTime="0:01:05", TrackDuration="0:03:00"),
    ]

    status = client.get_status()

    assert status.state is TransportState.PLAYING
    assert status.position == 65
    assert status.duration == 180
    assert status.remaining == 115


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("PAUSED_PLAYBACK", TransportState.PAUSED),
        ("STOPPED", TransportState.STOPPED),
        ("NO_MEDIA_PRESENT", TransportState.NO_MEDIA),
        ("TRANSITIONING", TransportState.TRANSITIONING),
        ("SOMETHING_ELSE", TransportState.ERRORED),
    ],
)
def test_get_status_maps_states(client, session, raw, expected):
    session.post.side_effect = [
        soap_response("GetTransportInfo", CurrentTransportState=raw),
        soap_response("GetPositionInfo", RelTime="NOT_IMPLEMENTED", TrackDuration="0:00:00"),
    ]

    status = client.get_status()

    assert status.state is expected
    assert status.position is None
    assert status.duration is None


def test_get_status_error_occurred(client, session):
    session.post.side_effect = [
        soap_response(
            "GetTransportInfo",
            CurrentTransportState="STOPPED",
            CurrentTransportStatus="ERROR_OCCURRED",
        ),
        soap_response("GetPositionInfo", RelTime="0:00:00", TrackDuration="0:00:00"),
    ]

    assert client.get_status().state is TransportState.ERRORED


def test_get_status_without_position_support(client, session):
    session.post.side_effect = [
        soap_response("GetTransportInfo", CurrentTransportState="PLAYING"),
        fault_response("401", "Invalid Action"),
    ]

    status = client.get_status()

    assert status.state is TransportState.PLAYING
    assert status.position is None


def test_volume(client, session, device):
    session.post.side_effect = [
        soap_response("GetVolume", CurrentVolume="42"),
        soap_response("SetVolume"),
    ]

    assert client.get_volume() == 42
    client.set_volume(10)

    url = session.post.call_args[0][0]
    body = session.post.call_args.kwargs["data"].decode()
    assert url == device.rendering_control.control_url
    assert "<Channel>Master</Channel>" in body
    assert "<DesiredVolume>10</DesiredVolume>" in body


def test_set_volume_out_of_range(client, session):
    with pytest.raises(ValueError):
        client.set_volume(101)
    session.post.assert_not_called()


def test_missing_service_is_control_error(test_settings, session):
    device = Device(udn="uuid:x", friendly_name="X", location="http://x/d.xml")
    client = RendererClient(device, settings=test_settings, session=session)

    with pytest.raises(ControlError):
        client.get_volume()
