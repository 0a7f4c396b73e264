"""Tests for device descriptor parsing."""

from unittest.mock import MagicMock

import pytest
import requests

from queuecast.discovery.description import (
    DescriptorError,
    fetch_description,
    parse_description,
    resolve_url,
)
from queuecast.models import AV_TRANSPORT, RENDERING_CONTROL

LOCATION = "http://192.168.1.20:49152/description.xml"

DESCRIPTOR = """<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <device>
    <deviceType>urn:schemas-upnp-org:device:MediaRenderer:1</deviceType>
    <friendlyName>Living Room TV</friendlyName>
    <UDN>uuid:renderer-1</UDN>
    <serviceList>
      <service>
        <serviceType>urn:schemas-upnp-org:service:AVTransport:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:AVTransport</serviceId>
        <controlURL>/upnp/control/AVTransport1</controlURL>
        <eventSubURL>/upnp/event/AVTransport1</eventSubURL>
      </service>
      <service>
        <serviceType>urn:schemas-upnp-org:service:RenderingControl:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:RenderingControl</serviceId>
        <controlURL>_urn:schemas-upnp-org:service:RenderingControl_control</controlURL>
      </service>
    </serviceList>
  </device>
</root>
"""


def test_parse_description():
    device = parse_description(DESCRIPTOR, LOCATION)

    assert device.udn == "uuid:renderer-1"
    assert device.friendly_name == "Living Room TV"
    assert device.location == LOCATION
    assert device.av_transport.control_url == "http://192.168.1.20:49152/upnp/control/AVTransport1"
    assert device.av_transport.event_url == "http://192.168.1.20:49152/upnp/event/AVTransport1"
    assert device.supports(RENDERING_CONTROL)


def test_relative_control_url_without_slash_is_root_relative():
    device = parse_description(DESCRIPTOR, "http://192.168.1.20:49152/dev/desc.xml")

    assert device.rendering_control.control_url == (
        "http://192.168.1.20:49152/_urn:schemas-upnp-org:service:RenderingControl_control"
    )


def test_url_base_takes_precedence():
    xml = DESCRIPTOR.replace(
        "<specVersion>", "<URLBase>http://192.168.1.21:8080/</URLBase><specVersion>"
    )

    device = parse_description(xml, LOCATION)

    assert device.av_transport.control_url == "http://192.168.1.21:8080/upnp/control/AVTransport1"


def test_embedded_renderer_is_found():
    xml = DESCRIPTOR.replace(
        "<device>",
        "<device><deviceType>urn:schemas-upnp-org:device:Basic:1</deviceType>"
        "<UDN>uuid:root</UDN><deviceList><device>",
        1,
    ).replace("</device>", "</device></deviceList></device>", 1)

    device = parse_description(xml, LOCATION)

    assert device.udn == "uuid:renderer-1"


def test_service_lookup_ignores_version():
    xml = DESCRIPTOR.replace("AVTransport:1</serviceType>", "AVTransport:2</serviceType>")

    device = parse_description(xml, LOCATION)

    assert device.service(AV_TRANSPORT) is not None


@pytest.mark.parametrize(
    "xml",
    [
        "<root><device>",
        DESCRIPTOR.replace("MediaRenderer", "MediaServer"),
        DESCRIPTOR.replace("<UDN>uuid:renderer-1</UDN>", ""),
        DESCRIPTOR.replace("AVTransport:1</serviceType>", "ConnectionManager:1</serviceType>"),
    ],
    ids=["malformed", "not-a-renderer", "no-udn", "no-avtransport"],
)
def test_parse_description_rejects(xml):
    with pytest.raises(DescriptorError):
        parse_description(xml, LOCATION)


def test_resolve_url_keeps_absolute():
    assert resolve_url(LOCATION, "http://other/ctl") == "http://other/ctl"


def test_fetch_description():
    session = MagicMock()
    session.get.return_value.text = DESCRIPTOR

    device = fetch_description(LOCATION, session, timeout=2)

    session.get.assert_called_once_with(LOCATION, timeout=2)
    assert device.udn == "uuid:renderer-1"


def test_fetch_description_http_error():
    session = MagicMock()
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")

    with pytest.raises(requests.HTTPError):
        fetch_description(LOCATION, session, timeout=2)
