"""UPnP device descriptor fetching and parsing."""

from typing import List, Optional
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree

import requests

from queuecast.logging.config import get_logger
from queuecast.models import AV_TRANSPORT, Device, ServiceEndpoint

logger = get_logger(__name__)

MEDIA_RENDERER = "MediaRenderer"


class DescriptorError(ValueError):
    """A device descriptor is malformed or does not describe a usable renderer."""


def resolve_url(base: str, url: str) -> str:
    """
    Resolve a control or event URL published in a descriptor.

    Some renderers publish paths such as ``_urn:schemas-upnp-org:service:AVTransport_control``
    without a leading slash; those are served from the host root.

    Args:
        base: URLBase or descriptor location
        url: URL as published

    Returns:
        Absolute URL
    """
    url = url.strip()
    if urlparse(url).scheme in ("http", "https"):
        return url
    if not url.startswith("/"):
        url = "/" + url
    return urljoin(base, url)


def _text(element: ElementTree.Element, tag: str) -> Optional[str]:
    value = element.findtext(f"{{*}}{tag}")
    if value is None:
        return None
    value = value.strip()
    return value or None


def _services(device_el: ElementTree.Element, base: str) -> List[ServiceEndpoint]:
    services = []
    service_list = device_el.find("{*}serviceList")
    if service_list is None:
        return services

    for service_el in service_list.findall("{*}service"):
        service_type = _text(service_el, "serviceType")
        control_url = _text(service_el, "controlURL")
        if not service_type or not control_url:
            logger.debug(f"Skipping incomplete service entry ({service_type})")
            continue
        event_url = _text(service_el, "eventSubURL")
        services.append(
            ServiceEndpoint(
                service_type=service_type,
                control_url=resolve_url(base, control_url),
                event_url=resolve_url(base, event_url) if event_url else None,
            )
        )
    return services


def parse_description(xml_text: str, location: str) -> Device:
    """
    Parse a device descriptor into a Device.

    The first MediaRenderer (root or embedded) that publishes AVTransport wins.

    Args:
        xml_text: Descriptor document
        location: URL the descriptor was fetched from

    Returns:
        Device

    Raises:
        DescriptorError: If the document is malformed or has no usable renderer
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        raise DescriptorError(f"Malformed descriptor at {location}: {e}") from e

    base = _text(root, "URLBase") or location

    for device_el in root.iterfind(".//{*}device"):
        device_type = _text(device_el, "deviceType") or ""
        if MEDIA_RENDERER not in device_type:
            continue

        udn = _text(device_el, "UDN")
        if not udn:
            raise DescriptorError(f"Renderer at {location} has no UDN")

        services = _services(device_el, base)
        device = Device(
            udn=udn,
            friendly_name=_text(device_el, "friendlyName") or udn,
            location=location,
            device_type=device_type,
            services=tuple(services),
        )
        if not device.supports(AV_TRANSPORT):
            logger.debug(f"{device.friendly_name} has no AVTransport service")
            continue
        return device

    raise DescriptorError(f"No AVTransport renderer described at {location}")


def fetch_description(
    location: str,
    session: requests.Session,
    timeout: float,
) -> Device:
    """
    Fetch and parse the descriptor at ``location``.

    Args:
        location: Descriptor URL from an SSDP reply
        session: HTTP session to use
        timeout: Request timeout in seconds

    Returns:
        Device

    Raises:
        requests.RequestException: If the descriptor cannot be fetched
        DescriptorError: If it cannot be parsed
    """
    response = session.get(location, timeout=timeout)
    response.raise_for_status()
    return parse_description(response.text, location)
