"""SOAP envelopes, UPnP faults and DIDL-Lite metadata."""

import re
from typing import Dict, Mapping, Optional, Tuple
from xml.etree import ElementTree
from xml.sax.saxutils import escape as xml_escape

DEFAULT_PROTOCOL_INFO = "http-get:*:video/mp4:*"

_UNKNOWN_TIMES = {"", "NOT_IMPLEMENTED"}
_TIME_PATTERN = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)$")


def build_envelope(service_type: str, action: str, arguments: Mapping[str, str]) -> str:
    """
    Build a SOAP request envelope.

    Argument values are XML-escaped here; callers pass plain text.
    """
    body = "".join(f"<{key}>{xml_escape(str(value))}</{key}>" for key, value in arguments.items())
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
        's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
        "<s:Body>"
        f'<u:{action} xmlns:u="{service_type}">{body}</u:{action}>'
        "</s:Body>"
        "</s:Envelope>"
    )


def soap_headers(service_type: str, action: str) -> Dict[str, str]:
    return {
        "Content-Type": 'text/xml; charset="utf-8"',
        "SOAPACTION": f'"{service_type}#{action}"',
    }


def parse_fault(xml_text: str) -> Optional[Tuple[Optional[str], Optional[str]]]:
    """
    Extract a UPnP fault.

    Args:
        xml_text: Response body

    Returns:
        (errorCode, errorDescription), or None when the body is not a fault
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError:
        return None

    fault = root.find(".//{*}Fault")
    if fault is None:
        return None

    code = (fault.findtext(".//{*}errorCode") or "").strip() or None
    description = (fault.findtext(".//{*}errorDescription") or "").strip() or None
    if code is None and description is None:
        description = (fault.findtext(".//{*}faultstring") or "").strip() or "SOAP fault"
    return code, description


def parse_action_response(xml_text: str, action: str) -> Dict[str, str]:
    """
    Read the output arguments of a successful action.

    Args:
        xml_text: Response body
        action: Action name; the body must contain ``<u:{action}Response>``

    Returns:
        Output argument name -> text

    Raises:
        ValueError: If the body is not a well-formed action response
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        raise ValueError(f"Malformed SOAP response: {e}") from e

    response = root.find(f".//{{*}}{action}Response")
    if response is None:
        raise ValueError(f"No {action}Response element in SOAP body")

    out = {}
    for child in response:
        name = child.tag.rsplit("}", 1)[-1]
        out[name] = (child.text or "").strip()
    return out


def build_didl_metadata(
    title: str,
    media_url: str,
    protocol_info: str = DEFAULT_PROTOCOL_INFO,
) -> str:
    """
    Build a minimal DIDL-Lite item for ``CurrentURIMetaData``.

    Many renderers refuse a URI without at least ``upnp:class`` and
    ``res@protocolInfo``. The result is plain XML; it gets escaped once more
    when embedded as an action argument.
    """
    return (
        '<DIDL-Lite xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/">'
        '<item id="0" parentID="-1" restricted="1">'
        f"<dc:title>{xml_escape(title)}</dc:title>"
        "<upnp:storageMedium>UNKNOWN</upnp:storageMedium>"
        "<upnp:writeStatus>UNKNOWN</upnp:writeStatus>"
        f'<res protocolInfo="{xml_escape(protocol_info)}">{xml_escape(media_url)}</res>'
        "<upnp:class>object.item.videoItem</upnp:class>"
        "</item>"
        "</DIDL-Lite>"
    )


def parse_duration(value: Optional[str]) -> Optional[float]:
    """
    Parse a UPnP time value (``H+:MM:SS[.F+]``) into seconds.

    Returns None for values renderers use to mean "unknown".
    """
    raw = (value or "").strip()
    if raw.upper() in _UNKNOWN_TIMES:
        return None

    match = _TIME_PATTERN.match(raw)
    if not match:
        return None

    hours, minutes, seconds = match.groups()
    return int(hours or 0) * 3600 + int(minutes) * 60 + float(seconds)


def format_duration(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 3600}:{total % 3600 // 60:02d}:{total % 60:02d}"
