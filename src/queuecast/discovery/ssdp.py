"""SSDP M-SEARCH over UDP multicast."""

import socket
import time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from queuecast.logging.config import get_logger

logger = get_logger(__name__)

SSDP_ADDR = ("239.255.255.250", 1900)
MAX_DATAGRAM = 65507


class SsdpResponse(BaseModel):
    """A single reply to an M-SEARCH."""

    model_config = ConfigDict(frozen=True)

    location: str
    st: str = ""
    usn: str = ""
    server: str = ""


def build_search_request(search_target: str, mx: int) -> bytes:
    """
    Build an M-SEARCH request.

    Args:
        search_target: Value for the ST header
        mx: Seconds devices may wait before answering

    Returns:
        Encoded request datagram
    """
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_ADDR[0]}:{SSDP_ADDR[1]}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n"
        "\r\n"
    ).encode("utf-8")


def parse_response(data: bytes) -> Optional[SsdpResponse]:
    """
    Parse an SSDP search reply.

    Args:
        data: Raw datagram

    Returns:
        SsdpResponse, or None when the datagram is not a usable reply
    """
    text = data.decode("utf-8", errors="ignore")
    lines = [line.strip() for line in text.split("\r\n") if line.strip()]
    if not lines or not lines[0].upper().startswith("HTTP/1.1 200"):
        return None

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()

    location = headers.get("location")
    if not location:
        return None

    return SsdpResponse(
        location=location,
        st=headers.get("st", ""),
        usn=headers.get("usn", ""),
        server=headers.get("server", ""),
    )


def search(search_target: str, timeout: float, mx: int = 2) -> List[SsdpResponse]:
    """
    Multicast an M-SEARCH and collect replies until the timeout expires.

    Replies are de-duplicated by location. Network errors are logged and end
    the search early; they never propagate.

    Args:
        search_target: SSDP search target
        timeout: Seconds to listen for replies
        mx: MX header value

    Returns:
        Replies in arrival order (possibly empty)
    """
    request = build_search_request(search_target, mx)
    found: Dict[str, SsdpResponse] = {}

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.sendto(request, SSDP_ADDR)
            logger.debug(f"M-SEARCH sent (ST={search_target}, MX={mx})")

            deadline = time.monotonic() + timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                sock.settimeout(remaining)
                try:
                    data, addr = sock.recvfrom(MAX_DATAGRAM)
                except TimeoutError:
                    break

                response = parse_response(data)
                if response is None:
                    logger.debug(f"Ignoring non-reply datagram from {addr[0]}")
                    continue
                if response.location in found:
                    continue
                logger.debug(f"SSDP reply from {addr[0]}: {response.location}")
                found[response.location] = response
    except OSError as e:
        logger.warning(f"SSDP search failed: {e}")

    return list(found.values())
