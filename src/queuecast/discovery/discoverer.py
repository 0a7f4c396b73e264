"""Renderer discovery on the local network."""

from typing import Dict, List, Optional, Sequence

import requests

from queuecast.config import Settings, get_settings
from queuecast.discovery import ssdp
from queuecast.discovery.description import DescriptorError, fetch_description
from queuecast.exceptions import DeviceNotFound, DiscoveryEmpty
from queuecast.logging.config import get_logger
from queuecast.models import Device

logger = get_logger(__name__)


class DeviceDiscoverer:
    """
    Finds DLNA media renderers.

    Responsibilities:
    - Multicast an SSDP search and collect replies
    - Fetch and parse each reply's device descriptor
    - Drop unusable or duplicate devices without failing the whole run
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize discoverer.

        Args:
            settings: Settings to use (defaults to config value)
            session: HTTP session for descriptor fetches
        """
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.settings.user_agent)

    def discover(self, timeout: Optional[float] = None) -> List[Device]:
        """
        Discover renderers.

        Args:
            timeout: Seconds to wait for replies (defaults to config value)

        Returns:
            Devices in reply order; empty when nothing answered
        """
        window = self.settings.discovery_timeout if timeout is None else timeout
        logger.info(f"Searching for DLNA renderers ({window:g}s)")

        replies = ssdp.search(
            self.settings.search_target,
            timeout=window,
            mx=min(self.settings.ssdp_mx, max(1, int(window))),
        )
        logger.debug(f"{len(replies)} SSDP replies")

        devices: Dict[str, Device] = {}
        for reply in replies:
            device = self._describe(reply.location)
            if device is None:
                continue
            if device.udn in devices:
                logger.debug(f"Duplicate renderer {device.udn} at {device.location}")
                continue
            logger.info(f"Found renderer: {device.friendly_name} at {device.location}")
            devices[device.udn] = device

        logger.info(f"Discovery finished, {len(devices)} renderer(s)")
        return list(devices.values())

    def _describe(self, location: str) -> Optional[Device]:
        try:
            return fetch_description(location, self.session, self.settings.http_timeout)
        except requests.RequestException as e:
            logger.warning(f"Could not fetch descriptor {location}: {e}")
        except DescriptorError as e:
            logger.warning(f"Skipping descriptor: {e}")
        return None

    def from_location(self, location: str) -> Device:
        """
        Build a device from a known descriptor URL, bypassing SSDP.

        Args:
            location: Descriptor URL

        Returns:
            Device

        Raises:
            DeviceNotFound: If no usable renderer is described there
        """
        device = self._describe(location)
        if device is None:
            raise DeviceNotFound(location)
        return device

    def find(self, udn: str, timeout: Optional[float] = None) -> Optional[Device]:
        """
        Re-run discovery looking for one device.

        Args:
            udn: Device identifier
            timeout: Discovery window

        Returns:
            The device, or None if it did not answer
        """
        for device in self.discover(timeout=timeout):
            if device.udn == udn:
                return device
        return None

    def relocate(self, device: Device, timeout: Optional[float] = None) -> Optional[Device]:
        """
        Locate a previously selected device again.

        Tries discovery first, then the last known descriptor location (devices
        added by location may not answer multicast searches).

        Args:
            device: Device as last known
            timeout: Discovery window

        Returns:
            Fresh device snapshot, or None
        """
        found = self.find(device.udn, timeout=timeout)
        if found is not None:
            return found

        fallback = self._describe(device.location)
        if fallback is not None and fallback.udn == device.udn:
            return fallback
        return None

    def close(self) -> None:
        self.session.close()


def select_device(devices: Sequence[Device], selector: Optional[str] = None) -> Device:
    """
    Pick a device by list index, UDN or friendly name.

    Args:
        devices: Discovered devices
        selector: Index, UDN or case-insensitive friendly name; None picks the
            only device when exactly one was found

    Returns:
        Selected device

    Raises:
        DiscoveryEmpty: If no devices were found
        DeviceNotFound: If the selector matches nothing (or is ambiguous)
    """
    if not devices:
        raise DiscoveryEmpty()

    if selector is None:
        if len(devices) == 1:
            return devices[0]
        raise DeviceNotFound(
            None, f"{len(devices)} renderers found, choose one with --device"
        )

    if selector.isdigit():
        index = int(selector)
        if index < len(devices):
            return devices[index]
        raise DeviceNotFound(selector)

    for device in devices:
        if device.udn == selector:
            return device

    matches = [d for d in devices if d.friendly_name.casefold() == selector.casefold()]
    if len(matches) == 1:
        return matches[0]
    raise DeviceNotFound(selector)
