"""Renderer control over UPnP AVTransport and RenderingControl."""

import threading
from typing import Dict, Mapping, Optional, Tuple

import requests

from queuecast.config import Settings, get_settings
from queuecast.exceptions import ControlError, DeviceUnreachable, OperationCancelled
from queuecast.logging.config import get_logger
from queuecast.models import (
    AV_TRANSPORT,
    RENDERING_CONTROL,
    Device,
    ServiceEndpoint,
    TransportState,
    TransportStatus,
)
from queuecast.renderer import soap

logger = get_logger(__name__)

INSTANCE = {"InstanceID": "0"}


class RendererClient:
    """
    Issues playback commands to one renderer.

    Network failures are retried with exponential backoff and end in
    DeviceUnreachable; a SOAP fault is a rejection and raises ControlError
    immediately.
    """

    def __init__(
        self,
        device: Device,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        cancel: Optional[threading.Event] = None,
    ):
        """
        Initialize renderer client.

        Args:
            device: Renderer to control
            settings: Settings to use (defaults to config value)
            session: HTTP session for SOAP requests
            cancel: Event that aborts retry backoff when set
        """
        self.device = device
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.settings.user_agent)
        self.cancel = cancel or threading.Event()

    def _endpoint(self, service_type: str, action: str) -> ServiceEndpoint:
        endpoint = self.device.service(service_type)
        if endpoint is None:
            raise ControlError(action, description=f"{self.device} has no {service_type}")
        return endpoint

    def invoke(
        self,
        service_type: str,
        action: str,
        arguments: Mapping[str, str],
    ) -> Dict[str, str]:
        """
        Invoke a UPnP action.

        Args:
            service_type: Service URN
            action: Action name
            arguments: Input arguments (plain text, escaped on the wire)

        Returns:
            Output arguments

        Raises:
            ControlError: Fault, malformed or non-2xx response
            DeviceUnreachable: Connection failures beyond the retry budget
            OperationCancelled: The cancel event was set while backing off
        """
        endpoint = self._endpoint(service_type, action)
        body = soap.build_envelope(endpoint.service_type, action, arguments).encode("utf-8")
        headers = soap.soap_headers(endpoint.service_type, action)
        attempts = self.settings.control_retries + 1

        for attempt in range(attempts):
            if self.cancel.is_set():
                raise OperationCancelled(f"{action} cancelled")

            try:
                logger.debug(f"{action} -> {endpoint.control_url}")
                response = self.session.post(
                    endpoint.control_url,
                    data=body,
                    headers=headers,
                    timeout=self.settings.http_timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                logger.warning(f"{action} attempt {attempt + 1}/{attempts} failed: {e}")
                if attempt == attempts - 1:
                    raise DeviceUnreachable(action, attempts, str(e)) from e

                delay = self.settings.control_backoff * (2**attempt)
                if self.cancel.wait(delay):
                    raise OperationCancelled(f"{action} cancelled") from e
                continue

            return self._read_response(action, response)

        raise DeviceUnreachable(action, attempts)

    def _read_response(self, action: str, response: requests.Response) -> Dict[str, str]:
        fault = soap.parse_fault(response.text or "")
        if fault is not None:
            code, description = fault
            logger.error(f"{action} fault from {self.device.friendly_name}: {code} {description}")
            raise ControlError(action, code, description)

        if not response.ok:
            raise ControlError(action, description=f"HTTP {response.status_code}")

        try:
            return soap.parse_action_response(response.text, action)
        except ValueError as e:
            raise ControlError(action, description=str(e)) from e

    def set_track(self, media_url: str, title: Optional[str] = None) -> None:
        """
        Load a media URL. Does not start playback.

        Args:
            media_url: URL the renderer should fetch
            title: Display title for the DIDL-Lite metadata
        """
        logger.info(f"Loading {media_url} on {self.device.friendly_name}")
        metadata = soap.build_didl_metadata(title or media_url, media_url)
        self.invoke(
            AV_TRANSPORT,
            "SetAVTransportURI",
            {**INSTANCE, "CurrentURI": media_url, "CurrentURIMetaData": metadata},
        )

    def play(self) -> None:
        logger.info(f"Play on {self.device.friendly_name}")
        self.invoke(AV_TRANSPORT, "Play", {**INSTANCE, "Speed": "1"})

    def pause(self) -> None:
        logger.info(f"Pause on {self.device.friendly_name}")
        self.invoke(AV_TRANSPORT, "Pause", INSTANCE)

    def stop(self) -> None:
        logger.info(f"Stop on {self.device.friendly_name}")
        self.invoke(AV_TRANSPORT, "Stop", INSTANCE)

    def get_position(self) -> Tuple[Optional[float], Optional[float]]:
        """
        Query playback position.

        Returns:
            (position, duration) in seconds; either may be None when unknown
        """
        info = self.invoke(AV_TRANSPORT, "GetPositionInfo", INSTANCE)
        position = soap.parse_duration(info.get("RelTime"))
        duration = soap.parse_duration(info.get("TrackDuration"))
        if not duration:
            duration = None
        return position, duration

    def get_status(self) -> TransportStatus:
        """
        Query transport state and position.

        Renderers that fault on GetPositionInfo still yield a status, just
        without position.

        Returns:
            Fresh TransportStatus
        """
        info = self.invoke(AV_TRANSPORT, "GetTransportInfo", INSTANCE)
        state = TransportState.from_upnp(info.get("CurrentTransportState"))
        if info.get("CurrentTransportStatus", "OK").upper() == "ERROR_OCCURRED":
            state = TransportState.ERRORED

        position = duration = None
        try:
            position, duration = self.get_position()
        except ControlError as e:
            logger.debug(f"Position unavailable: {e}")

        return TransportStatus(state=state, position=position, duration=duration)

    def get_volume(self) -> int:
        info = self.invoke(RENDERING_CONTROL, "GetVolume", {**INSTANCE, "Channel": "Master"})
        try:
            return int(info.get("CurrentVolume", "0"))
        except ValueError as e:
            raise ControlError("GetVolume", description=f"bad volume {info!r}") from e

    def set_volume(self, level: int) -> None:
        """
        Set master volume.

        Args:
            level: Volume 0-100
        """
        if not 0 <= level <= 100:
            raise ValueError(f"Volume must be within 0-100, got {level}")
        logger.info(f"Volume {level} on {self.device.friendly_name}")
        self.invoke(
            RENDERING_CONTROL,
            "SetVolume",
            {**INSTANCE, "Channel": "Master", "DesiredVolume": str(level)},
        )

    def close(self) -> None:
        self.session.close()
