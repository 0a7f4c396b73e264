"""Renderer discovery for queuecast."""

from queuecast.discovery.description import DescriptorError, parse_description
from queuecast.discovery.discoverer import DeviceDiscoverer, select_device

__all__ = ["DeviceDiscoverer", "DescriptorError", "parse_description", "select_device"]
