"""Renderer control for queuecast."""

from queuecast.renderer.client import RendererClient

__all__ = ["RendererClient"]
