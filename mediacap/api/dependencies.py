"""Service dependencies for the media capture API."""

import logging
from typing import Optional

from ..config import load_config
from ..sessions.service import CaptureService

logger = logging.getLogger(__name__)

# Shared capture service instance; sessions live in its registry, so every
# request must see the same one
_capture_service_instance: Optional[CaptureService] = None


def get_capture_service() -> CaptureService:
    """Dependency to provide the capture service instance.

    Returns:
        Capture service configured from the active configuration file
    """
    global _capture_service_instance
    if _capture_service_instance is None:
        _capture_service_instance = CaptureService(load_config())
    return _capture_service_instance


def set_capture_service(service: Optional[CaptureService]) -> None:
    """Install (or clear) the shared capture service."""
    global _capture_service_instance
    _capture_service_instance = service


async def shutdown_capture_service() -> None:
    """Shut the shared service down if one was created."""
    global _capture_service_instance
    service, _capture_service_instance = _capture_service_instance, None
    if service is not None:
        await service.shutdown()
