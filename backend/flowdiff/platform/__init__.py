"""Adapter for the external workflow platform that owns the canonical workflows."""

from flowdiff.platform.client import (
    HttpPlatformClient,
    PlatformClient,
    clean_workflow_for_update,
    close_platform_client,
    get_platform_client,
    init_platform_client,
    set_platform_client,
)

__all__ = [
    "PlatformClient",
    "HttpPlatformClient",
    "clean_workflow_for_update",
    "init_platform_client",
    "close_platform_client",
    "get_platform_client",
    "set_platform_client",
]
