"""Platform client interface and its HTTP implementation.

The platform is the single source of truth for workflows; this package only
ever fetches a copy, edits it, and pushes it back as a full replacement.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from flowdiff import config
from flowdiff.errors import NotFoundError, UpstreamError
from flowdiff.models.workflow import Workflow

logger = logging.getLogger(__name__)

# Fields the platform sets itself and rejects on PUT
READ_ONLY_WORKFLOW_FIELDS = frozenset(
    {
        "id",
        "createdAt",
        "updatedAt",
        "versionId",
        "versionCounter",
        "meta",
        "staticData",
        "pinData",
        "tags",
        "description",
        "isArchived",
        "usedCredentials",
        "sharedWithProjects",
        "triggerCount",
        "shared",
        "active",
        "activeVersionId",
        "activeVersion",
    }
)

KNOWN_SETTINGS_KEYS = frozenset(
    {
        "saveExecutionProgress",
        "saveManualExecutions",
        "saveDataErrorExecution",
        "saveDataSuccessExecution",
        "executionTimeout",
        "errorWorkflow",
        "timezone",
        "executionOrder",
        "callerPolicy",
        "callerIds",
        "timeSavedPerExecution",
        "availableInMCP",
    }
)


def clean_workflow_for_update(workflow: Workflow) -> dict[str, Any]:
    """Build the PUT body: drop read-only fields and unknown settings."""
    payload = {
        key: value
        for key, value in workflow.to_snapshot().items()
        if key not in READ_ONLY_WORKFLOW_FIELDS
    }
    settings = {
        key: value
        for key, value in (payload.get("settings") or {}).items()
        if key in KNOWN_SETTINGS_KEYS
    }
    payload["settings"] = settings or {"executionOrder": "v1"}
    return payload


class PlatformClient(ABC):
    """Contract for the external workflow platform."""

    @abstractmethod
    async def get_workflow(self, workflow_id: str) -> Workflow:
        """Fetch the current workflow. Raises NotFoundError if it does not exist."""
        pass

    @abstractmethod
    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        """Replace the workflow wholesale and return the stored result."""
        pass

    @abstractmethod
    async def activate_workflow(self, workflow_id: str) -> Workflow:
        pass

    @abstractmethod
    async def deactivate_workflow(self, workflow_id: str) -> Workflow:
        pass


class HttpPlatformClient(PlatformClient):
    """Talks to the platform's public REST API (``/api/v1``)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = base_url.rstrip("/")
        if not base_url.endswith("/api/v1"):
            base_url = f"{base_url}/api/v1"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"X-N8N-API-KEY": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Platform request {method} {path} timed out")
            raise UpstreamError(
                f"Request to workflow platform timed out: {method} {path}", code="timeout"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Platform request {method} {path} failed: {e}")
            raise UpstreamError(
                f"Could not reach workflow platform: {e}", code="connection_error"
            ) from e

        if response.status_code == 404:
            raise NotFoundError(f"Workflow not found on platform: {path}")

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text}
            message = body.get("message") if isinstance(body, dict) else None
            logger.error(
                f"Platform request {method} {path} returned {response.status_code}: {message}"
            )
            raise UpstreamError(
                message or f"Workflow platform returned HTTP {response.status_code}",
                status_code=response.status_code,
                code=f"http_{response.status_code}",
                details=body if isinstance(body, dict) else {"body": body},
            )

        return response.json()

    async def get_workflow(self, workflow_id: str) -> Workflow:
        data = await self._request("GET", f"/workflows/{workflow_id}")
        return Workflow.model_validate(data)

    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        data = await self._request(
            "PUT", f"/workflows/{workflow_id}", json=clean_workflow_for_update(workflow)
        )
        return Workflow.model_validate(data)

    async def activate_workflow(self, workflow_id: str) -> Workflow:
        data = await self._request("POST", f"/workflows/{workflow_id}/activate")
        return Workflow.model_validate(data)

    async def deactivate_workflow(self, workflow_id: str) -> Workflow:
        data = await self._request("POST", f"/workflows/{workflow_id}/deactivate")
        return Workflow.model_validate(data)


# Global client holder
_platform_client: PlatformClient | None = None


def init_platform_client() -> PlatformClient | None:
    """Create the HTTP client from configuration, if the platform is configured."""
    global _platform_client
    if config.N8N_API_URL and config.N8N_API_KEY:
        _platform_client = HttpPlatformClient(
            config.N8N_API_URL, config.N8N_API_KEY, timeout=config.N8N_API_TIMEOUT
        )
        logger.info(f"Workflow platform client configured for {config.N8N_API_URL}")
    else:
        logger.warning("N8N_API_URL / N8N_API_KEY not set; platform operations are disabled")
    return _platform_client


async def close_platform_client() -> None:
    global _platform_client
    if isinstance(_platform_client, HttpPlatformClient):
        await _platform_client.close()
    _platform_client = None


def get_platform_client() -> PlatformClient | None:
    return _platform_client


def set_platform_client(client: PlatformClient | None) -> None:
    """Install a client explicitly (used by tests and embedding applications)."""
    global _platform_client
    _platform_client = client
