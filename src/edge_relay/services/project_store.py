"""Access-checked RPC calls against the project store (Supabase)."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from ..config import ConfigurationError, Settings

logger = logging.getLogger(__name__)


class AccessDeniedError(Exception):
    """The caller may not read or write the requested project."""


class ProjectStoreError(Exception):
    """An RPC against the project store failed."""


class ProjectStoreProtocol(Protocol):
    async def validate_access(self, project_id: str, share_token: Optional[str]) -> bool:
        ...

    async def get_artifacts(
        self, project_id: str, share_token: Optional[str]
    ) -> list[dict[str, Any]]:
        ...

    async def update_artifact_content(
        self, artifact_id: str, share_token: Optional[str], content: str
    ) -> None:
        ...

    async def aclose(self) -> None:
        ...


class ProjectStore:
    """Thin wrapper over the RPCs the relay needs."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    @classmethod
    async def connect(
        cls, settings: Settings, authorization: Optional[str] = None
    ) -> "ProjectStore":
        """Create a client that forwards the caller's bearer token, if any."""

        key = settings.supabase_key
        if settings.supabase_url is None or key is None:
            raise ConfigurationError(
                "SUPABASE_URL and SUPABASE_ANON_KEY are not configured"
            )
        headers = {"Authorization": authorization} if authorization else {}
        client = await acreate_client(
            str(settings.supabase_url).rstrip("/"),
            key.get_secret_value(),
            options=AsyncClientOptions(headers=headers),
        )
        return cls(client)

    async def validate_access(self, project_id: str, share_token: Optional[str]) -> bool:
        try:
            response = await self._client.rpc(
                "validate_project_access",
                {"p_project_id": project_id, "p_token": share_token},
            ).execute()
        except Exception as exc:
            logger.error("Access validation failed for project %s: %s", project_id, exc)
            return False
        return bool(response.data)

    async def get_artifacts(
        self, project_id: str, share_token: Optional[str]
    ) -> list[dict[str, Any]]:
        try:
            response = await self._client.rpc(
                "get_artifacts_with_token",
                {"p_project_id": project_id, "p_token": share_token},
            ).execute()
        except Exception as exc:
            raise ProjectStoreError(f"Failed to fetch artifacts: {exc}") from exc
        data = response.data
        return list(data) if isinstance(data, list) else []

    async def update_artifact_content(
        self, artifact_id: str, share_token: Optional[str], content: str
    ) -> None:
        try:
            await self._client.rpc(
                "update_artifact_with_token",
                {
                    "p_artifact_id": artifact_id,
                    "p_token": share_token,
                    "p_content": content,
                },
            ).execute()
        except Exception as exc:
            raise ProjectStoreError(
                f"Failed to update artifact {artifact_id}: {exc}"
            ) from exc

    async def aclose(self) -> None:
        """Close the PostgREST connection pool behind the client."""

        try:
            await self._client.postgrest.aclose()
        except Exception as exc:
            logger.warning("Error closing project store client: %s", exc)


async def ensure_project_access(
    store: ProjectStoreProtocol, project_id: str, share_token: Optional[str]
) -> None:
    if not await store.validate_access(project_id, share_token):
        raise AccessDeniedError("Access denied")


__all__ = [
    "AccessDeniedError",
    "ProjectStore",
    "ProjectStoreError",
    "ProjectStoreProtocol",
    "ensure_project_access",
]
