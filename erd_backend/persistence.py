"""
Persistence Client - talks to the project/version storage service.

The storage service owns projects and their saved versions. This client only
moves schema documents in and out of it:
- load the current schema of a project
- save (overwrite the project, then record a new version)
- list versions, fetch a version, edit a version's description
"""
import logging
from typing import Any, Optional

import httpx

from erd_core import SchemaDocument

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The storage service failed or returned something unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceClient:
    """
    Async client for the storage service.

    Args:
        base_url: Service root, e.g. http://127.0.0.1:3001
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(self, base_url: str, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Storage request %s %s failed: %s", method, path, e)
            raise PersistenceError(f"Storage service unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                error = response.json().get("error", response.text)
            except ValueError:
                error = response.text
            logger.warning("Storage request %s %s returned %d: %s", method, path, response.status_code, error)
            raise PersistenceError(f"Storage error: {error}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError(f"Storage returned invalid JSON for {path}") from e

    @staticmethod
    def _extract_schema(payload: Any) -> SchemaDocument:
        """Projects carry `schema_data`, versions carry `schema`; either may be empty."""
        if not isinstance(payload, dict):
            raise PersistenceError("Storage returned an unexpected payload")
        data = payload.get("schema_data", payload.get("schema"))
        if not isinstance(data, dict) or not isinstance(data.get("tables"), list):
            return SchemaDocument()
        try:
            return SchemaDocument.from_json_dict(data)
        except ValueError as e:
            raise PersistenceError(f"Stored schema is invalid: {e}") from e

    # --- Projects ---

    async def load_schema(self, project_id: str) -> SchemaDocument:
        """Load a project's current schema. A project without one yields an empty document."""
        payload = await self._request("GET", f"/api/projects/{project_id}")
        return self._extract_schema(payload)

    async def save_schema(self, project_id: str, document: SchemaDocument,
                          user: str = "Unknown", description: str = "") -> dict:
        """
        Save a schema: overwrite the project, then record a version.

        Returns the created version record.
        """
        schema = document.to_json_dict()
        await self._request("PUT", f"/api/projects/{project_id}", json={"schema": schema})
        version = await self._request(
            "POST",
            f"/api/projects/{project_id}/versions",
            json={"schema": schema, "user": user, "description": description},
        )
        logger.info("Saved project %s (%d tables)", project_id, len(document.tables))
        return version

    # --- Versions ---

    async def list_versions(self, project_id: str) -> list[dict]:
        """Versions of a project, newest first."""
        versions = await self._request("GET", f"/api/projects/{project_id}/versions")
        if not isinstance(versions, list):
            raise PersistenceError("Storage returned an unexpected version list")
        return versions

    async def get_version(self, version_id: str) -> SchemaDocument:
        payload = await self._request("GET", f"/api/versions/{version_id}")
        return self._extract_schema(payload)

    async def describe_version(self, version_id: str, description: str) -> dict:
        """Set the description of a saved version."""
        return await self._request("PUT", f"/api/versions/{version_id}", json={"description": description})
