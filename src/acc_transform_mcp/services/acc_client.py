"""Autodesk Construction Cloud resource client.

Wraps the Data Management endpoints the save pipeline needs: browsing,
resolving a file's storage object, and appending a new version.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..api_schema import (
    C4R_VERSION_TYPE,
    JSON_API,
    ensure_project_prefix,
    get_endpoint,
    strip_project_prefix,
)
from ..exceptions import RemoteRequestFailedError
from ..logging import get_logger
from ..models import (
    FolderEntry,
    Hub,
    ItemDetails,
    Project,
    StorageLocation,
    VersionDetails,
)
from .oss_client import OssClient


logger = get_logger(__name__)


def _id(value: str) -> str:
    """Encode a urn for use as a path segment."""
    return quote(value, safe="")


class AccResourceClient(OssClient):
    """Data Management client for hubs, projects, folders, items and versions.

    Every call takes the user's access token. Project ids are accepted with
    or without the ``b.`` prefix.
    """

    def is_project_allowed(self, project_id: str) -> bool:
        """Whether the whitelist (if any) admits the project."""
        allowed = self.config.allowed_project_ids
        if not allowed:
            return True
        return strip_project_prefix(project_id) in {strip_project_prefix(p) for p in allowed}

    async def _get_json(self, path: str, token: str, operation: str) -> Dict[str, Any]:
        response = await self._request("GET", path, operation=operation, token=token)
        return self._json(response, operation)

    async def list_hubs(self, token: str) -> List[Hub]:
        """List the hubs (accounts) the user can see."""
        document = await self._get_json(get_endpoint("hubs"), token, "List hubs")
        return [Hub.from_api(data) for data in document.get("data", [])]

    async def list_projects(self, token: str, hub_id: str) -> List[Project]:
        """List projects of a hub, filtered by the configured whitelist."""
        document = await self._get_json(
            get_endpoint("projects", hub_id=_id(hub_id)), token, "List projects"
        )
        projects = [Project.from_api(data, hub_id) for data in document.get("data", [])]
        visible = [p for p in projects if self.is_project_allowed(p.id)]
        if len(visible) != len(projects):
            logger.debug(
                "Projects filtered by whitelist",
                hub_id=hub_id,
                total=len(projects),
                visible=len(visible),
            )
        return visible

    async def list_top_folders(self, token: str, hub_id: str, project_id: str) -> List[FolderEntry]:
        """List the top-level folders of a project."""
        document = await self._get_json(
            get_endpoint(
                "top_folders",
                hub_id=_id(hub_id),
                project_id=ensure_project_prefix(project_id),
            ),
            token,
            "List top folders",
        )
        return [FolderEntry.from_api(data) for data in document.get("data", [])]

    async def list_folder_contents(self, token: str, project_id: str, folder_id: str) -> List[FolderEntry]:
        """List folders and items inside a folder."""
        document = await self._get_json(
            get_endpoint(
                "folder_contents",
                project_id=ensure_project_prefix(project_id),
                folder_id=_id(folder_id),
            ),
            token,
            "List folder contents",
        )
        return [FolderEntry.from_api(data) for data in document.get("data", [])]

    async def get_item(self, token: str, project_id: str, item_id: str) -> ItemDetails:
        """Get an item's display name, parent folder and tip version."""
        operation = "Get item"
        document = await self._get_json(
            get_endpoint("item", project_id=ensure_project_prefix(project_id), item_id=_id(item_id)),
            token,
            operation,
        )
        try:
            return ItemDetails.from_api(document)
        except (KeyError, TypeError) as e:
            raise RemoteRequestFailedError(operation, reason=f"item has no tip version ({e})")

    async def resolve_latest_version(self, token: str, project_id: str, item_id: str) -> str:
        """Return the urn of the item's tip version."""
        item = await self.get_item(token, project_id, item_id)
        return item.tip_version_id

    async def get_version(self, token: str, project_id: str, version_id: str) -> VersionDetails:
        """Get a version and its storage urn."""
        operation = "Get version"
        document = await self._get_json(
            get_endpoint(
                "version",
                project_id=ensure_project_prefix(project_id),
                version_id=_id(version_id),
            ),
            token,
            operation,
        )
        try:
            return VersionDetails.from_api(document)
        except (KeyError, TypeError) as e:
            raise RemoteRequestFailedError(operation, reason=f"version has no storage ({e})")

    async def get_storage_location(self, token: str, project_id: str, version_id: str) -> StorageLocation:
        """Return the bucket and object key holding a version's bytes."""
        version = await self.get_version(token, project_id, version_id)
        try:
            return StorageLocation.from_urn(version.storage_urn)
        except ValueError as e:
            raise RemoteRequestFailedError("Parse storage urn", reason=str(e))

    async def create_storage(self, token: str, project_id: str, folder_id: str, name: str) -> str:
        """Create a storage object in a folder and return its urn."""
        operation = "Create storage"
        payload = {
            "jsonapi": {"version": "1.0"},
            "data": {
                "type": "objects",
                "attributes": {"name": name},
                "relationships": {
                    "target": {"data": {"type": "folders", "id": folder_id}},
                },
            },
        }
        response = await self._request(
            "POST",
            get_endpoint("storage", project_id=ensure_project_prefix(project_id)),
            operation=operation,
            token=token,
            json=payload,
            headers={"Content-Type": JSON_API},
            retry=False,
        )
        storage_urn = (self._json(response, operation).get("data") or {}).get("id")
        if not storage_urn:
            raise RemoteRequestFailedError(operation, response.status_code, response.text,
                                           reason="no storage id in response")
        logger.info("Storage created", storage_urn=storage_urn)
        return storage_urn

    async def create_version(
        self,
        token: str,
        project_id: str,
        item_id: str,
        storage_urn: str,
        name: str,
        extension_type: Optional[str] = None,
    ) -> str:
        """Append a version to an item and return the new version id."""
        operation = "Create version"
        payload = {
            "jsonapi": {"version": "1.0"},
            "data": {
                "type": "versions",
                "attributes": {
                    "name": name,
                    "extension": {"type": extension_type or C4R_VERSION_TYPE, "version": "1.0"},
                },
                "relationships": {
                    "item": {"data": {"type": "items", "id": item_id}},
                    "storage": {"data": {"type": "objects", "id": storage_urn}},
                },
            },
        }
        response = await self._request(
            "POST",
            get_endpoint("versions", project_id=ensure_project_prefix(project_id)),
            operation=operation,
            token=token,
            json=payload,
            headers={"Content-Type": JSON_API},
            retry=False,
        )
        version_id = (self._json(response, operation).get("data") or {}).get("id")
        if not version_id:
            raise RemoteRequestFailedError(operation, response.status_code, response.text,
                                           reason="no version id in response")
        logger.info("Version created", item_id=item_id, version_id=version_id)
        return version_id
