"""Autodesk Construction Cloud resource models.

These are narrow views over the JSON:API documents returned by the Data
Management API; only the attributes the save pipeline needs are kept.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class Hub(BaseModel):
    """An account (hub)."""

    id: str
    name: str = ""
    region: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Hub":
        attributes = data.get("attributes", {})
        return cls(
            id=data["id"],
            name=attributes.get("name", ""),
            region=attributes.get("region"),
        )


class Project(BaseModel):
    """A project inside a hub."""

    id: str = Field(description="Project id as returned, with the b. prefix")
    name: str = ""
    hub_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], hub_id: Optional[str] = None) -> "Project":
        return cls(
            id=data["id"],
            name=data.get("attributes", {}).get("name", ""),
            hub_id=hub_id,
        )


class FolderEntry(BaseModel):
    """A folder or item listed in a folder."""

    id: str
    type: str = Field(description="folders or items")
    name: str = ""

    @property
    def is_folder(self) -> bool:
        return self.type == "folders"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FolderEntry":
        attributes = data.get("attributes", {})
        return cls(
            id=data["id"],
            type=data.get("type", ""),
            name=attributes.get("displayName") or attributes.get("name", ""),
        )


class ItemDetails(BaseModel):
    """A file (item) with its parent folder and tip version."""

    id: str
    display_name: str
    parent_folder_id: Optional[str] = None
    tip_version_id: str

    @classmethod
    def from_api(cls, document: Dict[str, Any]) -> "ItemDetails":
        data = document["data"]
        relationships = data.get("relationships", {})
        parent = relationships.get("parent", {}).get("data") or {}
        return cls(
            id=data["id"],
            display_name=data.get("attributes", {}).get("displayName", ""),
            parent_folder_id=parent.get("id"),
            tip_version_id=relationships["tip"]["data"]["id"],
        )


class VersionDetails(BaseModel):
    """A file version and the storage object holding its bytes."""

    id: str
    name: str = ""
    storage_urn: str
    extension_type: Optional[str] = None
    storage_size: Optional[int] = None

    @classmethod
    def from_api(cls, document: Dict[str, Any]) -> "VersionDetails":
        data = document["data"]
        attributes = data.get("attributes", {})
        return cls(
            id=data["id"],
            name=attributes.get("name") or attributes.get("displayName", ""),
            storage_urn=data["relationships"]["storage"]["data"]["id"],
            extension_type=(attributes.get("extension") or {}).get("type"),
            storage_size=attributes.get("storageSize"),
        )


class StorageLocation(BaseModel):
    """Bucket and object key of an OSS object."""

    bucket_key: str
    object_key: str

    @classmethod
    def from_urn(cls, urn: str) -> "StorageLocation":
        """Parse ``urn:adsk.objects:os.object:<bucket>/<object key>``.

        The object key may itself contain slashes.
        """
        tail = urn.rsplit(":", 1)[-1]
        bucket_key, _, object_key = tail.partition("/")
        if not bucket_key or not object_key:
            raise ValueError(f"Not an OSS object urn: {urn!r}")
        return cls(bucket_key=bucket_key, object_key=object_key)

    @property
    def urn(self) -> str:
        return f"urn:adsk.objects:os.object:{self.bucket_key}/{self.object_key}"


class OutputSlot(BaseModel):
    """Temporary object the worker writes its result into."""

    bucket_key: str
    object_key: str
    signed_url: str

    @property
    def location(self) -> StorageLocation:
        return StorageLocation(bucket_key=self.bucket_key, object_key=self.object_key)
