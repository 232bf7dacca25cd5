"""Autodesk API contract used by the clients.

Endpoint templates are relative to ``aps_base_url``; Design Automation
templates are relative to ``da_base_url``.
"""

from typing import FrozenSet


PROJECT_PREFIX = "b."

# Media type of the Data Management JSON:API endpoints
JSON_API = "application/vnd.api+json"

# Version extension used for cloud workshared Revit models
C4R_VERSION_TYPE = "versions:autodesk.bim360:C4RModel"


ENDPOINTS = {
    # Authentication
    "authorize": "/authentication/v2/authorize",
    "token": "/authentication/v2/token",

    # Project / Data Management
    "hubs": "/project/v1/hubs",
    "projects": "/project/v1/hubs/{hub_id}/projects",
    "top_folders": "/project/v1/hubs/{hub_id}/projects/{project_id}/topFolders",
    "folder_contents": "/data/v1/projects/{project_id}/folders/{folder_id}/contents",
    "item": "/data/v1/projects/{project_id}/items/{item_id}",
    "version": "/data/v1/projects/{project_id}/versions/{version_id}",
    "versions": "/data/v1/projects/{project_id}/versions",
    "storage": "/data/v1/projects/{project_id}/storage",

    # Object Storage Service
    "buckets": "/oss/v2/buckets",
    "signed_download": "/oss/v2/buckets/{bucket_key}/objects/{object_key}/signeds3download",
    "signed_upload": "/oss/v2/buckets/{bucket_key}/objects/{object_key}/signeds3upload",
    "signed_resource": "/oss/v2/buckets/{bucket_key}/objects/{object_key}/signed",

    # Design Automation (relative to da_base_url)
    "nickname": "/forgeapps/me",
    "workitems": "/workitems",
    "workitem": "/workitems/{workitem_id}",
    "appbundles": "/appbundles",
    "appbundle_versions": "/appbundles/{name}/versions",
    "activities": "/activities",
    "activity": "/activities/{activity_id}",
    "activity_versions": "/activities/{name}/versions",
    "aliases": "/{kind}/{name}/aliases",
    "alias": "/{kind}/{name}/aliases/{alias}",
}


# Design Automation work item statuses
STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "inprogress"
STATUS_SUCCESS = "success"
STATUS_CANCELLED = "cancelled"
FAILED_STATUSES: FrozenSet[str] = frozenset({
    "failedDownload",
    "failedInstructions",
    "failedUpload",
    "failedUploadOptional",
    "failedLimitDataSize",
    "failedLimitProcessingTime",
})


def get_endpoint(name: str, /, **params: str) -> str:
    """Get endpoint path by name, with path parameters filled in."""
    template = ENDPOINTS.get(name, f"/unknown/{name}")
    return template.format(**params)


def ensure_project_prefix(project_id: str) -> str:
    """Return the project id as the data and OSS endpoints expect it (``b.`` prefixed)."""
    if project_id.startswith(PROJECT_PREFIX):
        return project_id
    return f"{PROJECT_PREFIX}{project_id}"


def strip_project_prefix(project_id: str) -> str:
    """Return the bare project id used for display and whitelist comparisons."""
    if project_id.startswith(PROJECT_PREFIX):
        return project_id[len(PROJECT_PREFIX):]
    return project_id


def is_failed_status(status: str) -> bool:
    """Whether a work item status is terminal and unsuccessful."""
    return status == STATUS_CANCELLED or status in FAILED_STATUSES or status.startswith("failed")
