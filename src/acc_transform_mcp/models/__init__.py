"""Pydantic models for the ACC Transform MCP Server."""

from .geometry import (
    Point3D,
    Vector3D,
)
from .changes import (
    ELEMENT_KEY_SEPARATOR,
    PendingChange,
    ManifestEntry,
    TransformManifest,
)
from .auth import (
    Credential,
    TokenGrant,
)
from .acc import (
    Hub,
    Project,
    FolderEntry,
    ItemDetails,
    VersionDetails,
    StorageLocation,
    OutputSlot,
)
from .job import (
    JobState,
    WorkItemStatus,
    TransformJob,
)
from .diagnostics import (
    DiagnosticEntry,
    SkippedEntry,
    JobDiagnostics,
)

__all__ = [
    # Geometry
    "Point3D", "Vector3D",
    # Changes
    "ELEMENT_KEY_SEPARATOR", "PendingChange", "ManifestEntry", "TransformManifest",
    # Auth
    "Credential", "TokenGrant",
    # ACC
    "Hub", "Project", "FolderEntry", "ItemDetails", "VersionDetails",
    "StorageLocation", "OutputSlot",
    # Jobs
    "JobState", "WorkItemStatus", "TransformJob",
    # Diagnostics
    "DiagnosticEntry", "SkippedEntry", "JobDiagnostics",
]
