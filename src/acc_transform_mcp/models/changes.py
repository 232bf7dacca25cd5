"""Pending element moves and the transform manifest sent to the worker."""

from pydantic import BaseModel, Field, computed_field
from typing import Any, Dict
from .geometry import Point3D, Vector3D


# Revit UniqueId format is "<GUID>-<hex element id>"
ELEMENT_KEY_SEPARATOR = "-"


class PendingChange(BaseModel):
    """One element moved during the current editing session."""

    element_key: str = Field(description="Stable element key (Revit UniqueId)")
    element_id: int = Field(description="Viewer dbId, valid only for the loaded file")
    element_name: str = Field(default="", description="Display name of the element")
    original_position: Point3D = Field(description="Position before the first move")
    new_position: Point3D = Field(description="Position after the latest move")

    @computed_field
    @property
    def translation(self) -> Vector3D:
        """Displacement from the original to the new position."""
        return self.new_position - self.original_position

    model_config = {
        "json_schema_extra": {
            "example": {
                "element_key": "8f0b7f3f-d7d8-4b8e-9f3e-1a2b3c4d5e6f-0001f43b",
                "element_id": 2417,
                "element_name": "Basic Wall [128059]",
                "original_position": {"x": 0.0, "y": 0.0, "z": 0.0},
                "new_position": {"x": 1.0, "y": 2.0, "z": 3.0},
            }
        }
    }


class ManifestEntry(BaseModel):
    """One element's move as the Revit worker reads it."""

    element_id: int = Field(alias="elementId")
    unique_id: str = Field(alias="uniqueId")
    element_name: str = Field(alias="elementName")
    original_position: Point3D = Field(alias="originalPosition")
    new_position: Point3D = Field(alias="newPosition")
    translation: Vector3D

    @classmethod
    def from_change(cls, change: PendingChange) -> "ManifestEntry":
        """Snapshot a pending change."""
        return cls(
            elementId=change.element_id,
            uniqueId=change.element_key,
            elementName=change.element_name,
            originalPosition=change.original_position.model_copy(),
            newPosition=change.new_position.model_copy(),
            translation=change.translation,
        )

    model_config = {"populate_by_name": True}


class TransformManifest(BaseModel):
    """All pending moves of one save, keyed by element key."""

    transforms: Dict[str, ManifestEntry] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.transforms)

    def to_payload(self) -> Dict[str, Any]:
        """JSON body written to ``transforms.json``."""
        return self.model_dump(by_alias=True, mode="json")
