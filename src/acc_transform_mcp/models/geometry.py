"""Geometry models for the ACC Transform MCP Server.

Coordinates are in the host model's native length unit (feet for Revit).
Values are not range-checked here; finiteness is enforced where moves are
recorded and again when a batch is validated.
"""

from pydantic import BaseModel, Field
from typing import Any, Tuple
import math


class Point3D(BaseModel):
    """3D point in model space."""

    x: float = Field(default=0.0, description="X coordinate")
    y: float = Field(default=0.0, description="Y coordinate")
    z: float = Field(default=0.0, description="Z coordinate")

    @classmethod
    def coerce(cls, value: Any) -> "Point3D":
        """Build a point from a Point3D, an ``{x, y, z}`` mapping or a 3-sequence."""
        if isinstance(value, Point3D):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)
        x, y, z = value
        return cls(x=x, y=y, z=z)

    def to_tuple(self) -> Tuple[float, float, float]:
        """Convert to tuple."""
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        """True when no coordinate is NaN or infinite."""
        return all(math.isfinite(v) for v in self.to_tuple())

    def __sub__(self, other: "Point3D") -> "Vector3D":
        """Subtract another point to get a vector."""
        return Vector3D(x=self.x - other.x, y=self.y - other.y, z=self.z - other.z)

    def __add__(self, other: "Vector3D") -> "Point3D":
        """Add a vector to this point."""
        return Point3D(x=self.x + other.x, y=self.y + other.y, z=self.z + other.z)

    model_config = {
        "json_schema_extra": {
            "example": {"x": 12.5, "y": -3.0, "z": 0.0}
        }
    }


class Vector3D(BaseModel):
    """3D displacement."""

    x: float = Field(default=0.0, description="X component")
    y: float = Field(default=0.0, description="Y component")
    z: float = Field(default=0.0, description="Z component")

    def to_tuple(self) -> Tuple[float, float, float]:
        """Convert to tuple."""
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        """True when no component is NaN or infinite."""
        return all(math.isfinite(v) for v in self.to_tuple())

    @property
    def magnitude(self) -> float:
        """Length of the displacement."""
        return math.sqrt(self.x ** 2 + self.y ** 2 + self.z ** 2)

    def __neg__(self) -> "Vector3D":
        """Negate the vector."""
        return Vector3D(x=-self.x, y=-self.y, z=-self.z)

    model_config = {
        "json_schema_extra": {
            "example": {"x": 1.0, "y": 2.0, "z": 3.0}
        }
    }
