"""In-memory set of element moves not yet saved."""

from typing import Any, Dict, List

from ..exceptions import InvalidGeometryError, ValidationFailedError
from ..logging import get_logger
from ..models import PendingChange, Point3D


logger = get_logger(__name__)


class TransformCollector:
    """Pending moves keyed by element id, in first-move order.

    Moving an element again keeps the position it had before its first
    move and takes the latest position, key and name.
    """

    def __init__(self) -> None:
        self._changes: Dict[int, PendingChange] = {}

    def __len__(self) -> int:
        return len(self._changes)

    def record_move(
        self,
        element_id: int,
        element_key: str,
        original_position: Any,
        new_position: Any,
        element_name: str = "",
    ) -> PendingChange:
        """Record or update the move of one element.

        Raises:
            InvalidGeometryError: A position has NaN or infinite coordinates
        """
        if isinstance(element_id, bool):
            raise ValidationFailedError([f"element_id must be an integer, got {element_id!r}"])

        original = Point3D.coerce(original_position)
        new = Point3D.coerce(new_position)
        if not original.is_finite():
            raise InvalidGeometryError(element_id, "original_position", original.to_tuple())
        if not new.is_finite():
            raise InvalidGeometryError(element_id, "new_position", new.to_tuple())

        existing = self._changes.get(element_id)
        if existing is not None:
            original = existing.original_position

        change = PendingChange(
            element_key=element_key,
            element_id=element_id,
            element_name=element_name,
            original_position=original,
            new_position=new,
        )
        self._changes[element_id] = change
        logger.debug(
            "Move recorded",
            element_id=element_id,
            repeat=existing is not None,
            pending=len(self._changes),
        )
        return change

    def list(self) -> List[PendingChange]:
        """Pending changes in the order elements were first moved."""
        return list(self._changes.values())

    def clear(self) -> None:
        """Drop all pending changes."""
        count = len(self._changes)
        self._changes.clear()
        if count:
            logger.info("Pending changes cleared", count=count)
