"""Domain exceptions.

Raised by the progression engine, the ledger and the services. None of them
knows about HTTP; backend.app maps each class to a status code.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for rejected progression operations."""


class NotReadyForLevelUp(ProgressionError):
    """A level-up was requested but the stat's XP does not reach the next threshold."""

    def __init__(self, total_xp: int, current_level: int, required_xp: int) -> None:
        self.total_xp = total_xp
        self.current_level = current_level
        self.required_xp = required_xp
        super().__init__(
            f"Stat is not ready for level up. Current level: {current_level}, "
            f"Total XP: {total_xp}, XP required for level {current_level + 1}: {required_xp}"
        )


class InconsistentProgressionEdit(ProgressionError):
    """A direct edit supplied a level/XP pair that the threshold function rejects."""


class UnknownOrUnauthorizedEntity(LookupError):
    """The target row does not exist, or belongs to someone else."""

    def __init__(self, entity_type: str, entity_id: str, *, forbidden: bool = False) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.forbidden = forbidden
        reason = "does not belong to this user" if forbidden else "not found"
        super().__init__(f"{entity_type} {entity_id} {reason}")


class DuplicateEntity(ValueError):
    """A uniqueness constraint (email, stat name per owner) was violated."""
