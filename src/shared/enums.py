"""
Shared enumerations for the Drive Docs core.

Note: DocumentStatus and ShareType are in src/domain/enums.py as they're domain concepts.
"""

from enum import Enum


class TransitionKind(str, Enum):
    """Lifecycle transitions the engine knows how to run"""

    TRASH = "trash"
    RESTORE = "restore"
    PERMANENT_DELETE = "permanent_delete"
    RENAME = "rename"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [kind.value for kind in cls]


class TransitionStep(str, Enum):
    """Named steps of a lifecycle transition, in the order they can run"""

    PROBE = "probe"
    COPY = "copy"
    REMOVE_SOURCE = "remove_source"
    UPDATE_METADATA = "update_metadata"
    REMOVE_OBJECT = "remove_object"
    DELETE_ROW = "delete_row"
    ROLLBACK_REMOVE_TARGET = "rollback_remove_target"
    ROLLBACK_COPY_BACK = "rollback_copy_back"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [step.value for step in cls]


class ItemOutcome(str, Enum):
    """Per-item result of a lifecycle transition"""

    OK = "ok"
    SKIPPED = "skipped"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [outcome.value for outcome in cls]


class BatchOperation(str, Enum):
    """Lifecycle operations the batch coordinator can fan out"""

    TRASH = "trash"
    RESTORE = "restore"
    PERMANENT_DELETE = "permanent_delete"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [operation.value for operation in cls]
