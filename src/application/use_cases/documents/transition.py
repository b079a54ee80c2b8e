"""
Transition state and per-item results for the document lifecycle.

A ``TransitionState`` travels through the named steps of one transition and
records what completed, what was rolled back and what went wrong without
aborting. Each transition kind declares a point of no return: once that step
has completed, storage is never rolled back and later failures become
warnings.
"""

from dataclasses import dataclass, field
from typing import Any

from src.domain.enums import ErrorCode
from src.domain.exceptions import DriveException
from src.shared.enums import ItemOutcome, TransitionKind, TransitionStep

# None: committed as soon as the transition starts
POINTS_OF_NO_RETURN: dict[TransitionKind, TransitionStep | None] = {
    TransitionKind.TRASH: TransitionStep.REMOVE_SOURCE,
    TransitionKind.RESTORE: TransitionStep.COPY,
    TransitionKind.PERMANENT_DELETE: None,
    TransitionKind.RENAME: TransitionStep.UPDATE_METADATA,
}


class RollbackNotAllowedError(RuntimeError):
    """A rollback was attempted after the point of no return."""


@dataclass
class TransitionWarning:
    reason: str
    detail: str
    code: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"reason": self.reason, "detail": self.detail}
        if self.code:
            result["code"] = self.code
        result.update(self.data)
        return result


@dataclass
class TransitionState:
    """Mutable record of one transition in flight"""

    kind: TransitionKind
    document_id: str
    completed_steps: list[TransitionStep] = field(default_factory=list)
    rollback_steps: list[TransitionStep] = field(default_factory=list)
    warnings: list[TransitionWarning] = field(default_factory=list)

    @property
    def point_of_no_return(self) -> TransitionStep | None:
        return POINTS_OF_NO_RETURN[self.kind]

    @property
    def passed_point_of_no_return(self) -> bool:
        step = self.point_of_no_return
        return step is None or step in self.completed_steps

    def complete(self, step: TransitionStep) -> None:
        self.completed_steps.append(step)

    def rolled_back(self, step: TransitionStep) -> None:
        if self.passed_point_of_no_return:
            raise RollbackNotAllowedError(
                f"{self.kind.value} of {self.document_id} is past "
                f"{self.point_of_no_return}; cannot run {step.value}"
            )
        self.rollback_steps.append(step)

    def warn(
        self,
        reason: str,
        error: DriveException | str,
        **data: Any,
    ) -> None:
        if isinstance(error, DriveException):
            self.warnings.append(
                TransitionWarning(reason, error.message, error.error_code, data)
            )
        else:
            self.warnings.append(TransitionWarning(reason, error, None, data))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "completed_steps": [step.value for step in self.completed_steps],
            "rollback_steps": [step.value for step in self.rollback_steps],
            "point_of_no_return": (
                self.point_of_no_return.value if self.point_of_no_return else None
            ),
            "passed_point_of_no_return": self.passed_point_of_no_return,
        }


@dataclass
class TransitionResult:
    """
    Outcome of one lifecycle transition on one document.

    ``ok`` is true for plain success and for success with warnings.
    """

    document_id: str
    outcome: ItemOutcome
    reason: str | None = None
    detail: str | None = None
    code: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    state: TransitionState | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (ItemOutcome.OK, ItemOutcome.WARNING)

    @property
    def skipped(self) -> bool:
        return self.outcome == ItemOutcome.SKIPPED

    @property
    def warnings(self) -> list[TransitionWarning]:
        return self.state.warnings if self.state else []

    @classmethod
    def succeeded(cls, state: TransitionState, **data: Any) -> "TransitionResult":
        outcome = ItemOutcome.WARNING if state.warnings else ItemOutcome.OK
        detail = "; ".join(w.detail for w in state.warnings) or None
        return cls(state.document_id, outcome, detail=detail, data=data, state=state)

    @classmethod
    def skip(cls, state: TransitionState, reason: str) -> "TransitionResult":
        return cls(state.document_id, ItemOutcome.SKIPPED, reason=reason, state=state)

    @classmethod
    def failed(
        cls,
        state: TransitionState,
        reason: str,
        error: DriveException | None = None,
        code: str | None = None,
        detail: str | None = None,
    ) -> "TransitionResult":
        return cls(
            state.document_id,
            ItemOutcome.ERROR,
            reason=reason,
            detail=detail or (error.message if error else reason),
            code=code or (error.error_code if error else ErrorCode.VALIDATION_ERROR.value),
            state=state,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.document_id, "outcome": self.outcome.value}
        for key in ("reason", "detail", "code"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.warnings:
            result["warnings"] = [w.to_dict() for w in self.warnings]
        if self.data:
            result["data"] = dict(self.data)
        if self.state:
            result["state"] = self.state.to_dict()
        return result
