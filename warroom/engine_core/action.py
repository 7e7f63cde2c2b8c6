"""
Action System - Meta-game actions, failure codes and results.

Every engine entry point returns an ActionResult. Expected rule
violations are ordinary results, never exceptions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureCode(Enum):
    """Why an operation was refused."""
    INVALID_INPUT = "INVALID_INPUT"  # Bad cell id, unknown action/rank
    INVALID_PLAYER = "INVALID_PLAYER"  # Unknown or dead player
    WRONG_PHASE = "WRONG_PHASE"
    WRONG_TURN = "WRONG_TURN"
    RULE_VIOLATION = "RULE_VIOLATION"
    ALREADY_DECIDED = "ALREADY_DECIDED"  # Match is over


@dataclass(frozen=True)
class MetaAction:
    """A resource-gated action of the planning/action meta-game."""
    action_id: str
    name: str
    cost: int
    description: str


ACTIONS: dict[str, MetaAction] = {
    "RECON": MetaAction(
        action_id="RECON",
        name="Reconnaissance",
        cost=1,
        description="Gain intel and reduce next turn's uncertainty.",
    ),
    "FORTIFY": MetaAction(
        action_id="FORTIFY",
        name="Fortify",
        cost=2,
        description="Shield yourself from one negative event at resolution.",
    ),
    "PROPAGANDA": MetaAction(
        action_id="PROPAGANDA",
        name="Propaganda",
        cost=2,
        description="Raise your morale at the cost of global tension.",
    ),
    "STRIKE": MetaAction(
        action_id="STRIKE",
        name="Strike",
        cost=3,
        description="Raise tension sharply and lower another player's morale.",
    ),
}


def list_actions() -> list[MetaAction]:
    return list(ACTIONS.values())


def get_action(action_id: str) -> MetaAction | None:
    return ACTIONS.get(action_id)


@dataclass
class ActionResult:
    """
    Result of an engine operation.

    Contains:
    - Whether the operation succeeded
    - A renderable reason and code on failure
    - Human-readable changes and extra data on success
    """
    success: bool
    error: str | None = None
    error_code: FailureCode | None = None

    # For UI/presentation
    changes: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failure(cls, error: str, error_code: FailureCode) -> ActionResult:
        """Create a failure result."""
        if not error:
            raise ValueError("Failure results need a non-empty reason")
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def ok(cls, changes: list[str] | None = None, **data: Any) -> ActionResult:
        """Create a success result."""
        return cls(success=True, changes=changes or [], data=data)
