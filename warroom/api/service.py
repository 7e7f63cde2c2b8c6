"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages sessions
3. Formats engine state and results into response models

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable
import logging

from .schemas import (
    # Requests
    CreateMatchRequest,
    # Responses
    MatchStateResponse,
    OperationResponse,
    TargetsResponse,
    DeploymentExportResponse,
    ActionCatalogResponse,
    MatchSummary,
    MatchListResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    PieceInfo,
    CombatInfo,
    BattleInfo,
    LogEntryInfo,
    ActionInfo,
    # Enums
    ErrorCode,
    MatchModeName,
)
from ..engine_core.action import ActionResult, list_actions
from ..engine_core.army import ARMIES
from ..engine_core.config import MatchConfig
from ..engine_core.engine import MatchEngine
from ..engine_core.state import MatchState
from ..session import SessionManager, Session, MatchMode

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


@dataclass
class APIService:
    """
    Main API service for the browser client.

    Usage:
        service = APIService()

        # Create a match
        state = service.create_match(CreateMatchRequest(mode="pve"))

        # Drive it
        result = service.randomize_deployment(state.match_id, player_id=1)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    # Idle matches older than this are dropped when a new one is created
    max_session_age: int = 3600

    # =========================================================================
    # Matches
    # =========================================================================

    def create_match(self, request: CreateMatchRequest) -> MatchStateResponse | ErrorResponse:
        """Create a new match session."""
        self.session_manager.cleanup_stale_sessions(self.max_session_age)

        overrides: dict[str, Any] = {}
        if request.army:
            if request.army not in ARMIES:
                return ErrorResponse(
                    error=f"Unknown army '{request.army}', expected one of {sorted(ARMIES)}",
                    error_code=ErrorCode.VALIDATION_ERROR,
                )
            overrides["army"] = ARMIES[request.army]
        if request.handshake_delay is not None:
            overrides["handshake_delay"] = request.handshake_delay
        if request.auto_turn_delay is not None:
            overrides["auto_turn_delay"] = request.auto_turn_delay

        try:
            session = self.session_manager.create_session(
                players=[(p.name, p.role) for p in request.players],
                mode=MatchMode(request.mode.value),
                config=MatchConfig.from_env(**overrides),
                seed=request.random_seed,
                policy=request.policy.value,
                network={
                    "match_id": request.network_match_id,
                    "local_player_id": request.local_player_id,
                    "team": request.team,
                },
            )
        except ValueError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.VALIDATION_ERROR)

        return self.build_state(session)

    def get_match(self, match_id: str) -> MatchStateResponse | ErrorResponse:
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        return self.build_state(session)

    def get_snapshot(self, match_id: str) -> dict[str, Any] | ErrorResponse:
        """The hydrate-compatible battle snapshot."""
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        return session.engine.snapshot()

    def end_match(self, match_id: str, reason: str = "user_ended") -> bool:
        return self.session_manager.end_session(match_id, reason)

    def list_matches(self) -> MatchListResponse:
        matches = [
            MatchSummary(
                match_id=s.session_id,
                mode=MatchModeName(s.mode.value),
                battle_phase=s.engine.get_state().battle.phase.value,
                players=[p.name for p in s.engine.get_state().players],
            )
            for s in self.session_manager.list_sessions()
        ]
        return MatchListResponse(matches=matches, count=len(matches))

    def get_session(self, match_id: str) -> Session | None:
        return self.session_manager.get_session(match_id)

    # =========================================================================
    # Deployment
    # =========================================================================

    def place(self, match_id: str, player_id: int, rank: str, cell: str):
        return self._run(match_id, lambda e: e.place_from_inventory(player_id, rank, cell))

    def move_within_deployment(self, match_id: str, player_id: int, from_cell: str, to_cell: str):
        return self._run(
            match_id, lambda e: e.move_or_swap_within_deployment(player_id, from_cell, to_cell)
        )

    def randomize_deployment(self, match_id: str, player_id: int):
        return self._run(match_id, lambda e: e.randomize_deployment(player_id))

    def clear_deployment(self, match_id: str, player_id: int):
        return self._run(match_id, lambda e: e.clear_deployment(player_id))

    def import_deployment(self, match_id: str, player_id: int, deployment: dict[str, Any]):
        return self._run(match_id, lambda e: e.import_deployment(player_id, deployment))

    def set_ready(self, match_id: str, player_id: int, auto_fill_opponent: bool = False):
        return self._run(match_id, lambda e: e.set_ready(player_id, auto_fill_opponent))

    def export_deployment(self, match_id: str, player_id: int) -> DeploymentExportResponse | ErrorResponse:
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        if session.engine.get_state().get_player(player_id) is None:
            return ErrorResponse(
                error=f"Player {player_id} not found",
                error_code=ErrorCode.INVALID_PLAYER,
            )
        return DeploymentExportResponse(
            player_id=player_id,
            deployment=session.engine.export_deployment(player_id),
        )

    # =========================================================================
    # Battle
    # =========================================================================

    def select_cell(self, match_id: str, player_id: int, cell: str | None):
        return self._run(match_id, lambda e: e.select_cell(player_id, cell))

    def move(self, match_id: str, player_id: int, from_cell: str, to_cell: str):
        return self._run(match_id, lambda e: e.move(player_id, from_cell, to_cell))

    def reset_battle(self, match_id: str, clear_history: bool = False):
        return self._run(match_id, lambda e: e.reset_battle(clear_history))

    def legal_targets(self, match_id: str, player_id: int, cell: str) -> TargetsResponse | ErrorResponse:
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        return TargetsResponse(
            player_id=player_id,
            cell=cell,
            targets=session.engine.legal_targets(player_id, cell),
        )

    # =========================================================================
    # Meta-game
    # =========================================================================

    def advance_phase(self, match_id: str):
        return self._run(match_id, lambda e: e.advance_phase())

    def execute_action(self, match_id: str, player_id: int, action_id: str, target_id: int | None = None):
        return self._run(match_id, lambda e: e.execute_action(player_id, action_id, target_id))

    def list_actions(self) -> ActionCatalogResponse:
        return ActionCatalogResponse(
            actions=[ActionInfo.model_validate(a) for a in list_actions()]
        )

    # =========================================================================
    # Remote events
    # =========================================================================

    def handle_remote_event(self, match_id: str, envelope: dict[str, Any]):
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        if session.bridge is None:
            return ErrorResponse(
                error="Match is not server-driven",
                error_code=ErrorCode.WRONG_PHASE,
                details={"mode": session.mode.value},
            )
        result = session.bridge.handle(envelope)
        return self._to_response(session, result)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _run(
        self,
        match_id: str,
        operation: Callable[[MatchEngine], ActionResult],
    ) -> OperationResponse | ErrorResponse:
        session = self.session_manager.get_session(match_id)
        if not session:
            return self._not_found(match_id)
        return self._to_response(session, operation(session.engine))

    def _to_response(self, session: Session, result: ActionResult) -> OperationResponse | ErrorResponse:
        if not result.success:
            return ErrorResponse(
                error=result.error,
                error_code=ErrorCode(result.error_code.value),
            )
        return OperationResponse(
            success=True,
            changes=result.changes,
            data=result.data,
            state=self.build_state(session),
        )

    def _not_found(self, match_id: str) -> ErrorResponse:
        return ErrorResponse(
            error="Match not found",
            error_code=ErrorCode.MATCH_NOT_FOUND,
            details={"match_id": match_id},
        )

    def build_state(self, session: Session) -> MatchStateResponse:
        return state_to_response(session.engine.get_state(), MatchModeName(session.mode.value))


def state_to_response(state: MatchState, mode: MatchModeName) -> MatchStateResponse:
    """Convert engine state into the API read model."""
    battle = state.battle
    last = battle.last_combat
    return MatchStateResponse(
        match_id=state.match_id,
        mode=mode,
        turn=state.turn,
        phase=state.phase.value,
        tension=state.tension,
        intel=state.intel,
        players=[PlayerInfo.model_validate(p) for p in state.players],
        battle=BattleInfo(
            phase=battle.phase.value,
            board={
                cell: PieceInfo.model_validate(piece)
                for cell, piece in sorted(battle.board.items())
            },
            inventory={str(pid): dict(inv) for pid, inv in battle.inventory.items()},
            ready={str(pid): flag for pid, flag in battle.ready.items()},
            turn_owner_id=battle.turn_owner_id,
            winner_id=battle.winner_id,
            game_over_reason=battle.game_over_reason,
            last_combat=CombatInfo(**last.to_dict()) if last else None,
            selected_cell=battle.selected_cell,
            pve_auto=battle.pve_auto,
            computer_player_id=battle.computer_player_id,
        ),
        history=[
            LogEntryInfo(
                timestamp=entry.timestamp,
                turn=entry.turn,
                phase=entry.phase.value,
                kind=entry.kind.value,
                message=entry.message,
                meta=entry.meta,
            )
            for entry in state.history[-HISTORY_LIMIT:]
        ],
    )
