"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the browser client and the
engine. All responses include explicit types for OpenAPI schema generation.

Error Codes:
- INVALID_INPUT: Malformed cell, rank, action or remote event
- INVALID_PLAYER: Unknown or eliminated player
- WRONG_PHASE / WRONG_TURN: Operation not allowed right now
- RULE_VIOLATION: The game rules forbid the operation
- ALREADY_DECIDED: The match is over
- MATCH_NOT_FOUND: Match does not exist or has been ended
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class MatchModeName(str, Enum):
    """Who drives the seats."""
    LOCAL = "local"
    PVE = "pve"
    REMOTE = "remote"


class PolicyName(str, Enum):
    """Computer-player policies."""
    RANDOM = "random"
    FIRST = "first"
    GREEDY = "greedy"


class ErrorCode(str, Enum):
    """Structured error codes."""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PLAYER = "INVALID_PLAYER"
    WRONG_PHASE = "WRONG_PHASE"
    WRONG_TURN = "WRONG_TURN"
    RULE_VIOLATION = "RULE_VIOLATION"
    ALREADY_DECIDED = "ALREADY_DECIDED"
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class PlayerSeat(BaseModel):
    """A roster entry at match creation."""
    name: str = Field(..., min_length=1)
    role: str = ""


class PlayerStatusInfo(BaseModel):
    shielded: bool = False
    penalty_turns: int = 0

    model_config = {"from_attributes": True}


class PlayerInfo(BaseModel):
    """Player information for display."""
    player_id: int
    name: str
    role: str = ""
    alive: bool = True
    resources: int = 0
    morale: int = 0
    intel: int = 0
    status: PlayerStatusInfo = Field(default_factory=PlayerStatusInfo)

    model_config = {"from_attributes": True}


class PieceInfo(BaseModel):
    owner_id: int
    rank: str

    model_config = {"from_attributes": True}


class CombatInfo(BaseModel):
    """One resolved attack."""
    from_cell: str
    to_cell: str
    attacker: PieceInfo
    defender: PieceInfo
    outcome: str = Field(description="ATTACKER_WINS, DEFENDER_WINS or TIE")
    special: Optional[str] = None


class BattleInfo(BaseModel):
    """Board sub-state."""
    phase: str = Field(description="DEPLOYMENT, HANDSHAKE, BATTLE or GAME_OVER")
    board: dict[str, PieceInfo] = Field(default_factory=dict)
    inventory: dict[str, dict[str, int]] = Field(default_factory=dict)
    ready: dict[str, bool] = Field(default_factory=dict)
    turn_owner_id: Optional[int] = None
    winner_id: Optional[int] = None
    game_over_reason: Optional[str] = None
    last_combat: Optional[CombatInfo] = None
    selected_cell: Optional[str] = None
    pve_auto: bool = False
    computer_player_id: Optional[int] = None


class LogEntryInfo(BaseModel):
    timestamp: str
    turn: int
    phase: str
    kind: str
    message: str
    meta: dict[str, Any] = Field(default_factory=dict)


class ActionInfo(BaseModel):
    """A meta-game action from the catalogue."""
    action_id: str
    name: str
    cost: int
    description: str

    model_config = {"from_attributes": True}


# =============================================================================
# Request Models
# =============================================================================

class CreateMatchRequest(BaseModel):
    """Request to create a new match."""
    players: list[PlayerSeat] = Field(
        default_factory=lambda: [
            PlayerSeat(name="Challenger", role="challenger"),
            PlayerSeat(name="Defender", role="defender"),
        ],
        min_length=2,
        max_length=2,
    )
    mode: MatchModeName = MatchModeName.PVE
    policy: PolicyName = Field(PolicyName.RANDOM, description="Computer player (pve only)")
    army: Optional[str] = Field(None, description="Army table: classic or demo")
    random_seed: Optional[int] = Field(None, description="Seed for reproducible matches")
    handshake_delay: Optional[float] = Field(None, ge=0.0)
    auto_turn_delay: Optional[float] = Field(None, ge=0.0)

    # Remote mode only
    network_match_id: Optional[str] = None
    local_player_id: int = 1
    team: Optional[str] = None


class PlayerRequest(BaseModel):
    player_id: int


class PlaceRequest(BaseModel):
    player_id: int
    rank: str
    cell: str = Field(..., description="Target cell key, e.g. cell-0-0")


class CellMoveRequest(BaseModel):
    player_id: int
    from_cell: str
    to_cell: str


class ReadyRequest(BaseModel):
    player_id: int
    auto_fill_opponent: bool = Field(
        False, description="Randomize and ready the opponent as the computer player"
    )


class ImportDeploymentRequest(BaseModel):
    player_id: int
    deployment: dict[str, Any] = Field(
        ..., description="{cell: {\"rank\": code}} or {cell: code}"
    )


class SelectRequest(BaseModel):
    player_id: int
    cell: Optional[str] = Field(None, description="Cell to select; null clears")


class ExecuteActionRequest(BaseModel):
    player_id: int
    action_id: str
    target_id: Optional[int] = None


class ResetBattleRequest(BaseModel):
    clear_history: bool = False


class RemoteEventRequest(BaseModel):
    """A match-server envelope, forwarded as-is to the bridge."""
    event: Optional[str] = None
    type: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class MatchStateResponse(BaseModel):
    """Full match state."""
    match_id: str
    mode: MatchModeName
    turn: int
    phase: str = Field(description="Meta-game phase: planning, action or resolution")
    tension: int
    intel: int
    players: list[PlayerInfo] = Field(default_factory=list)
    battle: BattleInfo
    history: list[LogEntryInfo] = Field(default_factory=list)


class OperationResponse(BaseModel):
    """Result of a successful engine operation plus the new state."""
    success: bool = True
    changes: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    state: MatchStateResponse


class TargetsResponse(BaseModel):
    player_id: int
    cell: str
    targets: list[str] = Field(default_factory=list)


class DeploymentExportResponse(BaseModel):
    player_id: int
    deployment: dict[str, dict[str, str]] = Field(default_factory=dict)


class ActionCatalogResponse(BaseModel):
    actions: list[ActionInfo] = Field(default_factory=list)


class MatchSummary(BaseModel):
    match_id: str
    mode: MatchModeName
    battle_phase: str
    players: list[str] = Field(default_factory=list)


class MatchListResponse(BaseModel):
    """Response listing matches."""
    matches: list[MatchSummary] = Field(default_factory=list)
    count: int


class EndMatchResponse(BaseModel):
    """Response after ending a match."""
    success: bool
    match_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
