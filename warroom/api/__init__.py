"""
API Module - Browser client interface.

Exposes the engine via a REST + WebSocket API. The client:
1. Creates a match (local, pve or remote)
2. Deploys pieces and declares readiness
3. Plays moves, or forwards match-server events for remote matches
4. Receives state updates over the WebSocket

All state is session-scoped and in-memory.
"""

from .schemas import (
    # Requests
    CreateMatchRequest,
    PlaceRequest,
    CellMoveRequest,
    ReadyRequest,
    ImportDeploymentRequest,
    SelectRequest,
    ExecuteActionRequest,
    RemoteEventRequest,
    # Responses
    MatchStateResponse,
    OperationResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    PieceInfo,
    BattleInfo,
    ErrorCode,
)
from .service import APIService, state_to_response
from .app import create_app

__all__ = [
    # Requests
    "CreateMatchRequest",
    "PlaceRequest",
    "CellMoveRequest",
    "ReadyRequest",
    "ImportDeploymentRequest",
    "SelectRequest",
    "ExecuteActionRequest",
    "RemoteEventRequest",
    # Responses
    "MatchStateResponse",
    "OperationResponse",
    "ErrorResponse",
    # Shared
    "PlayerInfo",
    "PieceInfo",
    "BattleInfo",
    "ErrorCode",
    # Service
    "APIService",
    "state_to_response",
    "create_app",
]
