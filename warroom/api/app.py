"""
FastAPI Application - REST/WebSocket API for the browser client.

Endpoints:
    POST   /api/v1/matches                         Create match
    GET    /api/v1/matches                         List matches
    GET    /api/v1/matches/{id}                    Get match state
    GET    /api/v1/matches/{id}/snapshot           Hydrate-compatible battle snapshot
    DELETE /api/v1/matches/{id}                    End match
    POST   /api/v1/matches/{id}/deployment/place   Place a piece from inventory
    POST   /api/v1/matches/{id}/deployment/move    Move/swap within the deploy zone
    POST   /api/v1/matches/{id}/deployment/randomize
    POST   /api/v1/matches/{id}/deployment/clear
    POST   /api/v1/matches/{id}/deployment/import
    GET    /api/v1/matches/{id}/deployment/{player_id}/export
    POST   /api/v1/matches/{id}/deployment/ready
    POST   /api/v1/matches/{id}/battle/select
    POST   /api/v1/matches/{id}/battle/move
    GET    /api/v1/matches/{id}/battle/targets
    POST   /api/v1/matches/{id}/battle/reset       Rematch
    POST   /api/v1/matches/{id}/meta/advance
    POST   /api/v1/matches/{id}/meta/action
    GET    /api/v1/actions                         Meta-game action catalogue
    POST   /api/v1/matches/{id}/remote/events      Forward a match-server event
    WS     /api/v1/matches/{id}/ws                 State stream

Engine failures come back as an ErrorResponse with an HTTP status chosen
by error code. Timers (handshake, computer player) run on the server's
event loop.
"""

from typing import Annotated, Optional, Union
import asyncio
import contextlib
import json
import logging
import os

# Environment configuration
WARROOM_ENV = os.getenv("WARROOM_ENV", "development")
WARROOM_LOG_LEVEL = os.getenv("WARROOM_LOG_LEVEL", "INFO")
WARROOM_SESSION_MAX_AGE = int(os.getenv("WARROOM_SESSION_MAX_AGE", "3600"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

logger = logging.getLogger(__name__)


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from ..engine_core.scheduler import AsyncioScheduler
    from ..session import SessionManager
    from .service import APIService, state_to_response
    from .schemas import (
        # Request models
        CreateMatchRequest,
        PlayerRequest,
        PlaceRequest,
        CellMoveRequest,
        ReadyRequest,
        ImportDeploymentRequest,
        SelectRequest,
        ExecuteActionRequest,
        ResetBattleRequest,
        RemoteEventRequest,
        # Response models
        MatchStateResponse,
        OperationResponse,
        TargetsResponse,
        DeploymentExportResponse,
        ActionCatalogResponse,
        MatchListResponse,
        EndMatchResponse,
        ErrorResponse,
        HealthResponse,
        # Enums
        ErrorCode,
        MatchModeName,
    )

    logging.getLogger("warroom").setLevel(WARROOM_LOG_LEVEL.upper())

    app = FastAPI(
        title="War Room API",
        description="""
Stratego-like board game engine: deployment, battle and remote reconciliation.

## Match Flow

1. `POST /api/v1/matches` creates a match in the DEPLOYMENT phase
2. Place pieces (`deployment/place`, `deployment/randomize`, `deployment/import`)
3. `deployment/ready` for every player (or `auto_fill_opponent=true` against the computer)
4. After the handshake delay the match enters BATTLE
5. `battle/move` until a flag is captured or a player has no legal move

## Error Codes

| Code | HTTP | Description |
|------|------|-------------|
| `INVALID_INPUT` | 400 | Malformed cell, rank, action or event |
| `INVALID_PLAYER` | 404 | Unknown or eliminated player |
| `WRONG_PHASE` | 409 | Not allowed in the current phase |
| `WRONG_TURN` | 409 | Not this player's turn |
| `ALREADY_DECIDED` | 409 | The match is over |
| `RULE_VIOLATION` | 422 | Forbidden by the rules |
| `MATCH_NOT_FOUND` | 404 | Match does not exist |
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    api_service = service or APIService(
        session_manager=SessionManager(scheduler_factory=AsyncioScheduler),
        max_session_age=WARROOM_SESSION_MAX_AGE,
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    status_by_code = {
        ErrorCode.INVALID_INPUT: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.INVALID_PLAYER: 404,
        ErrorCode.MATCH_NOT_FOUND: 404,
        ErrorCode.WRONG_PHASE: 409,
        ErrorCode.WRONG_TURN: 409,
        ErrorCode.ALREADY_DECIDED: 409,
        ErrorCode.RULE_VIOLATION: 422,
    }

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def respond(response):
        """Pass successful responses through; turn ErrorResponse into JSON with a status."""
        if isinstance(response, ErrorResponse):
            return make_error_response(
                response.error_code,
                response.error,
                status_code=status_by_code.get(response.error_code, 400),
                details=response.details,
            )
        return response

    error_responses = {
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    }

    # =========================================================================
    # Match Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches",
        response_model=MatchStateResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Create a new match",
    )
    async def create_match(request: CreateMatchRequest) -> Union[MatchStateResponse, JSONResponse]:
        """
        Create a new match.

        `mode=pve` plays the second seat with the chosen `policy`;
        `mode=remote` mirrors a match-server match fed through `remote/events`.
        """
        return respond(api_service.create_match(request))

    @app.get(
        "/api/v1/matches",
        response_model=MatchListResponse,
        tags=["Matches"],
        summary="List matches",
    )
    async def list_matches() -> MatchListResponse:
        return api_service.list_matches()

    @app.get(
        "/api/v1/matches/{match_id}",
        response_model=MatchStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Get match state",
    )
    async def get_match(match_id: str) -> Union[MatchStateResponse, JSONResponse]:
        return respond(api_service.get_match(match_id))

    @app.get(
        "/api/v1/matches/{match_id}/snapshot",
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Battle snapshot in the shape hydrate accepts",
    )
    async def get_snapshot(match_id: str):
        return respond(api_service.get_snapshot(match_id))

    @app.delete(
        "/api/v1/matches/{match_id}",
        response_model=EndMatchResponse,
        tags=["Matches"],
        summary="End a match",
    )
    async def end_match(
        match_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndMatchResponse:
        """End a match and release its timers."""
        success = api_service.end_match(match_id, reason)
        return EndMatchResponse(success=success, match_id=match_id)

    # =========================================================================
    # Deployment Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches/{match_id}/deployment/place",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Place a piece from inventory",
    )
    async def place_piece(match_id: str, request: PlaceRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.place(match_id, request.player_id, request.rank, request.cell))

    @app.post(
        "/api/v1/matches/{match_id}/deployment/move",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Move or swap a piece inside the deploy zone",
    )
    async def move_deployed(match_id: str, request: CellMoveRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.move_within_deployment(
            match_id, request.player_id, request.from_cell, request.to_cell
        ))

    @app.post(
        "/api/v1/matches/{match_id}/deployment/randomize",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Randomize a player's layout",
    )
    async def randomize_deployment(match_id: str, request: PlayerRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.randomize_deployment(match_id, request.player_id))

    @app.post(
        "/api/v1/matches/{match_id}/deployment/clear",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Clear a player's layout",
    )
    async def clear_deployment(match_id: str, request: PlayerRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.clear_deployment(match_id, request.player_id))

    @app.post(
        "/api/v1/matches/{match_id}/deployment/import",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Import a saved layout",
    )
    async def import_deployment(
        match_id: str,
        request: ImportDeploymentRequest,
    ) -> Union[OperationResponse, JSONResponse]:
        """Invalid entries are skipped; the response reports placed/skipped counts."""
        return respond(api_service.import_deployment(match_id, request.player_id, request.deployment))

    @app.get(
        "/api/v1/matches/{match_id}/deployment/{player_id}/export",
        response_model=DeploymentExportResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Deployment"],
        summary="Export a player's layout",
    )
    async def export_deployment(match_id: str, player_id: int) -> Union[DeploymentExportResponse, JSONResponse]:
        return respond(api_service.export_deployment(match_id, player_id))

    @app.post(
        "/api/v1/matches/{match_id}/deployment/ready",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Deployment"],
        summary="Declare a finished layout",
    )
    async def set_ready(match_id: str, request: ReadyRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.set_ready(match_id, request.player_id, request.auto_fill_opponent))

    # =========================================================================
    # Battle Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches/{match_id}/battle/select",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Battle"],
        summary="Select or clear a piece",
    )
    async def select_cell(match_id: str, request: SelectRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.select_cell(match_id, request.player_id, request.cell))

    @app.post(
        "/api/v1/matches/{match_id}/battle/move",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Battle"],
        summary="Move a piece (attacks resolve combat)",
    )
    async def move_piece(match_id: str, request: CellMoveRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.move(match_id, request.player_id, request.from_cell, request.to_cell))

    @app.get(
        "/api/v1/matches/{match_id}/battle/targets",
        response_model=TargetsResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Battle"],
        summary="Legal destinations for a piece",
    )
    async def legal_targets(
        match_id: str,
        player_id: Annotated[int, Query()],
        cell: Annotated[str, Query(description="Origin cell key")],
    ) -> Union[TargetsResponse, JSONResponse]:
        return respond(api_service.legal_targets(match_id, player_id, cell))

    @app.post(
        "/api/v1/matches/{match_id}/battle/reset",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Battle"],
        summary="Reset the battle for a rematch",
    )
    async def reset_battle(
        match_id: str,
        request: Optional[ResetBattleRequest] = None,
    ) -> Union[OperationResponse, JSONResponse]:
        clear_history = request.clear_history if request else False
        return respond(api_service.reset_battle(match_id, clear_history))

    # =========================================================================
    # Meta-game Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches/{match_id}/meta/advance",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Meta-game"],
        summary="Advance the planning/action/resolution phase",
    )
    async def advance_phase(match_id: str) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.advance_phase(match_id))

    @app.post(
        "/api/v1/matches/{match_id}/meta/action",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Meta-game"],
        summary="Execute a meta-game action",
    )
    async def execute_action(match_id: str, request: ExecuteActionRequest) -> Union[OperationResponse, JSONResponse]:
        return respond(api_service.execute_action(
            match_id, request.player_id, request.action_id, request.target_id
        ))

    @app.get(
        "/api/v1/actions",
        response_model=ActionCatalogResponse,
        tags=["Meta-game"],
        summary="Meta-game action catalogue",
    )
    async def list_actions() -> ActionCatalogResponse:
        return api_service.list_actions()

    # =========================================================================
    # Remote Events
    # =========================================================================

    @app.post(
        "/api/v1/matches/{match_id}/remote/events",
        response_model=OperationResponse,
        responses=error_responses,
        tags=["Remote"],
        summary="Forward a match-server event envelope",
    )
    async def remote_event(match_id: str, request: RemoteEventRequest) -> Union[OperationResponse, JSONResponse]:
        envelope = request.model_dump(exclude_none=True)
        return respond(api_service.handle_remote_event(match_id, envelope))

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/matches/{match_id}/ws")
    async def match_stream(websocket: WebSocket, match_id: str):
        """
        WebSocket for real-time updates.

        Messages from server:
        - state_update: Match state changed (sent once on connect, then on
          every engine notification)
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        session = api_service.get_session(match_id)
        if not session:
            await websocket.send_json({
                "type": "error",
                "payload": {"message": "Match not found", "error_code": ErrorCode.MATCH_NOT_FOUND.value},
            })
            await websocket.close()
            return

        loop = asyncio.get_running_loop()
        updates: asyncio.Queue = asyncio.Queue()
        mode = MatchModeName(session.mode.value)

        def on_state(state):
            payload = state_to_response(state, mode).model_dump(mode="json")
            loop.call_soon_threadsafe(updates.put_nowait, payload)

        async def pump():
            while True:
                payload = await updates.get()
                await websocket.send_json({"type": "state_update", "payload": payload})

        unsubscribe = session.engine.subscribe(on_state)
        sender = asyncio.create_task(pump())

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                    if isinstance(message, dict) and message.get("type") == "ping":
                        await websocket.send_json({"type": "pong"})
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
        except WebSocketDisconnect:
            logger.debug("WebSocket for match %s disconnected", match_id)
        finally:
            unsubscribe()
            sender.cancel()
            try:
                with contextlib.suppress(asyncio.CancelledError):
                    await sender
            except Exception:
                logger.warning("State stream for match %s failed", match_id, exc_info=True)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="warroom-engine",
            version="1.0.0",
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "War Room API",
            "version": "1.0.0",
            "environment": WARROOM_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn warroom.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
