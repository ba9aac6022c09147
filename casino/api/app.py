"""
FastAPI Application - REST and WebSocket API for game clients.

Endpoints:
    POST   /api/v1/sessions                 Create session (seat 0)
    GET    /api/v1/sessions                 List active sessions
    GET    /api/v1/sessions/{id}            Get session status
    DELETE /api/v1/sessions/{id}            End session
    POST   /api/v1/sessions/{id}/join       Take seat 1, game starts
    POST   /api/v1/sessions/{id}/leave      Leave, session ends
    GET    /api/v1/sessions/{id}/state      Get full game state
    POST   /api/v1/sessions/{id}/determine  Actions a card drop allows
    POST   /api/v1/sessions/{id}/moves      Submit a move
    WS     /api/v1/sessions/{id}/ws         Real-time game updates

Move Flow:
    1. While dragging, the client calls POST /determine
    2. A single trail or capture is submitted directly; otherwise the
       client shows the options and submits the chosen one
    3. POST /moves applies the move for the player on turn
    4. Every accepted move broadcasts a `game-update` carrying the
       complete new state over the WebSocket

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Optional, Union
import json
import logging

from ..config import get_settings, configure_logging


logger = logging.getLogger(__name__)

# HTTP status per error code; anything else is a 400
ERROR_STATUS = {
    "SESSION_NOT_FOUND": 404,
    "INVALID_TOKEN": 403,
    "SESSION_FULL": 409,
    "SESSION_ENDED": 410,
    "GAME_NOT_STARTED": 409,
    "GAME_OVER": 409,
    "NOT_YOUR_TURN": 409,
    "ENGINE_ERROR": 500,
    "INTERNAL_ERROR": 500,
}


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Query
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse

    from .service import APIService
    from .schemas import (
        # Request models
        CreateSessionRequest,
        JoinSessionRequest,
        LeaveSessionRequest,
        DetermineRequest,
        MoveRequest,
        # Response models
        SeatResponse,
        SessionResponse,
        GameStateResponse,
        DetermineResponse,
        MoveResponse,
        ErrorResponse,
        SessionListResponse,
        EndSessionResponse,
        HealthResponse,
    )

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Casino Engine API",
        description="""
Two-player Casino card game server.

## Move Flow

1. `POST /determine` with the dragged card and drop target
2. If `requires_modal=false`, submit the single action directly
3. Otherwise let the player pick one of `actions` and submit it
4. `POST /moves` with `actionType`, `payload`, `playerIndex`, `playerToken`

Accepted moves are broadcast as `game-update` messages with the full state.

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `INVALID_TOKEN` | Token does not match the seat |
| `NOT_YOUR_TURN` | Player is not on turn |
| `UNKNOWN_ACTION` | Unknown action type |
| `NO_VALID_ACTIONS` | Move not allowed for this drop |
| `INVALID_MOVE` | Move failed its checks |
        """,
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # CORS for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    api_service = service or APIService()

    # WebSocket connections
    ws_connections: dict[str, list[WebSocket]] = {}

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        response: ErrorResponse,
        status_code: Optional[int] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        if status_code is None:
            status_code = ERROR_STATUS.get(response.error_code.value, 400)
        return JSONResponse(
            status_code=status_code,
            content=response.model_dump(mode="json"),
        )

    async def broadcast_to_session(session_id: str, message: dict):
        """Broadcast a message to all WebSocket connections for a session."""
        if session_id in ws_connections:
            dead_connections = []
            for ws in ws_connections[session_id]:
                try:
                    await ws.send_json(message)
                except (RuntimeError, WebSocketDisconnect):
                    dead_connections.append(ws)
            for ws in dead_connections:
                ws_connections[session_id].remove(ws)

    async def broadcast_state(session_id: str):
        state = api_service.get_game_state(session_id)
        if isinstance(state, GameStateResponse) and state.game_state is not None:
            await broadcast_to_session(session_id, {
                "type": "game-update",
                "payload": state.game_state,
            })

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SeatResponse,
        tags=["Sessions"],
        summary="Create a new game session",
    )
    async def create_session(body: CreateSessionRequest) -> SeatResponse:
        """
        Create a new game session and take seat 0.

        The returned `player_token` must accompany every move.
        """
        api_service.cleanup(settings.session_max_age)
        return api_service.create_session(body)

    @app.post(
        "/api/v1/sessions/{session_id}/join",
        response_model=SeatResponse,
        responses={
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Session full"},
        },
        tags=["Sessions"],
        summary="Join a session as the second player",
    )
    async def join_session(
        session_id: str,
        body: JoinSessionRequest,
    ) -> Union[SeatResponse, JSONResponse]:
        """Take seat 1. The cards are dealt and player 0 moves first."""
        response = api_service.join_session(session_id, body)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        await broadcast_state(session_id)
        return response

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Get the current status of a game session."""
        response = api_service.get_session(session_id)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/leave",
        response_model=EndSessionResponse,
        responses={
            403: {"model": ErrorResponse, "description": "Invalid token"},
            404: {"model": ErrorResponse, "description": "Session not found"},
        },
        tags=["Sessions"],
        summary="Leave a session",
    )
    async def leave_session(
        session_id: str,
        body: LeaveSessionRequest,
    ) -> Union[EndSessionResponse, JSONResponse]:
        """Leave the session. Two players are required, so the session ends."""
        response = api_service.leave_session(session_id, body)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        await broadcast_to_session(session_id, {
            "type": "session-ended",
            "payload": {"sessionId": session_id, "reason": "player_left"},
        })
        return response

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a game session",
    )
    async def end_session(
        session_id: str,
        reason: Optional[str] = Query("user_ended", description="Reason for ending"),
    ) -> EndSessionResponse:
        """End a game session and release resources."""
        success = api_service.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        """List all active session IDs."""
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Get current game state",
    )
    async def get_game_state(session_id: str) -> Union[GameStateResponse, JSONResponse]:
        """Get the complete current game state."""
        response = api_service.get_game_state(session_id)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/determine",
        response_model=DetermineResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Determine the actions a card drop allows",
    )
    async def determine(
        session_id: str,
        body: DetermineRequest,
    ) -> Union[DetermineResponse, JSONResponse]:
        """
        Determine legal actions for dropping a card on a target.

        **Request Body:**
        ```json
        {
            "draggedItem": {"card": {"suit": "♣", "rank": "4"}, "source": "hand", "player": 0},
            "targetInfo": {"type": "loose", "card": {"suit": "♥", "rank": "A"}}
        }
        ```
        """
        response = api_service.determine(session_id, body)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/moves",
        response_model=MoveResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Move rejected"},
            403: {"model": ErrorResponse, "description": "Invalid token"},
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Not your turn"},
        },
        tags=["Game"],
        summary="Submit a move",
    )
    async def submit_move(
        session_id: str,
        body: MoveRequest,
    ) -> Union[MoveResponse, JSONResponse]:
        """
        Submit a move. On success the new state is returned and broadcast.
        """
        response = api_service.submit_move(session_id, body)
        if isinstance(response, ErrorResponse):
            return make_error_response(response)

        await broadcast_to_session(session_id, {
            "type": "game-update",
            "payload": response.game_state,
        })
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket for real-time updates.

        Messages from server:
        - game-update: Full game state after every accepted move
        - session-ended: A player left
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        if session_id not in ws_connections:
            ws_connections[session_id] = []
        ws_connections[session_id].append(websocket)

        try:
            # Send initial state
            response = api_service.get_game_state(session_id)
            if isinstance(response, GameStateResponse) and response.game_state is not None:
                await websocket.send_json({
                    "type": "game-update",
                    "payload": response.game_state,
                })

            # Listen for messages
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                    if message.get("type") == "ping":
                        await websocket.send_json({"type": "pong"})
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })

        except WebSocketDisconnect:
            logger.debug("WebSocket closed for session %s", session_id)
        finally:
            if session_id in ws_connections:
                if websocket in ws_connections[session_id]:
                    ws_connections[session_id].remove(websocket)

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
            service="casino-engine",
            version="0.1.0",
            active_sessions=len(api_service.list_sessions()),
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Casino Engine API",
            "version": "0.1.0",
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# Create default app instance for uvicorn
app = create_app()
