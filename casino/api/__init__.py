"""
API Module - Client interface.

Exposes the engine via REST and WebSocket. A client:
1. Creates a session or joins one
2. Asks which actions a card drop allows
3. Submits moves with its seat token
4. Receives the full state after every accepted move

All state is session-scoped. No persistent user accounts required.
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    JoinSessionRequest,
    LeaveSessionRequest,
    DetermineRequest,
    MoveRequest,
    # Responses
    SeatResponse,
    SessionResponse,
    GameStateResponse,
    DetermineResponse,
    MoveResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    CandidateActionInfo,
    ErrorCode,
    SessionStatus,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "JoinSessionRequest",
    "LeaveSessionRequest",
    "DetermineRequest",
    "MoveRequest",
    # Responses
    "SeatResponse",
    "SessionResponse",
    "GameStateResponse",
    "DetermineResponse",
    "MoveResponse",
    "ErrorResponse",
    # Shared
    "PlayerInfo",
    "CandidateActionInfo",
    "ErrorCode",
    "SessionStatus",
    # Service
    "APIService",
    "create_app",
]
