"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the game clients and the engine.
Game state and move payloads travel in the engine's camelCase wire shape;
the envelope fields are snake_case.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has expired
- SESSION_FULL: Both seats are taken
- INVALID_TOKEN: Player token does not match the seat
- NOT_YOUR_TURN: Move submitted by the player not on turn
- UNKNOWN_ACTION: Move names an action type the engine does not know
- NO_VALID_ACTIONS: Move is not among the actions the drop allows
- INVALID_MOVE: Move failed its handler's checks
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    WAITING = "waiting"
    ACTIVE = "active"
    GAME_OVER = "game_over"
    ABANDONED = "abandoned"


class TargetKind(str, Enum):
    """Drop target kinds."""
    LOOSE = "loose"
    BUILD = "build"
    TEMPORARY_STACK = "temporary_stack"
    TABLE = "table"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_FULL = "SESSION_FULL"
    SESSION_ENDED = "SESSION_ENDED"
    INVALID_TOKEN = "INVALID_TOKEN"
    GAME_NOT_STARTED = "GAME_NOT_STARTED"
    GAME_OVER = "GAME_OVER"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    NO_VALID_ACTIONS = "NO_VALID_ACTIONS"
    INVALID_MOVE = "INVALID_MOVE"
    ENGINE_ERROR = "ENGINE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class CardModel(BaseModel):
    """A card on the wire."""
    suit: str = Field(..., description="♠, ♥, ♦ or ♣")
    rank: str = Field(..., description="A, 2-10")
    value: Optional[int] = None
    source: Optional[str] = Field(None, description="hand or table, inside staging stacks")


class PlayerInfo(BaseModel):
    """Player information for display."""
    seat: int
    name: str
    is_current_turn: bool = False
    hand_count: int = 0
    capture_count: int = 0
    score: int = 0

    model_config = {"from_attributes": True}


class CandidateActionInfo(BaseModel):
    """One action the player may pick."""
    type: str = Field(..., description="Action type, e.g. capture, build, trail")
    label: str
    payload: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to create a new game session."""
    player_name: str = Field("Player 1", description="Display name for seat 0")
    random_seed: Optional[int] = Field(None, description="Seed for a reproducible deal")


class JoinSessionRequest(BaseModel):
    """Request to take the second seat."""
    player_name: str = Field("Player 2", description="Display name for seat 1")


class LeaveSessionRequest(BaseModel):
    """Request to leave a session."""
    player_token: str = Field(..., description="Token issued when the seat was taken")


class DraggedItemModel(BaseModel):
    """The card being dragged."""
    card: CardModel
    source: str = "hand"
    player: int = 0


class TargetInfoModel(BaseModel):
    """Where the card was dropped."""
    type: TargetKind
    card: Optional[CardModel] = None
    build_id: Optional[str] = Field(None, alias="buildId")
    stack_id: Optional[str] = Field(None, alias="stackId")

    model_config = {"populate_by_name": True}


class DetermineRequest(BaseModel):
    """Request to determine the actions a drop allows."""
    dragged_item: DraggedItemModel = Field(..., alias="draggedItem")
    target_info: Optional[TargetInfoModel] = Field(None, alias="targetInfo")

    model_config = {"populate_by_name": True}


class MoveRequest(BaseModel):
    """
    A move submission.

    `payload` is passed to the engine as-is; its shape depends on the
    action type.
    """
    action_type: str = Field(..., alias="actionType")
    payload: dict[str, Any] = Field(default_factory=dict)
    player_index: int = Field(..., alias="playerIndex", ge=0, le=1)
    player_token: str = Field(..., alias="playerToken")

    model_config = {"populate_by_name": True}


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SeatResponse(BaseModel):
    """A seat taken in a session. Keep the token: moves require it."""
    session_id: str
    seat: int
    player_token: str
    status: SessionStatus
    api_version: str = "v1"


class SessionResponse(BaseModel):
    """Response containing session information."""
    session_id: str
    status: SessionStatus
    players: list[PlayerInfo] = Field(default_factory=list)
    current_player: Optional[int] = None
    round: int = 0
    turn_number: int = 0
    stuck_player: Optional[int] = None
    created_at: float = 0.0
    api_version: str = "v1"


class GameStateResponse(BaseModel):
    """Complete game state, in the engine's wire shape."""
    session_id: str
    status: SessionStatus
    turn_number: int
    game_state: Optional[dict[str, Any]] = None
    api_version: str = "v1"


class DetermineResponse(BaseModel):
    """Actions available for a drop."""
    actions: list[CandidateActionInfo] = Field(default_factory=list)
    requires_modal: bool = False
    error_message: Optional[str] = None
    api_version: str = "v1"


class MoveResponse(BaseModel):
    """Result of an accepted move."""
    session_id: str
    success: bool
    status: SessionStatus
    changes: list[str] = Field(default_factory=list)
    game_state: Optional[dict[str, Any]] = None
    winner: Optional[int] = None
    stuck_player: Optional[int] = Field(None, description="Player on turn with no valid actions")
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    """List of active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response from ending a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "casino-engine"
    version: str = "0.1.0"
    active_sessions: int = 0
