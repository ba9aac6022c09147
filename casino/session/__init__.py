"""
Session Module - Manages ephemeral two-player game sessions.

A session represents one play-through of a game:
- Created when a player opens a table
- Starts when the second player joins
- Holds the current game state
- Serializes moves through the game loop
- Destroyed when a player leaves

Sessions are EPHEMERAL:
- No persistence to database
- Ends cleanly when a player leaves or the game is cleaned up
"""

from .manager import SessionManager, Session, SessionState, SessionError, PlayerSeat
from .game_loop import GameLoop, LoopState, TurnResult

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "SessionError",
    "PlayerSeat",
    "GameLoop",
    "LoopState",
    "TurnResult",
]
