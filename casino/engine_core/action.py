"""
Action System - Moves, payloads, candidates and results.

Actions represent:
1. Player moves submitted to the orchestrator (trail, capture, build, ...)
2. Candidate actions offered by determination for the player to pick from

All state changes flow through actions. The wire shape of a move is
{"actionType": ..., "payload": {...}, "playerIndex": n}.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .cards import Card
from .state import TableItem, TemporaryStack, Build, LooseCard, table_item_from_dict


class ActionType(Enum):
    """Move types accepted by the engine."""
    TRAIL = "trail"
    CAPTURE = "capture"
    BUILD = "build"
    ADD_TO_OWN_BUILD = "addToOwnBuild"
    ADD_TO_OPPONENT_BUILD = "addToOpponentBuild"

    # Staging stacks
    CREATE_STAGING_STACK = "createStagingStack"
    ADD_TO_STAGING_STACK = "addToStagingStack"
    FINALIZE_STAGING_STACK = "finalizeStagingStack"
    CREATE_BUILD_WITH_VALUE = "createBuildWithValue"
    CANCEL_STAGING_STACK = "cancelStagingStack"
    TABLE_CARD_DROP = "tableCardDrop"
    ADD_TO_TEMPORARY_CAPTURE_STACK = "addToTemporaryCaptureStack"


# Moves made by dropping a hand card; determination can re-check these.
HAND_CARD_ACTIONS = {
    ActionType.TRAIL,
    ActionType.CAPTURE,
    ActionType.BUILD,
    ActionType.ADD_TO_OWN_BUILD,
    ActionType.ADD_TO_OPPONENT_BUILD,
}

# Only these may execute without asking the player to confirm.
AUTO_EXECUTE_ACTIONS = {ActionType.TRAIL, ActionType.CAPTURE}


class UnknownActionError(ValueError):
    """Raised when a move names an action type the engine does not know."""

    def __init__(self, action_type: Any):
        self.action_type = action_type
        super().__init__(f"Unknown action type: {action_type}")


def parse_action_type(value: Any) -> ActionType:
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(value)
    except ValueError:
        raise UnknownActionError(value) from None


class TargetType(Enum):
    """Where a dragged card was dropped."""
    LOOSE = "loose"
    BUILD = "build"
    TEMPORARY_STACK = "temporary_stack"
    TABLE = "table"


@dataclass(frozen=True)
class DraggedItem:
    """The card being moved, where it came from and who moved it."""
    card: Card
    source: str = "hand"
    player: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"card": self.card.to_dict(), "source": self.source, "player": self.player}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DraggedItem:
        return cls(
            card=Card.from_dict(data["card"]),
            source=data.get("source", "hand"),
            player=int(data.get("player", 0)),
        )


@dataclass(frozen=True)
class TargetInfo:
    """Drop target. Only the field matching `type` is meaningful."""
    type: TargetType
    card: Card | None = None
    build_id: str | None = None
    stack_id: str | None = None

    @classmethod
    def table(cls) -> TargetInfo:
        return cls(type=TargetType.TABLE)

    @classmethod
    def loose(cls, card: Card) -> TargetInfo:
        return cls(type=TargetType.LOOSE, card=card)

    @classmethod
    def build(cls, build_id: str) -> TargetInfo:
        return cls(type=TargetType.BUILD, build_id=build_id)

    @classmethod
    def temporary_stack(cls, stack_id: str) -> TargetInfo:
        return cls(type=TargetType.TEMPORARY_STACK, stack_id=stack_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.card is not None:
            data["card"] = self.card.to_dict()
        if self.build_id is not None:
            data["buildId"] = self.build_id
        if self.stack_id is not None:
            data["stackId"] = self.stack_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TargetInfo | None:
        if not data or not data.get("type"):
            return None
        return cls(
            type=TargetType(data["type"]),
            card=Card.from_dict(data["card"]) if data.get("card") else None,
            build_id=data.get("buildId"),
            stack_id=data.get("stackId"),
        )


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields. This is a generic
    container; validation happens in the handlers.
    """
    dragged_item: DraggedItem | None = None
    card: Card | None = None

    # Capture
    selected_table_cards: list[TableItem] = field(default_factory=list)
    target_card: TableItem | None = None

    # Build from a loose card
    table_cards_in_build: list[TableItem] = field(default_factory=list)
    build_value: int | None = None
    bigger_card: Card | None = None
    smaller_card: Card | None = None

    # Build extension
    build_to_add_to: Build | None = None

    # Staging stacks
    hand_card: Card | None = None
    table_card: Card | None = None
    stack: TemporaryStack | None = None
    source: str | None = None

    # Table-to-table drop
    dragged_card: Card | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form, omitting empty fields."""
        data: dict[str, Any] = {}
        if self.dragged_item is not None:
            data["draggedItem"] = self.dragged_item.to_dict()
        if self.card is not None:
            data["card"] = self.card.to_dict()
        if self.selected_table_cards:
            data["selectedTableCards"] = [i.to_dict() for i in self.selected_table_cards]
        if self.target_card is not None:
            data["targetCard"] = self.target_card.to_dict()
        if self.table_cards_in_build:
            data["tableCardsInBuild"] = [i.to_dict() for i in self.table_cards_in_build]
        if self.build_value is not None:
            data["buildValue"] = self.build_value
        if self.bigger_card is not None:
            data["biggerCard"] = self.bigger_card.to_dict()
        if self.smaller_card is not None:
            data["smallerCard"] = self.smaller_card.to_dict()
        if self.build_to_add_to is not None:
            data["buildToAddTo"] = self.build_to_add_to.to_dict()
        if self.hand_card is not None:
            data["handCard"] = self.hand_card.to_dict()
        if self.table_card is not None:
            data["tableCard"] = self.table_card.to_dict()
        if self.stack is not None:
            data["stack"] = self.stack.to_dict()
        if self.source is not None:
            data["source"] = self.source
        if self.dragged_card is not None:
            data["draggedCard"] = self.dragged_card.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ActionPayload:
        """
        Parse a wire payload.

        Raises KeyError/ValueError/TypeError on malformed input; the
        orchestrator reports those as invalid moves.
        """
        data = data or {}

        def card(key: str) -> Card | None:
            raw = data.get(key)
            return Card.from_dict(raw) if raw else None

        def item(raw: Any) -> TableItem | None:
            return table_item_from_dict(raw) if raw else None

        stack_raw = data.get("stack") or data.get("stackToCancel") or data.get("targetStack")
        stack = item(stack_raw)
        if stack is not None and not isinstance(stack, TemporaryStack):
            raise ValueError("stack must be a temporary_stack")

        build = item(data.get("buildToAddTo"))
        if build is not None and not isinstance(build, Build):
            raise ValueError("buildToAddTo must be a build")

        dragged = data.get("draggedItem")
        return cls(
            dragged_item=DraggedItem.from_dict(dragged) if dragged else None,
            card=card("card"),
            selected_table_cards=[table_item_from_dict(i) for i in data.get("selectedTableCards", [])],
            target_card=item(data.get("targetCard")),
            table_cards_in_build=[table_item_from_dict(i) for i in data.get("tableCardsInBuild", [])],
            build_value=data.get("buildValue"),
            bigger_card=card("biggerCard"),
            smaller_card=card("smallerCard"),
            build_to_add_to=build,
            hand_card=card("handCard"),
            table_card=card("tableCard"),
            stack=stack,
            source=data.get("source"),
            dragged_card=card("draggedCard"),
        )


@dataclass
class Action:
    """
    A complete move to be applied to the game state.

    Actions are:
    - Logged for replay
    - Validated before application
    - Applied atomically by the reducer
    """
    action_type: ActionType
    payload: ActionPayload
    player_index: int = 0
    timestamp: float | None = None
    action_id: str | None = None

    @classmethod
    def trail(cls, player: int, card: Card) -> Action:
        """Factory for trail action."""
        return cls(
            action_type=ActionType.TRAIL,
            payload=ActionPayload(
                dragged_item=DraggedItem(card=card, source="hand", player=player),
                card=card,
            ),
            player_index=player,
        )

    @classmethod
    def capture(cls, player: int, card: Card, items: list[TableItem]) -> Action:
        """Factory for capture action."""
        return cls(
            action_type=ActionType.CAPTURE,
            payload=ActionPayload(
                dragged_item=DraggedItem(card=card, source="hand", player=player),
                selected_table_cards=list(items),
                target_card=items[0] if items else None,
            ),
            player_index=player,
        )

    @classmethod
    def create_staging_stack(cls, player: int, hand_card: Card, table_card: Card) -> Action:
        return cls(
            action_type=ActionType.CREATE_STAGING_STACK,
            payload=ActionPayload(hand_card=hand_card, table_card=table_card),
            player_index=player,
        )

    @classmethod
    def add_to_staging_stack(
        cls, player: int, stack: TemporaryStack, card: Card, source: str = "hand"
    ) -> Action:
        return cls(
            action_type=ActionType.ADD_TO_STAGING_STACK,
            payload=ActionPayload(card=card, stack=stack, source=source),
            player_index=player,
        )

    @classmethod
    def finalize_staging_stack(cls, player: int, stack: TemporaryStack) -> Action:
        return cls(
            action_type=ActionType.FINALIZE_STAGING_STACK,
            payload=ActionPayload(stack=stack),
            player_index=player,
        )

    @classmethod
    def create_build_with_value(cls, player: int, stack: TemporaryStack, build_value: int) -> Action:
        return cls(
            action_type=ActionType.CREATE_BUILD_WITH_VALUE,
            payload=ActionPayload(stack=stack, build_value=build_value),
            player_index=player,
        )

    @classmethod
    def cancel_staging_stack(cls, player: int, stack: TemporaryStack) -> Action:
        return cls(
            action_type=ActionType.CANCEL_STAGING_STACK,
            payload=ActionPayload(stack=stack),
            player_index=player,
        )

    @classmethod
    def table_card_drop(cls, player: int, dragged_card: Card, target_card: Card) -> Action:
        return cls(
            action_type=ActionType.TABLE_CARD_DROP,
            payload=ActionPayload(dragged_card=dragged_card, target_card=LooseCard(card=target_card)),
            player_index=player,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "actionType": self.action_type.value,
            "payload": self.payload.to_dict(),
            "playerIndex": self.player_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        """
        Parse a wire move. Raises UnknownActionError for unknown types.
        """
        action_type = parse_action_type(data.get("actionType", data.get("type")))
        return cls(
            action_type=action_type,
            payload=ActionPayload.from_dict(data.get("payload")),
            player_index=int(data.get("playerIndex", 0)),
        )


@dataclass
class CandidateAction:
    """One legal action offered to the player by determination."""
    type: ActionType
    label: str
    payload: ActionPayload

    def to_action(self, player: int) -> Action:
        return Action(action_type=self.type, payload=self.payload, player_index=player)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "label": self.label, "payload": self.payload.to_dict()}


@dataclass
class ActionDetermination:
    """Output of determine_actions()."""
    actions: list[CandidateAction] = field(default_factory=list)
    requires_modal: bool = False
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "actions": [a.to_dict() for a in self.actions],
            "requiresModal": self.requires_modal,
            "errorMessage": self.error_message,
        }


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New state (if succeeded)
    - Errors (if failed)
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: str | None = None

    # Human-readable changes for logs and clients
    state_changes: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(cls, state: Any, changes: list[str] | None = None) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])
