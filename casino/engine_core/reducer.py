"""
Reducer - Applies moves to game state.

The handlers in this module are the only code that produces successor
states. Each one:
- Re-validates its preconditions against the state it is given
- Returns a NEW GameState on success
- Returns the input state object unchanged on any failed precondition

Rule violations never raise. Reducer.apply() turns an unchanged state
into an ActionResult failure so callers can report the rejection.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import uuid

from .cards import Card, card_label, cards_sum, rank_value, SOURCE_HAND, SOURCE_TABLE
from .state import (
    GameState,
    TableItem,
    LooseCard,
    TemporaryStack,
    Build,
    MAX_BUILD_VALUE,
    capture_value,
    item_cards,
    item_label,
)
from .action import Action, ActionType, ActionPayload, ActionResult, DraggedItem
from .action_generator import item_key, validate_hand_move


logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _next_player(state: GameState) -> int:
    return (state.current_player + 1) % 2


def _rejected(state: GameState, reason: str, *args) -> GameState:
    logger.info("Move rejected: " + reason, *args)
    return state


def _valid_player(player: int) -> bool:
    return player in (0, 1)


def _hand_card(state: GameState, player: int, card: Card | None) -> Card | None:
    """The card as held in the player's hand (payload values are not trusted)."""
    if card is None or not _valid_player(player):
        return None
    for held in state.player_hands[player]:
        if held.same_card(card):
            return held
    return None


def _without_card(hand: list[Card], card: Card) -> list[Card]:
    """Hand minus the first card matching rank and suit."""
    result = list(hand)
    for idx, held in enumerate(result):
        if held.same_card(card):
            del result[idx]
            break
    return result


def _replace_hand(state: GameState, player: int, hand: list[Card]) -> list[list[Card]]:
    hands = [list(h) for h in state.player_hands]
    hands[player] = hand
    return hands


def _table_index(state: GameState, item: TableItem | None) -> int | None:
    key = item_key(item)
    if key is None:
        return None
    for idx, current in enumerate(state.table_cards):
        if item_key(current) == key:
            return idx
    return None


def _loose_card(target: TableItem | Card | None) -> Card | None:
    if isinstance(target, LooseCard):
        return target.card
    if isinstance(target, Card):
        return target
    return None


# =============================================================================
# Handlers
# =============================================================================

def trail(state: GameState, card: Card | None, player: int) -> GameState:
    """Move a hand card to the table as a loose card."""
    held = _hand_card(state, player, card)
    if held is None:
        return _rejected(state, "trail card %s not in player %s hand", card_label(card), player)

    new_state = state._copy_with(
        player_hands=_replace_hand(state, player, _without_card(state.player_hands[player], held)),
        table_cards=[*state.table_cards, LooseCard(card=held.without_source())],
        current_player=_next_player(state),
    )
    logger.info("Player %d trailed %s", player, card_label(held))
    return new_state


def capture(
    state: GameState,
    dragged_item: DraggedItem | None,
    selected_table_cards: list[TableItem],
    player: int,
) -> GameState:
    """
    Capture table items with a hand card.

    The hand card and every selected item's cards become one new
    capture group for the player.
    """
    held = _hand_card(state, player, dragged_item.card if dragged_item else None)
    if held is None:
        return _rejected(state, "capture card not in player %s hand", player)
    if not selected_table_cards:
        return _rejected(state, "capture without selected table items")

    indices: list[int] = []
    for item in selected_table_cards:
        idx = _table_index(state, item)
        if idx is None or idx in indices:
            return _rejected(state, "capture target %s not on table", item_label(item))
        current = state.table_cards[idx]
        if capture_value(current) != held.rank_value:
            return _rejected(
                state, "capture value mismatch: %s with %s", card_label(held), item_label(current)
            )
        indices.append(idx)

    group = [held.without_source()]
    for idx in indices:
        group.extend(item_cards(state.table_cards[idx]))

    captures = [list(groups) for groups in state.player_captures]
    captures[player] = [*captures[player], group]

    new_state = state._copy_with(
        player_hands=_replace_hand(state, player, _without_card(state.player_hands[player], held)),
        table_cards=[item for idx, item in enumerate(state.table_cards) if idx not in indices],
        player_captures=captures,
        last_capturer=player,
        current_player=_next_player(state),
    )
    logger.info("Player %d captured %d cards with %s", player, len(group), card_label(held))
    return new_state


def build(state: GameState, payload: ActionPayload, player: int) -> GameState:
    """Combine a hand card with a loose table card into a new build."""
    dragged = payload.dragged_item
    held = _hand_card(state, player, dragged.card if dragged else None)
    if held is None:
        return _rejected(state, "build card not in player %s hand", player)

    target = _loose_card(payload.table_cards_in_build[0]) if payload.table_cards_in_build else None
    index = state.find_loose_index(target)
    if index is None:
        return _rejected(state, "build table card %s not on table", card_label(target))

    table_card = state.table_cards[index].card
    dragged_value = held.rank_value
    target_value = table_card.rank_value
    build_value = dragged_value + target_value
    if payload.build_value != build_value or build_value > MAX_BUILD_VALUE:
        return _rejected(state, "build value %s does not match %d", payload.build_value, build_value)

    # On equal values the dragged card is the smaller one
    if dragged_value > target_value:
        bigger, smaller = held, table_card
    else:
        bigger, smaller = table_card, held

    new_build = Build(
        build_id=_new_id("build"),
        cards=(bigger.without_source(), smaller.without_source()),
        value=build_value,
        owner=player,
        is_extendable=True,
    )
    table = [item for idx, item in enumerate(state.table_cards) if idx != index]
    table.append(new_build)

    new_state = state._copy_with(
        player_hands=_replace_hand(state, player, _without_card(state.player_hands[player], held)),
        table_cards=table,
        current_player=_next_player(state),
    )
    logger.info(
        "Player %d built %d from %s + %s", player, build_value, card_label(held), card_label(table_card)
    )
    return new_state


def create_staging_stack(
    state: GameState,
    hand_card: Card | None,
    table_card: Card | TableItem | None,
    player: int,
) -> GameState:
    """Pair a hand card with a loose table card in a new staging stack. Turn does not pass."""
    held = _hand_card(state, player, hand_card)
    index = state.find_loose_index(_loose_card(table_card))
    if held is None or index is None:
        return _rejected(
            state, "staging stack cards missing: hand=%s table=%s", held is not None, index is not None
        )
    if state.staging_stack_for(player) is not None:
        return _rejected(state, "player %d already has a staging stack", player)

    loose = state.table_cards[index].card
    stack = TemporaryStack(
        stack_id=_new_id("temp"),
        cards=(held.with_source(SOURCE_HAND), loose.with_source(SOURCE_TABLE)),
        owner=player,
        value=held.rank_value + loose.rank_value,
    )
    table = [item for idx, item in enumerate(state.table_cards) if idx != index]
    table.append(stack)

    new_state = state._copy_with(
        player_hands=_replace_hand(state, player, _without_card(state.player_hands[player], held)),
        table_cards=table,
    )
    logger.info("Player %d staged %s on %s (%d)", player, card_label(held), card_label(loose), stack.value)
    return new_state


def add_to_staging_stack(
    state: GameState,
    card: Card | None,
    stack: TemporaryStack | None,
    player: int,
    source: str = SOURCE_HAND,
) -> GameState:
    """Add a hand card or a loose table card to the player's own staging stack."""
    index = _table_index(state, stack)
    if index is None:
        return _rejected(state, "staging stack not found")
    current: TemporaryStack = state.table_cards[index]
    if current.owner != player:
        return _rejected(state, "player %d does not own stack %s", player, current.stack_id)

    hands = state.player_hands
    table = list(state.table_cards)
    if source == SOURCE_HAND:
        added = _hand_card(state, player, card)
        if added is None:
            return _rejected(state, "card %s not in player %d hand", card_label(card), player)
        hands = _replace_hand(state, player, _without_card(state.player_hands[player], added))
    elif source == SOURCE_TABLE:
        loose_index = state.find_loose_index(card)
        if loose_index is None:
            return _rejected(state, "loose card %s not on table", card_label(card))
        added = table[loose_index].card
    else:
        return _rejected(state, "unknown card source %s", source)

    cards = (*current.cards, added.with_source(source))
    table[index] = TemporaryStack(
        stack_id=current.stack_id,
        cards=cards,
        owner=current.owner,
        value=cards_sum(list(cards)),
    )
    if source == SOURCE_TABLE:
        del table[loose_index]

    logger.info("Player %d added %s to staging stack", player, card_label(added))
    return state._copy_with(player_hands=hands, table_cards=table)


def add_to_temporary_capture_stack(
    state: GameState,
    card: Card | None,
    stack: TemporaryStack | None,
    player: int,
) -> GameState:
    """Add a card to a staging stack, taking it from the hand if held there, else the table."""
    source = SOURCE_HAND if _hand_card(state, player, card) is not None else SOURCE_TABLE
    return add_to_staging_stack(state, card, stack, player, source=source)


def _partitions_into(values: list[int], target: int) -> bool:
    """True if the values split into groups that each sum to target."""
    total = sum(values)
    if target <= 0 or total == 0 or total % target:
        return False

    buckets = [0] * (total // target)
    ordered = sorted(values, reverse=True)

    def place(i: int) -> bool:
        if i == len(ordered):
            return True
        tried: set[int] = set()
        for b in range(len(buckets)):
            if buckets[b] in tried or buckets[b] + ordered[i] > target:
                continue
            tried.add(buckets[b])
            buckets[b] += ordered[i]
            if place(i + 1):
                return True
            buckets[b] -= ordered[i]
        return False

    return place(0)


def create_build_with_value(
    state: GameState,
    stack: TemporaryStack | None,
    build_value: int | None,
    player: int,
) -> GameState:
    """Commit the player's staging stack as a build of the chosen value."""
    index = _table_index(state, stack)
    if index is None:
        return _rejected(state, "staging stack not found")
    current: TemporaryStack = state.table_cards[index]
    if current.owner != player:
        return _rejected(state, "player %d does not own stack %s", player, current.stack_id)

    hand_cards = current.hand_cards
    if not hand_cards or not current.table_cards:
        return _rejected(state, "stack needs at least one hand card and one table card")

    if not isinstance(build_value, int) or isinstance(build_value, bool):
        return _rejected(state, "build value %r is not a number", build_value)
    if not 1 <= build_value <= MAX_BUILD_VALUE:
        return _rejected(state, "build value %d out of range", build_value)
    if not _partitions_into([c.rank_value for c in current.cards], build_value):
        return _rejected(state, "stack cards do not make build %d", build_value)

    new_build = Build(
        build_id=_new_id("build"),
        cards=tuple(c.without_source() for c in current.cards),
        value=build_value,
        owner=current.owner,
        is_extendable=True,
    )
    table = [item for idx, item in enumerate(state.table_cards) if idx != index]
    table.append(new_build)

    owner_hand = [
        held for held in state.player_hands[current.owner]
        if not any(held.same_card(c) for c in hand_cards)
    ]

    new_state = state._copy_with(
        player_hands=_replace_hand(state, current.owner, owner_hand),
        table_cards=table,
        current_player=_next_player(state),
    )
    logger.info("Player %d finalized staging stack as build %d", player, build_value)
    return new_state


def finalize_staging_stack(state: GameState, stack: TemporaryStack | None, player: int) -> GameState:
    """Commit the staging stack as a build worth the stack's total."""
    current = state.find_stack(stack.stack_id) if stack else None
    if current is None:
        return _rejected(state, "staging stack not found")
    return create_build_with_value(state, current, current.value, player)


def cancel_staging_stack(state: GameState, stack: TemporaryStack | None, player: int) -> GameState:
    """Undo a staging stack: hand cards go back to the hand, table cards back to the table."""
    index = _table_index(state, stack)
    if index is None:
        return _rejected(state, "staging stack not found")
    current: TemporaryStack = state.table_cards[index]
    if current.owner != player:
        return _rejected(state, "player %d does not own stack %s", player, current.stack_id)

    hand = [*state.player_hands[current.owner], *(c.without_source() for c in current.hand_cards)]
    table = [item for idx, item in enumerate(state.table_cards) if idx != index]
    table.extend(LooseCard(card=c.without_source()) for c in current.table_cards)

    logger.info("Player %d cancelled staging stack %s", player, current.stack_id)
    return state._copy_with(
        player_hands=_replace_hand(state, current.owner, hand),
        table_cards=table,
    )


def _extend_build(
    state: GameState,
    dragged_item: DraggedItem | None,
    build_to_add_to: Build | None,
    player: int,
    own: bool,
) -> GameState:
    held = _hand_card(state, player, dragged_item.card if dragged_item else None)
    if held is None:
        return _rejected(state, "extension card not in player %s hand", player)

    index = _table_index(state, build_to_add_to)
    if index is None:
        return _rejected(state, "build not found")
    current: Build = state.table_cards[index]

    if own and current.owner != player:
        return _rejected(state, "build %s is not owned by player %d", current.build_id, player)
    if not own:
        if current.owner == player:
            return _rejected(state, "build %s is the player's own", current.build_id)
        if not current.is_extendable:
            return _rejected(state, "build %s is not extendable", current.build_id)

    new_value = current.value + held.rank_value
    if new_value > MAX_BUILD_VALUE:
        return _rejected(state, "build value %d would exceed %d", new_value, MAX_BUILD_VALUE)

    table = list(state.table_cards)
    table[index] = Build(
        build_id=current.build_id,
        cards=(*current.cards, held.without_source()),
        value=new_value,
        owner=current.owner,
        is_extendable=current.is_extendable,
    )

    logger.info("Player %d extended build %d -> %d", player, current.value, new_value)
    return state._copy_with(
        player_hands=_replace_hand(state, player, _without_card(state.player_hands[player], held)),
        table_cards=table,
        current_player=_next_player(state),
    )


def add_to_own_build(
    state: GameState, dragged_item: DraggedItem | None, build_to_add_to: Build | None, player: int
) -> GameState:
    return _extend_build(state, dragged_item, build_to_add_to, player, own=True)


def add_to_opponent_build(
    state: GameState, dragged_item: DraggedItem | None, build_to_add_to: Build | None, player: int
) -> GameState:
    return _extend_build(state, dragged_item, build_to_add_to, player, own=False)


def table_card_drop(
    state: GameState,
    dragged_card: Card | None,
    target_card: Card | TableItem | None,
    player: int,
) -> GameState:
    """
    Drop one loose table card onto another.

    The two cards become a staging stack owned by the player. A hand
    card must be added before the stack can become a build.
    """
    target = _loose_card(target_card)
    dragged_index = state.find_loose_index(dragged_card)
    target_index = state.find_loose_index(target)
    if dragged_index is None or target_index is None or dragged_index == target_index:
        return _rejected(state, "table drop needs two different loose cards")
    if not _valid_player(player) or state.staging_stack_for(player) is not None:
        return _rejected(state, "player %s cannot start another staging stack", player)

    first = state.table_cards[target_index].card
    second = state.table_cards[dragged_index].card
    stack = TemporaryStack(
        stack_id=_new_id("temp"),
        cards=(first.with_source(SOURCE_TABLE), second.with_source(SOURCE_TABLE)),
        owner=player,
        value=first.rank_value + second.rank_value,
    )
    table = [
        item for idx, item in enumerate(state.table_cards)
        if idx not in (dragged_index, target_index)
    ]
    table.append(stack)

    logger.info("Player %d stacked %s on %s", player, card_label(second), card_label(first))
    return state._copy_with(table_cards=table)


# =============================================================================
# Dispatch
# =============================================================================

@dataclass
class Reducer:
    """
    Applies Actions to game state.

    Stateless - all state is in GameState. Turn ownership is checked by
    the orchestrator before a move gets here.
    """

    def apply(self, state: GameState, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with new state or error.
        """
        validation_error = self._validate_action(state, action)
        if validation_error:
            return ActionResult.failure(validation_error, error_code="NO_VALID_ACTIONS")

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"Unknown action type: {action.action_type}",
                error_code="UNKNOWN_ACTION",
            )

        try:
            new_state = handler(state, action.payload, action.player_index)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed %s payload: %s", action.action_type.value, e)
            return ActionResult.failure("Invalid move", error_code="INVALID_MOVE")

        if new_state is state:
            return ActionResult.failure("Invalid move", error_code="INVALID_MOVE")

        return ActionResult.success_with_state(
            new_state,
            changes=[f"Player {action.player_index + 1}: {action.action_type.value}"],
        )

    def _validate_action(self, state: GameState, action: Action) -> str | None:
        """
        Validate that an action is legal in the current state.

        Returns error message if invalid, None if valid.
        """
        if state.game_over:
            return "Game is over - no actions allowed"
        return validate_hand_move(state, action)

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.TRAIL: self._handle_trail,
            ActionType.CAPTURE: self._handle_capture,
            ActionType.BUILD: build,
            ActionType.ADD_TO_OWN_BUILD: self._handle_add_to_own_build,
            ActionType.ADD_TO_OPPONENT_BUILD: self._handle_add_to_opponent_build,
            ActionType.CREATE_STAGING_STACK: self._handle_create_staging_stack,
            ActionType.ADD_TO_STAGING_STACK: self._handle_add_to_staging_stack,
            ActionType.FINALIZE_STAGING_STACK: self._handle_finalize_staging_stack,
            ActionType.CREATE_BUILD_WITH_VALUE: self._handle_create_build_with_value,
            ActionType.CANCEL_STAGING_STACK: self._handle_cancel_staging_stack,
            ActionType.TABLE_CARD_DROP: self._handle_table_card_drop,
            ActionType.ADD_TO_TEMPORARY_CAPTURE_STACK: self._handle_add_to_temporary_capture_stack,
        }
        return handlers.get(action_type)

    def _handle_trail(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        card = payload.card or (payload.dragged_item.card if payload.dragged_item else None)
        return trail(state, card, player)

    def _handle_capture(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return capture(state, payload.dragged_item, payload.selected_table_cards, player)

    def _handle_add_to_own_build(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return add_to_own_build(state, payload.dragged_item, payload.build_to_add_to, player)

    def _handle_add_to_opponent_build(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return add_to_opponent_build(state, payload.dragged_item, payload.build_to_add_to, player)

    def _handle_create_staging_stack(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return create_staging_stack(state, payload.hand_card, payload.table_card, player)

    def _handle_add_to_staging_stack(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        card = payload.card or payload.hand_card
        return add_to_staging_stack(state, card, payload.stack, player, source=payload.source or SOURCE_HAND)

    def _handle_finalize_staging_stack(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return finalize_staging_stack(state, payload.stack, player)

    def _handle_create_build_with_value(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return create_build_with_value(state, payload.stack, payload.build_value, player)

    def _handle_cancel_staging_stack(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return cancel_staging_stack(state, payload.stack, player)

    def _handle_table_card_drop(self, state: GameState, payload: ActionPayload, player: int) -> GameState:
        return table_card_drop(state, payload.dragged_card, payload.target_card, player)

    def _handle_add_to_temporary_capture_stack(
        self, state: GameState, payload: ActionPayload, player: int
    ) -> GameState:
        return add_to_temporary_capture_stack(state, payload.card, payload.stack, player)


def apply_action(state: GameState, action: Action) -> ActionResult:
    """
    Convenience function to apply an action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer()
    return reducer.apply(state, action)
