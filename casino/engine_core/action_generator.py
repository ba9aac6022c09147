"""
Action Generator - Decides which actions a card drop allows.

determine_actions() is the rules authority. It is used by:
1. Clients, to decide whether to ask the player before submitting a move
2. The orchestrator, to re-check a submitted hand-card move
3. Bots, through legal_actions(), to enumerate possible moves

It is a pure function of (dragged_item, target_info, state): no clocks,
no randomness, no other inputs.
"""

from __future__ import annotations
import json
import logging

from .cards import Card, card_label, rank_value
from .state import (
    GameState,
    TableItem,
    LooseCard,
    TemporaryStack,
    Build,
    MAX_BUILD_VALUE,
    capture_value,
)
from .action import (
    Action,
    ActionType,
    ActionPayload,
    ActionDetermination,
    CandidateAction,
    DraggedItem,
    TargetInfo,
    TargetType,
    AUTO_EXECUTE_ACTIONS,
    HAND_CARD_ACTIONS,
)


logger = logging.getLogger(__name__)

ONLY_HAND_CARDS = "Only hand cards supported"
NO_VALID_ACTIONS = "No valid actions available"


def determine_actions(
    dragged_item: DraggedItem,
    target_info: TargetInfo | None,
    state: GameState,
) -> ActionDetermination:
    """
    Determine the legal actions for dropping a card on a target.

    Candidates are gathered in a fixed order: captures, build creation,
    build extension, then trail as a fallback. A single trail or capture
    runs without confirmation; anything else needs the player to choose.
    """
    if dragged_item.source != "hand":
        return ActionDetermination(actions=[], requires_modal=False, error_message=ONLY_HAND_CARDS)

    actions: list[CandidateAction] = []
    dragged_card = dragged_item.card
    dragged_value = rank_value(dragged_card.rank)
    current = state.current_player
    target_type = target_info.type if target_info else None

    # Captures: any item whose value matches, one candidate per item
    for item in state.table_cards:
        if capture_value(item) == dragged_value:
            actions.append(CandidateAction(
                type=ActionType.CAPTURE,
                label=_capture_label(item),
                payload=ActionPayload(
                    dragged_item=dragged_item,
                    selected_table_cards=[item],
                    target_card=item,
                ),
            ))

    if target_type is TargetType.LOOSE:
        candidate = _build_candidate(dragged_item, target_info.card, state)
        if candidate:
            actions.append(candidate)

    if target_type is TargetType.BUILD:
        candidate = _extension_candidate(dragged_item, target_info.build_id, state)
        if candidate:
            actions.append(candidate)

    if not actions and target_type in (None, TargetType.TABLE):
        has_active_build = state.active_build_for(current) is not None
        would_duplicate = any(
            isinstance(item, LooseCard) and item.value == dragged_value
            for item in state.table_cards
        )

        if state.round == 1 and has_active_build:
            logger.debug("Trail blocked: round 1 with active build (player %d)", current)
        elif would_duplicate:
            logger.debug("Trail blocked: would duplicate loose %s", dragged_card.rank)
        else:
            actions.append(CandidateAction(
                type=ActionType.TRAIL,
                label="Trail Card",
                payload=ActionPayload(dragged_item=dragged_item, card=dragged_card),
            ))

    if not actions:
        logger.debug(
            "No valid actions for %s -> %s",
            card_label(dragged_card),
            target_type.value if target_type else "none",
        )
        return ActionDetermination(actions=[], requires_modal=False, error_message=NO_VALID_ACTIONS)

    if len(actions) == 1 and actions[0].type in AUTO_EXECUTE_ACTIONS:
        return ActionDetermination(actions=actions, requires_modal=False, error_message=None)

    logger.debug("Choice required: %d actions available", len(actions))
    return ActionDetermination(actions=actions, requires_modal=True, error_message=None)


def _capture_label(item: TableItem) -> str:
    if isinstance(item, LooseCard):
        return f"Capture {item.rank}"
    if isinstance(item, Build):
        return f"Capture Build ({item.value})"
    return f"Capture Stack ({capture_value(item)})"


def _build_candidate(
    dragged_item: DraggedItem,
    target_card: Card | None,
    state: GameState,
) -> CandidateAction | None:
    """Build on a loose card, if the player holds the card to capture it later."""
    index = state.find_loose_index(target_card)
    if index is None:
        return None

    target: LooseCard = state.table_cards[index]
    dragged_card = dragged_item.card
    dragged_value = rank_value(dragged_card.rank)
    target_value = target.value
    build_value = target_value + dragged_value
    current = state.current_player

    has_capture_card = any(
        rank_value(card.rank) == build_value and not card.same_card(dragged_card)
        for card in state.player_hands[current]
    )
    if not has_capture_card or build_value > MAX_BUILD_VALUE:
        return None

    if state.active_build_for(current) is not None:
        logger.debug("Build blocked: player %d already owns a build", current)
        return None

    # On equal values the dragged card is the smaller one
    if dragged_value > target_value:
        bigger, smaller = dragged_card, target.card
    else:
        bigger, smaller = target.card, dragged_card

    logger.debug("Build detected: %d+%d=%d", dragged_value, target_value, build_value)
    return CandidateAction(
        type=ActionType.BUILD,
        label=f"Build {build_value} ({dragged_value}+{target_value})",
        payload=ActionPayload(
            dragged_item=dragged_item,
            table_cards_in_build=[target],
            build_value=build_value,
            bigger_card=bigger,
            smaller_card=smaller,
        ),
    )


def _extension_candidate(
    dragged_item: DraggedItem,
    build_id: str | None,
    state: GameState,
) -> CandidateAction | None:
    build = state.find_build(build_id)
    if build is None:
        return None

    if build.owner == state.current_player:
        # Value cap is enforced by the handler
        return CandidateAction(
            type=ActionType.ADD_TO_OWN_BUILD,
            label=f"Add to Build ({build.value})",
            payload=ActionPayload(dragged_item=dragged_item, build_to_add_to=build),
        )

    if build.is_extendable:
        new_value = build.value + rank_value(dragged_item.card.rank)
        if new_value <= MAX_BUILD_VALUE:
            logger.debug("Opponent build extension: %d -> %d", build.value, new_value)
            return CandidateAction(
                type=ActionType.ADD_TO_OPPONENT_BUILD,
                label=f"Extend to {new_value}",
                payload=ActionPayload(dragged_item=dragged_item, build_to_add_to=build),
            )
    return None


def drop_targets(state: GameState) -> list[TargetInfo]:
    """Every place a hand card can be dropped in this state."""
    targets = [TargetInfo.table()]
    for item in state.table_cards:
        if isinstance(item, LooseCard):
            targets.append(TargetInfo.loose(item.card))
        elif isinstance(item, Build):
            targets.append(TargetInfo.build(item.build_id))
        elif isinstance(item, TemporaryStack):
            targets.append(TargetInfo.temporary_stack(item.stack_id))
    return targets


def legal_actions(state: GameState) -> list[CandidateAction]:
    """
    Enumerate every candidate for the current player.

    Each hand card is tried against every drop target; candidates that
    several targets produce (captures) appear once.
    """
    if state.game_over:
        return []

    player = state.current_player
    seen: set[str] = set()
    candidates: list[CandidateAction] = []

    for card in state.player_hands[player]:
        dragged = DraggedItem(card=card, source="hand", player=player)
        for target in drop_targets(state):
            result = determine_actions(dragged, target, state)
            for candidate in result.actions:
                key = json.dumps(candidate.to_dict(), sort_keys=True)
                if key not in seen:
                    seen.add(key)
                    candidates.append(candidate)

    return candidates


def item_key(item: TableItem | None) -> tuple | None:
    """Identity of a table item: loose by card, builds and stacks by id."""
    if isinstance(item, LooseCard):
        return ("loose", item.suit, item.rank)
    if isinstance(item, Build):
        return ("build", item.build_id)
    if isinstance(item, TemporaryStack):
        return ("temporary_stack", item.stack_id)
    return None


def _target_for(action: Action) -> TargetInfo | None:
    payload = action.payload
    if action.action_type is ActionType.TRAIL:
        return TargetInfo.table()

    if action.action_type is ActionType.CAPTURE:
        item = payload.target_card
        if item is None and payload.selected_table_cards:
            item = payload.selected_table_cards[0]
        if isinstance(item, LooseCard):
            return TargetInfo.loose(item.card)
        if isinstance(item, Build):
            return TargetInfo.build(item.build_id)
        if isinstance(item, TemporaryStack):
            return TargetInfo.temporary_stack(item.stack_id)
        return None

    if action.action_type is ActionType.BUILD:
        if payload.table_cards_in_build and isinstance(payload.table_cards_in_build[0], LooseCard):
            return TargetInfo.loose(payload.table_cards_in_build[0].card)
        return None

    if payload.build_to_add_to is not None:
        return TargetInfo.build(payload.build_to_add_to.build_id)
    return None


def validate_hand_move(state: GameState, action: Action) -> str | None:
    """
    Re-run determination for a submitted hand-card move.

    Returns an error message if the move is not among the candidates
    determination offers for the same drop, None if it is. Moves that
    are not hand-card drops are left to their handlers.
    """
    if action.action_type not in HAND_CARD_ACTIONS:
        return None

    payload = action.payload
    dragged = payload.dragged_item
    if dragged is None and payload.card is not None:
        dragged = DraggedItem(card=payload.card, source="hand", player=action.player_index)
    if dragged is None:
        return "Move has no dragged card"

    result = determine_actions(dragged, _target_for(action), state)
    matching = [c for c in result.actions if c.type is action.action_type]
    if not matching:
        return result.error_message or f"{action.action_type.value} is not allowed here"

    if action.action_type is ActionType.CAPTURE:
        if len(payload.selected_table_cards) != 1:
            return "A capture takes exactly one table item"
        wanted = item_key(payload.selected_table_cards[0])
        if not any(item_key(c.payload.target_card) == wanted for c in matching):
            return "Selected item cannot be captured with this card"

    if action.action_type is ActionType.BUILD:
        if not any(c.payload.build_value == payload.build_value for c in matching):
            return f"Build value {payload.build_value} is not available"

    return None
