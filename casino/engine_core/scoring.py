"""
Round bookkeeping and end-of-game scoring.

Run by the orchestrator after every move that ends a turn. The handlers only
advance the turn; this module decides what happens when hands run out.
"""

from __future__ import annotations
import logging
from typing import Any

from .cards import Card, deal, HAND_SIZE
from .state import GameState, NUM_PLAYERS, item_cards


logger = logging.getLogger(__name__)

MOST_CARDS_POINTS = 3
MOST_SPADES_POINTS = 1
BIG_CASINO_POINTS = 2
LITTLE_CASINO_POINTS = 1
ACE_POINTS = 1

BIG_CASINO = ("♦", "10")
LITTLE_CASINO = ("♠", "2")


def captured_cards(state: GameState, player: int) -> list[Card]:
    """All cards a player has captured, flattened."""
    return [card for group in state.player_captures[player] for card in group]


def calculate_scores(state: GameState) -> tuple[list[int], dict[str, Any]]:
    """
    Score the captured piles.

    Returns the points earned this game per player and a breakdown:
    {"players": [{"cards", "spades", "mostCards", "mostSpades",
    "bigCasino", "littleCasino", "aces", "total"}, ...]}
    """
    piles = [captured_cards(state, p) for p in range(NUM_PLAYERS)]
    card_counts = [len(pile) for pile in piles]
    spade_counts = [sum(1 for c in pile if c.suit == "♠") for pile in piles]

    details = []
    for player, pile in enumerate(piles):
        opponent = 1 - player
        entry = {
            "cards": card_counts[player],
            "spades": spade_counts[player],
            "mostCards": MOST_CARDS_POINTS if card_counts[player] > card_counts[opponent] else 0,
            "mostSpades": MOST_SPADES_POINTS if spade_counts[player] > spade_counts[opponent] else 0,
            "bigCasino": BIG_CASINO_POINTS if any((c.suit, c.rank) == BIG_CASINO for c in pile) else 0,
            "littleCasino": LITTLE_CASINO_POINTS if any((c.suit, c.rank) == LITTLE_CASINO for c in pile) else 0,
            "aces": ACE_POINTS * sum(1 for c in pile if c.rank == "A"),
        }
        entry["total"] = (
            entry["mostCards"] + entry["mostSpades"] + entry["bigCasino"]
            + entry["littleCasino"] + entry["aces"]
        )
        details.append(entry)

    return [entry["total"] for entry in details], {"players": details}


def _sweep_table(state: GameState) -> GameState:
    """Give whatever is left on the table to the last player who captured."""
    if not state.table_cards or state.last_capturer is None:
        return state

    group: list[Card] = []
    for item in state.table_cards:
        group.extend(item_cards(item))

    captures = [list(groups) for groups in state.player_captures]
    captures[state.last_capturer] = [*captures[state.last_capturer], group]
    logger.info("Player %d takes %d remaining table cards", state.last_capturer, len(group))
    return state._copy_with(table_cards=[], player_captures=captures)


def finish_game(state: GameState) -> GameState:
    """Sweep the table, score, and mark the game over."""
    state = _sweep_table(state)
    earned, details = calculate_scores(state)
    scores = [state.scores[p] + earned[p] for p in range(NUM_PLAYERS)]

    if scores[0] > scores[1]:
        winner = 0
    elif scores[1] > scores[0]:
        winner = 1
    else:
        winner = None

    logger.info("Game over: scores %s, winner %s", scores, winner)
    return state._copy_with(
        scores=scores,
        winner=winner,
        game_over=True,
        score_details=details,
    )


def advance_round(state: GameState) -> GameState:
    """
    Handle empty hands after a move.

    - Next player out of cards while the opponent still holds some: pass back.
    - Both hands empty with a full re-deal left in the deck: deal and
      start the next round.
    - Both hands empty otherwise: the game ends.

    While the player on turn still owns a staging stack nothing happens:
    the turn is theirs until the stack is finalized or cancelled.

    Returns the input state unchanged when play simply continues.
    """
    if state.game_over:
        return state

    current = state.current_player
    if state.staging_stack_for(current) is not None:
        return state

    hands = state.player_hands
    if hands[0] or hands[1]:
        if not hands[current] and hands[1 - current]:
            logger.debug("Player %d has no cards, turn passes back", current)
            return state._copy_with(current_player=1 - current)
        return state

    if len(state.deck) >= HAND_SIZE * NUM_PLAYERS:
        deck = list(state.deck)
        new_hands = deal(deck, HAND_SIZE)
        logger.info("Dealing round %d, %d cards left in deck", state.round + 1, len(deck))
        return state._copy_with(deck=deck, player_hands=new_hands, round=state.round + 1)

    return finish_game(state)
