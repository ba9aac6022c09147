"""
Pytest fixtures for casino tests.
"""

import random

import pytest

from ..engine_core.cards import Card, build_deck
from ..engine_core.state import GameState, LooseCard, TableItem, initialize_game


def c(label: str) -> Card:
    """Card from a short label: c("4♣"), c("10♦"), c("A♥")."""
    return Card(suit=label[-1], rank=label[:-1])


def loose(label: str) -> LooseCard:
    return LooseCard(card=c(label))


def make_state(
    hands: tuple[list[str], list[str]] = ([], []),
    table: list[TableItem] | None = None,
    current_player: int = 0,
    round: int = 1,
    deck: list[str] | None = None,
    captures: tuple[list[list[str]], list[list[str]]] | None = None,
    last_capturer: int | None = None,
    fill_deck: bool = False,
) -> GameState:
    """
    Hand-built state for rule tests.

    With fill_deck=True every card not placed elsewhere goes into the
    deck, so the 40-card partition holds.
    """
    state = GameState(
        deck=[c(label) for label in deck] if deck else [],
        player_hands=[[c(label) for label in hands[0]], [c(label) for label in hands[1]]],
        table_cards=list(table or []),
        player_captures=(
            [[[c(label) for label in group] for group in groups] for groups in captures]
            if captures else [[], []]
        ),
        current_player=current_player,
        round=round,
        last_capturer=last_capturer,
    )
    if fill_deck:
        used = {(card.suit, card.rank) for card in state.all_cards()}
        state.deck.extend(card for card in build_deck() if (card.suit, card.rank) not in used)
    return state


@pytest.fixture
def rng() -> random.Random:
    """Seeded RNG for reproducible deals."""
    return random.Random(1234)


@pytest.fixture
def new_game(rng) -> GameState:
    """A freshly dealt game."""
    return initialize_game(rng=rng)


@pytest.fixture
def build_scenario() -> GameState:
    """
    P0 holds 4♣ and a 5 to capture a build of five; A♥ is on the table.
    """
    return make_state(
        hands=(["4♣", "6♠", "5♦", "9♥"], ["2♦", "8♥", "3♠", "7♣"]),
        table=[loose("A♥")],
        fill_deck=True,
    )
