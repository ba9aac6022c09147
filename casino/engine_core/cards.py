"""
Cards - Card representation, deck construction, shuffle and deal.

The casino deck has 40 cards: four suits, ranks A through 10, no face cards.
A card's value is derived from its rank (A=1, numbers = face value).

Cards are immutable. Inside a staging stack a card carries a `source` tag
("hand" or "table") recording where it came from; the tag is not part of
card identity and is dropped once the stack resolves.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
import random
from typing import Any


SUITS = ("♠", "♥", "♦", "♣")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10")

SOURCE_HAND = "hand"
SOURCE_TABLE = "table"

HAND_SIZE = 10
DECK_SIZE = len(SUITS) * len(RANKS)


def rank_value(rank: str | int) -> int:
    """A -> 1, numeric ranks -> their number, anything else -> 0."""
    if rank == "A":
        return 1
    if isinstance(rank, int):
        return rank
    if isinstance(rank, str):
        try:
            return int(rank, 10)
        except ValueError:
            return 0
    return 0


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Identity is (suit, rank). `value` is carried for convenience and
    `source` only while the card sits in a staging stack.
    """
    suit: str
    rank: str
    value: int = field(default=0, compare=False)
    source: str | None = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if not self.value:
            object.__setattr__(self, "value", rank_value(self.rank))

    @property
    def rank_value(self) -> int:
        return rank_value(self.rank)

    def with_source(self, source: str) -> Card:
        return replace(self, source=source)

    def without_source(self) -> Card:
        if self.source is None:
            return self
        return replace(self, source=None)

    def same_card(self, other: Card | None) -> bool:
        """Match by rank and suit, ignoring value and source."""
        if other is None:
            return False
        return self.rank == other.rank and self.suit == other.suit

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"suit": self.suit, "rank": self.rank, "value": self.value}
        if self.source is not None:
            data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        return cls(
            suit=data["suit"],
            rank=str(data["rank"]),
            value=data.get("value") or rank_value(str(data["rank"])),
            source=data.get("source"),
        )

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"


def card_label(card: Card | None) -> str:
    """Short text form used in action labels and logs, e.g. '4♣'."""
    if card is None:
        return "?"
    return f"{card.rank}{card.suit}"


def cards_sum(cards: list[Card]) -> int:
    """Sum of rank values."""
    return sum(rank_value(c.rank) for c in cards)


def build_deck() -> list[Card]:
    """Create the 40-card casino deck, suits in order, ranks A..10."""
    return [
        Card(suit=suit, rank=rank, value=rank_value(rank))
        for suit in SUITS
        for rank in RANKS
    ]


def shuffle(deck: list[Card], rng: random.Random | None = None) -> list[Card]:
    """
    Fisher-Yates shuffle in place.

    Walks from the last index down to 1, swapping each position with a
    uniformly chosen index in [0, i]. Returns the same list for chaining.
    """
    if rng is None:
        rng = random.Random()
    for i in range(len(deck) - 1, 0, -1):
        j = rng.randint(0, i)
        deck[i], deck[j] = deck[j], deck[i]
    return deck


def deal(deck: list[Card], hand_size: int = HAND_SIZE) -> list[list[Card]]:
    """
    Deal two hands by alternately popping from the end of the deck.

    The deck is consumed in place.
    """
    if len(deck) < hand_size * 2:
        raise ValueError(f"Cannot deal {hand_size} cards each from {len(deck)} cards")

    hands: list[list[Card]] = [[], []]
    for _ in range(hand_size):
        hands[0].append(deck.pop())
        hands[1].append(deck.pop())
    return hands
