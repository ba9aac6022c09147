"""
Game State - The aggregate the engine reads and replaces.

Design principles:
- Immutable-friendly: handlers return a new GameState, never mutate the input
- Serializable: to_dict()/from_dict() produce the wire shape sent to clients
- Table items are a tagged sum (LooseCard | TemporaryStack | Build) held in
  one ordered list; order is for display only
"""

from __future__ import annotations
from collections import Counter
from collections.abc import Mapping, Sequence
from copy import deepcopy
from dataclasses import dataclass, field
import logging
import random
from typing import Any, ClassVar, Union

from .cards import Card, build_deck, shuffle, deal, rank_value, cards_sum, DECK_SIZE


logger = logging.getLogger(__name__)

NUM_PLAYERS = 2
MAX_BUILD_VALUE = 10


@dataclass(frozen=True)
class LooseCard:
    """A single card lying face-up on the table."""
    card: Card

    kind: ClassVar[str] = "loose"

    @property
    def suit(self) -> str:
        return self.card.suit

    @property
    def rank(self) -> str:
        return self.card.rank

    @property
    def value(self) -> int:
        return rank_value(self.card.rank)

    def to_dict(self) -> dict[str, Any]:
        return {**self.card.without_source().to_dict(), "type": self.kind}


@dataclass(frozen=True)
class TemporaryStack:
    """
    A staging stack: an uncommitted build proposal.

    Every card carries its source tag. At most one per player.
    """
    stack_id: str
    cards: tuple[Card, ...]
    owner: int
    value: int

    kind: ClassVar[str] = "temporary_stack"

    @property
    def hand_cards(self) -> list[Card]:
        return [c for c in self.cards if c.source == "hand"]

    @property
    def table_cards(self) -> list[Card]:
        return [c for c in self.cards if c.source == "table"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "stackId": self.stack_id,
            "cards": [c.to_dict() for c in self.cards],
            "owner": self.owner,
            "value": self.value,
        }


@dataclass(frozen=True)
class Build:
    """A committed build, capturable by a hand card of value `value`."""
    build_id: str
    cards: tuple[Card, ...]
    value: int
    owner: int
    is_extendable: bool = True

    kind: ClassVar[str] = "build"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "buildId": self.build_id,
            "cards": [c.to_dict() for c in self.cards],
            "value": self.value,
            "owner": self.owner,
            "isExtendable": self.is_extendable,
        }


TableItem = Union[LooseCard, TemporaryStack, Build]


def capture_value(item: TableItem) -> int:
    """Value a hand card must match to capture this item."""
    if isinstance(item, LooseCard):
        return item.value
    if isinstance(item, Build):
        return item.value
    if isinstance(item, TemporaryStack):
        return cards_sum(list(item.cards))
    raise TypeError(f"Unknown table item: {item!r}")


def item_cards(item: TableItem) -> list[Card]:
    """All cards in a table item, source tags stripped."""
    if isinstance(item, LooseCard):
        return [item.card.without_source()]
    if isinstance(item, (TemporaryStack, Build)):
        return [c.without_source() for c in item.cards]
    raise TypeError(f"Unknown table item: {item!r}")


def item_label(item: TableItem) -> str:
    if isinstance(item, LooseCard):
        return f"{item.rank}{item.suit}"
    if isinstance(item, Build):
        return f"Build({item.value})"
    return f"temp({item.value})"


def table_item_from_dict(data: Mapping[str, Any]) -> TableItem:
    """Parse a wire table item. Items without a type are loose cards."""
    kind = data.get("type")
    if kind in (None, LooseCard.kind):
        return LooseCard(card=Card.from_dict(data))
    if kind == TemporaryStack.kind:
        cards = tuple(Card.from_dict(c) for c in data["cards"])
        return TemporaryStack(
            stack_id=data["stackId"],
            cards=cards,
            owner=int(data["owner"]),
            value=int(data.get("value", cards_sum(list(cards)))),
        )
    if kind == Build.kind:
        return Build(
            build_id=data["buildId"],
            cards=tuple(Card.from_dict(c) for c in data["cards"]),
            value=int(data["value"]),
            owner=int(data["owner"]),
            is_extendable=bool(data.get("isExtendable", True)),
        )
    raise ValueError(f"Unknown table item type: {kind}")


class EngineStateError(Exception):
    """Raised when a game state fails structural validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Invalid game state: {'; '.join(errors)}")


@dataclass
class ValidationResult:
    """Result of structural validation."""
    valid: bool
    errors: list[str]


@dataclass
class GameState:
    """
    Complete game state at a point in time.

    Owned by the orchestrator. The engine reads it for determination
    and builds successors from it in the handlers.
    """
    deck: list[Card] = field(default_factory=list)
    player_hands: list[list[Card]] = field(default_factory=lambda: [[], []])
    table_cards: list[TableItem] = field(default_factory=list)
    player_captures: list[list[list[Card]]] = field(default_factory=lambda: [[], []])
    current_player: int = 0
    round: int = 1
    scores: list[int] = field(default_factory=lambda: [0, 0])
    game_over: bool = False
    winner: int | None = None
    last_capturer: int | None = None
    score_details: dict[str, Any] | None = None

    def hand(self, player: int) -> list[Card]:
        return self.player_hands[player]

    def hand_has(self, player: int, card: Card | None) -> bool:
        if card is None or player not in (0, 1):
            return False
        return any(c.same_card(card) for c in self.player_hands[player])

    def find_loose_index(self, card: Card | None) -> int | None:
        """Index of the loose card matching rank and suit, if on the table."""
        if card is None:
            return None
        for idx, item in enumerate(self.table_cards):
            if isinstance(item, LooseCard) and item.card.same_card(card):
                return idx
        return None

    def find_build(self, build_id: str | None) -> Build | None:
        for item in self.table_cards:
            if isinstance(item, Build) and item.build_id == build_id:
                return item
        return None

    def find_stack(self, stack_id: str | None) -> TemporaryStack | None:
        for item in self.table_cards:
            if isinstance(item, TemporaryStack) and item.stack_id == stack_id:
                return item
        return None

    def staging_stack_for(self, player: int) -> TemporaryStack | None:
        for item in self.table_cards:
            if isinstance(item, TemporaryStack) and item.owner == player:
                return item
        return None

    def active_build_for(self, player: int) -> Build | None:
        for item in self.table_cards:
            if isinstance(item, Build) and item.owner == player:
                return item
        return None

    def all_cards(self) -> list[Card]:
        """Every card in the game: deck, hands, table items, captures."""
        cards = list(self.deck)
        for hand in self.player_hands:
            cards.extend(hand)
        for item in self.table_cards:
            cards.extend(item_cards(item))
        for groups in self.player_captures:
            for group in groups:
                cards.extend(group)
        return cards

    def _copy_with(self, **kwargs) -> GameState:
        """Create a copy with some fields replaced."""
        return GameState(
            deck=kwargs.get("deck", self.deck),
            player_hands=kwargs.get("player_hands", self.player_hands),
            table_cards=kwargs.get("table_cards", self.table_cards),
            player_captures=kwargs.get("player_captures", self.player_captures),
            current_player=kwargs.get("current_player", self.current_player),
            round=kwargs.get("round", self.round),
            scores=kwargs.get("scores", self.scores),
            game_over=kwargs.get("game_over", self.game_over),
            winner=kwargs.get("winner", self.winner),
            last_capturer=kwargs.get("last_capturer", self.last_capturer),
            score_details=kwargs.get("score_details", self.score_details),
        )

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase keys)."""
        return {
            "deck": [c.to_dict() for c in self.deck],
            "playerHands": [[c.to_dict() for c in hand] for hand in self.player_hands],
            "tableCards": [item.to_dict() for item in self.table_cards],
            "playerCaptures": [
                [[c.to_dict() for c in group] for group in groups]
                for groups in self.player_captures
            ],
            "currentPlayer": self.current_player,
            "round": self.round,
            "scores": list(self.scores),
            "gameOver": self.game_over,
            "winner": self.winner,
            "lastCapturer": self.last_capturer,
            "scoreDetails": deepcopy(self.score_details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GameState:
        """Parse a wire state. Call validate_game_state() first on untrusted input."""
        return cls(
            deck=[Card.from_dict(c) for c in data.get("deck", [])],
            player_hands=[
                [Card.from_dict(c) for c in hand] for hand in data["playerHands"]
            ],
            table_cards=[table_item_from_dict(item) for item in data.get("tableCards", [])],
            player_captures=[
                [[Card.from_dict(c) for c in group] for group in groups]
                for groups in data.get("playerCaptures", [[], []])
            ],
            current_player=int(data.get("currentPlayer", 0)),
            round=int(data.get("round", 1)),
            scores=list(data.get("scores", [0, 0])),
            game_over=bool(data.get("gameOver", False)),
            winner=data.get("winner"),
            last_capturer=data.get("lastCapturer"),
            score_details=data.get("scoreDetails"),
        )


def initialize_game(rng: random.Random | None = None, seed: int | None = None) -> GameState:
    """
    Create a new game: build the deck, shuffle, deal 10 cards to each player.

    Pass `rng` or `seed` for a reproducible deal.
    """
    if rng is None:
        rng = random.Random(seed)

    logger.info("Initializing game state")
    deck = shuffle(build_deck(), rng)
    hands = deal(deck)

    return GameState(
        deck=deck,
        player_hands=hands,
        table_cards=[],
        player_captures=[[], []],
        current_player=0,
        round=1,
        scores=[0, 0],
        game_over=False,
        winner=None,
        last_capturer=None,
    )


def validate_game_state(state: GameState | Mapping[str, Any] | None) -> ValidationResult:
    """
    Structural check of a game state.

    Accepts a GameState or a raw wire mapping. Used by the orchestrator
    before trusting a state; the engine itself never calls it.
    """
    errors: list[str] = []

    if state is None:
        return ValidationResult(valid=False, errors=["Game state is null"])

    data = state.to_dict() if isinstance(state, GameState) else state
    if not isinstance(data, Mapping):
        return ValidationResult(valid=False, errors=["Game state must be a mapping"])

    hands = data.get("playerHands")
    hands_ok = _is_sequence(hands) and len(hands) == NUM_PLAYERS
    if not hands_ok:
        errors.append("playerHands must be an array of 2 elements")

    if not _is_sequence(data.get("tableCards")):
        errors.append("tableCards must be an array")

    captures = data.get("playerCaptures")
    if not _is_sequence(captures) or len(captures) != NUM_PLAYERS:
        errors.append("playerCaptures must be an array of 2 elements")

    current = data.get("currentPlayer")
    if isinstance(current, bool) or not isinstance(current, int) or current not in (0, 1):
        errors.append("currentPlayer must be 0 or 1")

    if hands_ok:
        _validate_cards(hands[0], "playerHands[0]", errors)
        _validate_cards(hands[1], "playerHands[1]", errors)
    _validate_cards(data.get("deck"), "deck", errors)

    return ValidationResult(valid=len(errors) == 0, errors=errors)


def card_integrity_errors(state: GameState) -> list[str]:
    """
    Check that the 40 original cards are all present exactly once.

    Returns a list of problems; empty means the partition holds.
    """
    errors: list[str] = []
    seen = Counter((c.suit, c.rank) for c in state.all_cards())

    total = sum(seen.values())
    if total != DECK_SIZE:
        errors.append(f"Expected {DECK_SIZE} cards in play, found {total}")

    for key, count in sorted(seen.items()):
        if count > 1:
            errors.append(f"Duplicate card {key[1]}{key[0]} x{count}")

    expected = {(c.suit, c.rank) for c in build_deck()}
    for suit, rank in sorted(expected - set(seen)):
        errors.append(f"Missing card {rank}{suit}")
    for suit, rank in sorted(set(seen) - expected):
        errors.append(f"Unknown card {rank}{suit}")

    return errors


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _validate_cards(cards: Any, location: str, errors: list[str]) -> None:
    if not _is_sequence(cards):
        errors.append(f"{location} must be an array")
        return
    for index, card in enumerate(cards):
        if not isinstance(card, Mapping):
            errors.append(f"{location}[{index}] is not a valid card object")
            continue
        value = card.get("value")
        numeric = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not card.get("suit") or not card.get("rank") or not numeric:
            errors.append(f"{location}[{index}] missing required card properties: suit, rank, value")
