"""
Tests for round bookkeeping and scoring.
"""

from ..engine_core.scoring import advance_round, calculate_scores, finish_game
from ..engine_core.state import Build, TemporaryStack, card_integrity_errors
from .conftest import c, loose, make_state


class TestCalculateScores:
    """Tests for the 11-point count."""

    def test_all_points_to_one_player(self):
        state = make_state(
            captures=(
                [["10♦", "2♠", "A♠", "A♥", "A♦", "A♣", "3♠"]],
                [["4♥"]],
            ),
        )
        earned, details = calculate_scores(state)

        assert earned == [11, 0]
        p0 = details["players"][0]
        assert p0["mostCards"] == 3
        assert p0["mostSpades"] == 1
        assert p0["bigCasino"] == 2
        assert p0["littleCasino"] == 1
        assert p0["aces"] == 4

    def test_tied_cards_and_spades_score_nothing(self):
        state = make_state(captures=([["3♠", "4♥"]], [["5♠", "6♥"]]))
        earned, details = calculate_scores(state)

        assert earned == [0, 0]
        for entry in details["players"]:
            assert entry["mostCards"] == 0
            assert entry["mostSpades"] == 0

    def test_split_points(self):
        state = make_state(
            captures=(
                [["10♦", "4♥", "5♥"], ["6♥", "7♥"]],
                [["2♠", "A♣", "3♠"]],
            ),
        )
        earned, details = calculate_scores(state)

        # P0: most cards 3 + big casino 2; P1: spades 1 + little casino 1 + ace 1
        assert earned == [5, 3]
        assert details["players"][0]["cards"] == 5
        assert details["players"][1]["spades"] == 2


class TestAdvanceRound:
    """Tests for what happens when hands run out."""

    def test_play_continues(self):
        state = make_state(hands=(["4♣"], ["5♦"]), current_player=1)
        assert advance_round(state) is state

    def test_turn_passes_back(self):
        state = make_state(hands=(["4♣", "6♠"], []), current_player=1)
        new_state = advance_round(state)
        assert new_state.current_player == 0

    def test_redeal_when_deck_allows(self):
        state = make_state(hands=([], []), table=[loose("4♣")], fill_deck=True)
        assert len(state.deck) == 39

        new_state = advance_round(state)

        assert [len(hand) for hand in new_state.player_hands] == [10, 10]
        assert len(new_state.deck) == 19
        assert new_state.round == 2
        assert new_state.game_over is False
        assert card_integrity_errors(new_state) == []

    def test_game_ends_and_table_swept(self):
        build = Build(build_id="build-1", cards=(c("6♣"), c("2♥")), value=8, owner=1)
        state = make_state(
            hands=([], []),
            table=[loose("4♣"), build],
            captures=([["A♠", "A♥"]], [["10♦", "10♠"]]),
            last_capturer=1,
            deck=["3♦"],
        )

        new_state = advance_round(state)

        assert new_state.game_over is True
        assert new_state.table_cards == []
        assert new_state.player_captures[1][-1] == [c("4♣"), c("6♣"), c("2♥")]
        assert new_state.score_details is not None
        # P0: two aces = 2. P1: most cards 3 + big casino 2 = 5; spades tie 1-1
        assert new_state.scores == [2, 5]
        assert new_state.winner == 1

    def test_table_stays_without_capturer(self):
        state = make_state(hands=([], []), table=[loose("4♣")])
        new_state = advance_round(state)

        assert new_state.game_over is True
        assert new_state.table_cards == [loose("4♣")]
        assert new_state.winner is None

    def test_scores_accumulate(self):
        state = make_state(captures=([["A♠"]], []))._copy_with(scores=[4, 2])
        new_state = finish_game(state)
        # Ace 1, most cards 3, most spades 1
        assert new_state.scores == [9, 2]

    def test_game_over_state_untouched(self):
        state = make_state()._copy_with(game_over=True)
        assert advance_round(state) is state

    def test_staging_owner_keeps_turn_with_empty_hand(self):
        stack = TemporaryStack(
            stack_id="temp-1",
            cards=(c("5♠").with_source("hand"), c("4♥").with_source("table")),
            owner=0,
            value=9,
        )
        state = make_state(hands=([], ["3♦"]), table=[stack])
        assert advance_round(state) is state
