import logging
import random

from playroom.converter import DataConverter
from playroom.domain.bingo_rules import generate_card
from playroom.models.dc_models import RoleModel, SessionPhaseModel, VariantModel

X, O = RoleModel.X, RoleModel.O
data_converter = DataConverter()


def test_empty_snapshot_gets_defaults():
    document = data_converter.normalize_snapshot({}, "s1")
    assert document.session_id == "s1"
    assert document.revision == 0
    assert document.slots == {X: None, O: None}
    assert document.display_names == {X: None, O: None}
    assert document.board == [None] * 9
    assert document.cards == {X: None, O: None}
    assert document.win_ledger == {}
    assert document.variant is None
    assert document.outcome is None
    assert document.turn == X


def test_non_dict_snapshot_does_not_raise(caplog):
    with caplog.at_level(logging.WARNING):
        document = data_converter.normalize_snapshot(["nope"], "s1")
    assert document.session_id == "s1"
    assert "not a document" in caplog.text


def test_malformed_fields_fall_back_and_are_logged(caplog):
    raw = {
        "session_id": "s1",
        "revision": "3",
        "slots": "alice",
        "variant": "chess",
        "board": [None, "X"],
        "cards": {"X": {"grid": [[1, 2]], "marked": [[False, False]]}, "O": "card"},
        "outcome": "Z",
        "win_ledger": {"alice": 2, "bob": -1, "carol": "7"},
    }
    with caplog.at_level(logging.WARNING):
        document = data_converter.normalize_snapshot(raw)
    assert document.revision == 0
    assert document.slots == {X: None, O: None}
    assert document.variant is None
    assert document.board == [None] * 9
    assert document.cards == {X: None, O: None}
    assert document.outcome is None
    assert document.win_ledger == {"alice": 2}
    assert "Malformed snapshot of s1" in caplog.text


def test_stored_values_are_read_back_as_roles():
    raw = {
        "session_id": "s1",
        "revision": 4,
        "slots": {"X": "alice", "O": "bob"},
        "display_names": {"X": "Alice", "O": ""},
        "variant": "tictactoe",
        "turn": None,
        "starting_role": "O",
        "board": ["X", "O", None, None, "X", None, None, "O", "X"],
        "outcome": "X",
        "win_ledger": {"alice": 1},
    }
    document = data_converter.normalize_snapshot(raw)
    assert document.slots == {X: "alice", O: "bob"}
    assert document.display_names == {X: "Alice", O: None}
    assert document.board[0] == X
    assert document.board[1] == O
    assert document.turn is None
    assert document.starting_role == O
    assert document.variant == VariantModel.tictactoe


def test_missing_turn_follows_starting_role_while_open():
    document = data_converter.normalize_snapshot({"starting_role": "O"}, "s1")
    assert document.turn == O
    document = data_converter.normalize_snapshot({"starting_role": "O", "outcome": "draw"}, "s1")
    assert document.turn is None


def test_view_derives_phase_and_wins_by_identity():
    raw = {
        "slots": {"X": "bob", "O": "alice"},
        "variant": "tictactoe",
        "win_ledger": {"alice": 3, "bob": 1},
    }
    document = data_converter.normalize_snapshot(raw, "s1")
    view = data_converter.convert_document_to_state_model(document, "alice")
    assert view.phase == SessionPhaseModel.in_progress
    assert view.viewer_role == O
    assert not view.spectator
    assert view.wins == {X: 1, O: 3}

    spectator_view = data_converter.convert_document_to_state_model(document, "carol")
    assert spectator_view.spectator
    assert spectator_view.viewer_role is None


def test_phase_of():
    unbound = data_converter.normalize_snapshot({"slots": {"X": "alice"}}, "s1")
    concluded = data_converter.normalize_snapshot(
        {"slots": {"X": "alice", "O": "bob"}, "outcome": "O"}, "s1"
    )
    assert DataConverter.phase_of(unbound) == SessionPhaseModel.unbound
    assert DataConverter.phase_of(concluded) == SessionPhaseModel.concluded


def test_opponent_card_hidden_until_concluded():
    rng = random.Random(11)
    x_card, o_card = generate_card(rng), generate_card(rng)
    o_card["marked"][3] = [True] * 5
    raw = {
        "slots": {"X": "alice", "O": "bob"},
        "variant": "bingo",
        "cards": {"X": x_card, "O": o_card},
    }
    view = data_converter.convert_document_to_state_model(
        data_converter.normalize_snapshot(raw, "s1"), "alice"
    )
    assert view.cards[X].grid == x_card["grid"]
    assert view.cards[O] is None
    assert view.turn is None

    raw["outcome"] = "O"
    view = data_converter.convert_document_to_state_model(
        data_converter.normalize_snapshot(raw, "s1"), "alice"
    )
    assert view.cards[O].grid == o_card["grid"]
    assert view.winning_lines == ["row 3"]
