"""Tests for action handlers, called directly with validated metadata."""

import pytest

from core.errors import InvalidMetadataError, InvalidStateError, NotFoundError
from db.database import GameStateRepository, IndicatorRepository
from tabletop_engine.actions import ActionKind, PendingAction, parse_metadata
from tabletop_engine.zones import Zone


def run(handlers, kind, session_id, seat, metadata=None):
    """Validate metadata the way the dispatcher does and call the handler."""
    kind = ActionKind(kind)
    meta = parse_metadata(kind, metadata or {})
    name = "move_to_graveyard" if kind is ActionKind.DISCARD else kind.value
    return getattr(handlers, name)(session_id, seat, meta)


def zone_ids(store, session_id, seat, zone):
    return [obj.id for obj in store.zone_contents(session_id, seat, zone)]


class TestDraw:
    def test_draw_one(self, handlers, store, blank_session, make_library):
        a, b, c = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        run(handlers, "draw", blank_session, 1)
        assert zone_ids(store, blank_session, 1, Zone.HAND) == [a]
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [b, c]

    def test_draw_many(self, handlers, store, blank_session, make_library):
        a, b, c = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        run(handlers, "draw", blank_session, 1, {"count": 2})
        assert sorted(zone_ids(store, blank_session, 1, Zone.HAND)) == sorted([a, b])

    def test_draw_more_than_remain(self, handlers, store, blank_session, make_library):
        ids = make_library(blank_session, 1, ["card-01", "card-02"])
        run(handlers, "draw", blank_session, 1, {"count": 5})
        assert sorted(zone_ids(store, blank_session, 1, Zone.HAND)) == sorted(ids)
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == []

    def test_draw_from_empty_library(self, handlers, store, blank_session):
        run(handlers, "draw", blank_session, 1)
        assert zone_ids(store, blank_session, 1, Zone.HAND) == []

    def test_draw_only_own_library(self, handlers, store, blank_session, make_library):
        make_library(blank_session, 2, ["card-01"])
        run(handlers, "draw", blank_session, 1)
        assert zone_ids(store, blank_session, 1, Zone.HAND) == []
        assert len(zone_ids(store, blank_session, 2, Zone.LIBRARY)) == 1


class TestMillAndExile:
    def test_mill(self, handlers, store, blank_session, make_library):
        a, b, c = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        run(handlers, "mill", blank_session, 1, {"count": 2})
        assert sorted(zone_ids(store, blank_session, 1, Zone.GRAVEYARD)) == sorted([a, b])
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [c]

    def test_exile_from_top(self, handlers, store, blank_session, make_library):
        a, b = make_library(blank_session, 1, ["card-01", "card-02"])
        run(handlers, "exile_from_top", blank_session, 1)
        assert zone_ids(store, blank_session, 1, Zone.EXILE) == [a]
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [b]


class TestScry:
    def test_arrangement(self, handlers, store, blank_session, make_library):
        a, b, c, d, e = make_library(
            blank_session, 1, ["card-01", "card-02", "card-03", "card-04", "card-05"]
        )
        run(handlers, "scry", blank_session, 1, {
            "count": 3,
            "arrangement": {"top": [c, a], "bottom": [e]},
        })
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [c, a, b, d, e]

    def test_bottom_keeps_given_sequence(self, handlers, store, blank_session, make_library):
        a, b, c, d = make_library(blank_session, 1, ["card-01", "card-02", "card-03", "card-04"])
        run(handlers, "scry", blank_session, 1, {
            "count": 2,
            "arrangement": {"top": [], "bottom": [b, a]},
        })
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [c, d, b, a]

    def test_missing_arrangement_is_noop(self, handlers, store, blank_session, make_library):
        ids = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        run(handlers, "scry", blank_session, 1, {"count": 2})
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == ids

    def test_missing_count_is_noop(self, handlers, store, blank_session, make_library):
        a, b, c = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        run(handlers, "scry", blank_session, 1, {"arrangement": {"top": [c], "bottom": []}})
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [a, b, c]

    def test_unknown_id_rejected_before_write(self, handlers, store, blank_session, make_library):
        a, b, c = make_library(blank_session, 1, ["card-01", "card-02", "card-03"])
        with pytest.raises(InvalidMetadataError):
            run(handlers, "scry", blank_session, 1, {
                "count": 2,
                "arrangement": {"top": [c], "bottom": ["not-in-library"]},
            })
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [a, b, c]

    def test_other_seats_card_rejected(self, handlers, blank_session, make_library):
        make_library(blank_session, 1, ["card-01"])
        (theirs,) = make_library(blank_session, 2, ["card-02"])
        with pytest.raises(InvalidMetadataError):
            run(handlers, "scry", blank_session, 1, {
                "count": 1,
                "arrangement": {"top": [theirs], "bottom": []},
            })

    def test_duplicate_id_rejected(self, handlers, blank_session, make_library):
        a, b = make_library(blank_session, 1, ["card-01", "card-02"])
        with pytest.raises(InvalidMetadataError):
            run(handlers, "scry", blank_session, 1, {
                "count": 2,
                "arrangement": {"top": [a], "bottom": [a]},
            })


class TestSurveil:
    def test_arrangement(self, handlers, store, blank_session, make_library):
        a, b, c, d = make_library(blank_session, 1, ["card-01", "card-02", "card-03", "card-04"])
        run(handlers, "surveil", blank_session, 1, {
            "count": 3,
            "arrangement": {"top": [c], "graveyard": [a, b]},
        })
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [c, d]
        assert sorted(zone_ids(store, blank_session, 1, Zone.GRAVEYARD)) == sorted([a, b])

    def test_missing_arrangement_is_noop(self, handlers, store, blank_session, make_library):
        ids = make_library(blank_session, 1, ["card-01", "card-02"])
        run(handlers, "surveil", blank_session, 1, {"count": 2})
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == ids

    def test_unknown_id_rejected(self, handlers, store, blank_session, make_library):
        a, b = make_library(blank_session, 1, ["card-01", "card-02"])
        with pytest.raises(InvalidMetadataError):
            run(handlers, "surveil", blank_session, 1, {
                "count": 1,
                "arrangement": {"top": [], "graveyard": ["ghost"]},
            })
        assert zone_ids(store, blank_session, 1, Zone.GRAVEYARD) == []


class TestTapping:
    def test_tap_untap_toggle(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")

        run(handlers, "tap", blank_session, 1, {"objectId": obj.id})
        assert store.get(blank_session, obj.id).is_tapped

        run(handlers, "untap", blank_session, 1, {"objectId": obj.id})
        assert not store.get(blank_session, obj.id).is_tapped

        run(handlers, "toggle_tap", blank_session, 1, {"objectId": obj.id})
        assert store.get(blank_session, obj.id).is_tapped
        run(handlers, "toggle_tap", blank_session, 1, {"objectId": obj.id})
        assert not store.get(blank_session, obj.id).is_tapped

    def test_tap_missing_object(self, handlers, blank_session):
        with pytest.raises(NotFoundError):
            run(handlers, "tap", blank_session, 1, {"objectId": "missing"})

    def test_untap_all_only_own_battlefield(self, handlers, store, blank_session):
        mine = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")
        theirs = store.create(blank_session, 2, Zone.BATTLEFIELD, "card-02")
        for obj in (mine, theirs):
            store.set_flag(obj, "is_tapped", True)

        run(handlers, "untap_all", blank_session, 1)

        assert not store.get(blank_session, mine.id).is_tapped
        assert store.get(blank_session, theirs.id).is_tapped


class TestLifeChange:
    def test_adjusts_only_acting_seat(self, db, handlers, blank_session):
        run(handlers, "life_change", blank_session, 2, {"amount": -7})
        run(handlers, "life_change", blank_session, 2, {"amount": 3})
        state = GameStateRepository(db).get(blank_session)
        assert state.life[2] == 36
        assert state.life[1] == 40

    def test_amount_required(self, handlers, blank_session):
        with pytest.raises(InvalidMetadataError):
            run(handlers, "life_change", blank_session, 1, {})

    def test_amount_must_be_integer(self, handlers, blank_session):
        with pytest.raises(InvalidMetadataError):
            run(handlers, "life_change", blank_session, 1, {"amount": "5"})


class TestZoneTransitions:
    @pytest.mark.parametrize(
        "kind, zone",
        [
            ("move_to_hand", "hand"),
            ("move_to_graveyard", "graveyard"),
            ("discard", "graveyard"),
            ("move_to_exile", "exile"),
            ("move_to_library", "library"),
            ("move_to_battlefield", "battlefield"),
        ],
    )
    def test_card_moves(self, handlers, store, blank_session, kind, zone):
        obj = store.create(blank_session, 1, Zone.EXILE if zone != "exile" else Zone.HAND, "card-01")
        run(handlers, kind, blank_session, 1, {"objectId": obj.id})
        assert store.get(blank_session, obj.id).zone == zone

    @pytest.mark.parametrize("kind", ["move_to_hand", "move_to_graveyard", "discard"])
    def test_token_destroyed(self, handlers, store, blank_session, kind):
        token = store.create(blank_session, 1, Zone.BATTLEFIELD, "token-soldier", is_token=True)
        run(handlers, kind, blank_session, 1, {"objectId": token.id})
        with pytest.raises(NotFoundError):
            store.get(blank_session, token.id)

    def test_token_to_exile_survives(self, handlers, store, blank_session):
        token = store.create(blank_session, 1, Zone.BATTLEFIELD, "token-soldier", is_token=True)
        run(handlers, "move_to_exile", blank_session, 1, {"objectId": token.id})
        assert store.get(blank_session, token.id).zone == "exile"

    def test_move_to_battlefield_with_position(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.HAND, "card-01")
        run(handlers, "move_to_battlefield", blank_session, 1, {
            "objectId": obj.id,
            "position": {"x": 12.5, "y": 80},
        })
        moved = store.get(blank_session, obj.id)
        assert moved.zone == "battlefield"
        assert moved.position == {"x": 12.5, "y": 80}

    def test_move_to_library_top_and_bottom(self, handlers, store, blank_session, make_library):
        a, b = make_library(blank_session, 1, ["card-01", "card-02"])
        top = store.create(blank_session, 1, Zone.HAND, "card-03")
        bottom = store.create(blank_session, 1, Zone.GRAVEYARD, "card-04")

        run(handlers, "move_to_library", blank_session, 1, {"objectId": top.id, "placement": "top"})
        run(handlers, "move_to_library", blank_session, 1, {"objectId": bottom.id, "placement": "bottom"})

        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [top.id, a, b, bottom.id]

    def test_move_to_library_keeps_order(self, handlers, store, blank_session):
        top = store.create(blank_session, 1, Zone.LIBRARY, "card-01", order=0)
        middle = store.create(blank_session, 1, Zone.LIBRARY, "card-02", order=2)
        bottom = store.create(blank_session, 1, Zone.LIBRARY, "card-03", order=4)
        returning = store.create(blank_session, 1, Zone.GRAVEYARD, "card-04", order=3)

        run(handlers, "move_to_library", blank_session, 1, {"objectId": returning.id})

        moved = store.get(blank_session, returning.id)
        assert moved.zone == "library"
        assert moved.order == 3
        assert zone_ids(store, blank_session, 1, Zone.LIBRARY) == [
            top.id, middle.id, returning.id, bottom.id,
        ]

    def test_bad_placement(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.HAND, "card-01")
        with pytest.raises(InvalidMetadataError):
            run(handlers, "move_to_library", blank_session, 1, {"objectId": obj.id, "placement": "middle"})

    def test_object_id_required(self, handlers, blank_session):
        with pytest.raises(InvalidMetadataError):
            run(handlers, "move_to_hand", blank_session, 1, {})


class TestCast:
    def test_cast_from_hand_default_position(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.HAND, "card-01")
        run(handlers, "cast", blank_session, 1, {"objectId": obj.id})
        cast = store.get(blank_session, obj.id)
        assert cast.zone == "battlefield"
        assert cast.position == {"x": 50, "y": 50}

    def test_cast_commander_with_position(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.COMMAND_ZONE, "cmd-atraxa")
        run(handlers, "cast", blank_session, 1, {"objectId": obj.id, "position": {"x": 5, "y": 6}})
        cast = store.get(blank_session, obj.id)
        assert cast.zone == "battlefield"
        assert cast.position == {"x": 5, "y": 6}

    @pytest.mark.parametrize("zone", [Zone.LIBRARY, Zone.GRAVEYARD, Zone.BATTLEFIELD])
    def test_cast_from_other_zone_rejected(self, handlers, store, blank_session, zone):
        obj = store.create(blank_session, 1, zone, "card-01")
        with pytest.raises(InvalidStateError):
            run(handlers, "cast", blank_session, 1, {"objectId": obj.id})
        assert store.get(blank_session, obj.id).zone == zone.value


class TestCounters:
    def test_add_then_remove_leaves_no_key(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")
        run(handlers, "add_counter", blank_session, 1, {"objectId": obj.id, "counterType": "charge", "amount": 1})
        assert store.get(blank_session, obj.id).counters == {"charge": 1}
        run(handlers, "remove_counter", blank_session, 1, {"objectId": obj.id, "counterType": "charge", "amount": 1})
        assert "charge" not in store.get(blank_session, obj.id).counters

    def test_amount_defaults_to_one(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")
        run(handlers, "add_counter", blank_session, 1, {"objectId": obj.id, "counterType": "+1/+1"})
        run(handlers, "add_counter", blank_session, 1, {"objectId": obj.id, "counterType": "+1/+1"})
        assert store.get(blank_session, obj.id).counters == {"+1/+1": 2}

    def test_counter_type_required(self, handlers, store, blank_session):
        obj = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")
        with pytest.raises(InvalidMetadataError):
            run(handlers, "add_counter", blank_session, 1, {"objectId": obj.id})


class TestTokens:
    def test_copies_from_token_card_with_offsets(self, handlers, store, blank_session):
        run(handlers, "create_token_copy", blank_session, 1, {
            "tokenCardId": "token-soldier",
            "quantity": 3,
            "position": {"x": 10, "y": 10},
        })
        tokens = store.zone_contents(blank_session, 1, Zone.BATTLEFIELD)
        assert len(tokens) == 3
        assert all(t.is_token and t.card_id == "token-soldier" for t in tokens)
        positions = sorted((t.position["x"], t.position["y"]) for t in tokens)
        assert positions == [(10, 10), (15, 15), (20, 20)]

        run(handlers, "move_to_graveyard", blank_session, 1, {"objectId": tokens[0].id})
        assert len(store.zone_contents(blank_session, 1, Zone.BATTLEFIELD)) == 2
        assert store.zone_contents(blank_session, 1, Zone.GRAVEYARD) == []

    def test_copy_of_source_object(self, handlers, store, blank_session):
        source = store.create(blank_session, 2, Zone.BATTLEFIELD, "card-07")
        run(handlers, "create_token_copy", blank_session, 1, {"sourceObjectId": source.id})
        (copy,) = store.zone_contents(blank_session, 1, Zone.BATTLEFIELD)
        assert copy.card_id == "card-07"
        assert copy.is_token
        assert copy.seat == 1
        assert copy.position is None

    @pytest.mark.parametrize("zone", [Zone.HAND, Zone.LIBRARY, Zone.GRAVEYARD])
    def test_copy_needs_battlefield_source(self, handlers, store, blank_session, zone):
        hidden = store.create(blank_session, 2, zone, "card-09")
        with pytest.raises(InvalidStateError):
            run(handlers, "create_token_copy", blank_session, 1, {"sourceObjectId": hidden.id})
        assert store.zone_contents(blank_session, 1, Zone.BATTLEFIELD) == []

    def test_non_token_card_from_catalog(self, handlers, store, blank_session):
        run(handlers, "create_token_copy", blank_session, 1, {"tokenCardId": "card-03"})
        (copy,) = store.zone_contents(blank_session, 1, Zone.BATTLEFIELD)
        assert copy.card_id == "card-03"

    def test_requires_a_reference(self, handlers, blank_session):
        with pytest.raises(InvalidMetadataError):
            run(handlers, "create_token_copy", blank_session, 1, {"quantity": 2})

    def test_unknown_token_card(self, handlers, blank_session):
        with pytest.raises(NotFoundError):
            run(handlers, "create_token_copy", blank_session, 1, {"tokenCardId": "no-such-card"})

    def test_unknown_source_object(self, handlers, blank_session):
        with pytest.raises(NotFoundError):
            run(handlers, "create_token_copy", blank_session, 1, {"sourceObjectId": "ghost"})

    def test_remove_token(self, handlers, store, blank_session):
        token = store.create(blank_session, 1, Zone.BATTLEFIELD, "token-treasure", is_token=True)
        run(handlers, "remove_token", blank_session, 1, {"objectId": token.id})
        with pytest.raises(NotFoundError):
            store.get(blank_session, token.id)

    def test_remove_token_on_card(self, handlers, store, blank_session):
        card = store.create(blank_session, 1, Zone.BATTLEFIELD, "card-01")
        with pytest.raises(InvalidStateError):
            run(handlers, "remove_token", blank_session, 1, {"objectId": card.id})
        assert store.get(blank_session, card.id).zone == "battlefield"

    def test_remove_missing_token(self, handlers, blank_session):
        with pytest.raises(NotFoundError):
            run(handlers, "remove_token", blank_session, 1, {"objectId": "ghost"})


class TestIndicators:
    def test_create_move_delete(self, db, handlers, blank_session):
        repo = IndicatorRepository(db)
        run(handlers, "create_indicator", blank_session, 1, {"position": {"x": 1, "y": 2}, "color": "blue"})
        (indicator,) = repo.list_for_session(blank_session)
        assert indicator.seat == 1
        assert indicator.color == "blue"

        run(handlers, "move_indicator", blank_session, 1, {
            "indicatorId": indicator.id,
            "position": {"x": 9, "y": 9},
        })
        assert repo.get(indicator.id).position == {"x": 9, "y": 9}

        run(handlers, "delete_indicator", blank_session, 1, {"indicatorId": indicator.id})
        assert repo.list_for_session(blank_session) == []

    def test_default_color(self, db, handlers, blank_session):
        run(handlers, "create_indicator", blank_session, 2, {"position": {"x": 0, "y": 0}})
        (indicator,) = IndicatorRepository(db).list_for_session(blank_session)
        assert indicator.color == "red"

    def test_other_seat_cannot_move_or_delete(self, db, handlers, blank_session):
        repo = IndicatorRepository(db)
        indicator = repo.create(blank_session, 1, {"x": 1, "y": 1}, "red")

        with pytest.raises(NotFoundError):
            run(handlers, "move_indicator", blank_session, 2, {
                "indicatorId": indicator.id,
                "position": {"x": 5, "y": 5},
            })
        with pytest.raises(NotFoundError):
            run(handlers, "delete_indicator", blank_session, 2, {"indicatorId": indicator.id})

        assert repo.get(indicator.id).position == {"x": 1, "y": 1}


class TestEndTurn:
    def test_advances_and_returns_cascade(self, db, handlers, blank_session):
        cascade = run(handlers, "end_turn", blank_session, 1)

        state = GameStateRepository(db).get(blank_session)
        assert state.active_seat == 2
        assert state.turn_number == 2
        assert cascade == [
            PendingAction(ActionKind.UNTAP_ALL, 2, {}),
            PendingAction(ActionKind.DRAW, 2, {"count": 1}),
        ]

    def test_wraps_to_first_seat(self, db, handlers, blank_session):
        run(handlers, "end_turn", blank_session, 1)
        cascade = run(handlers, "end_turn", blank_session, 2)

        state = GameStateRepository(db).get(blank_session)
        assert state.active_seat == 1
        assert state.turn_number == 3
        assert all(step.seat == 1 for step in cascade)

    def test_lost_race(self, db, handlers, blank_session, monkeypatch):
        monkeypatch.setattr(GameStateRepository, "advance_turn", lambda *args: False)
        with pytest.raises(InvalidStateError):
            run(handlers, "end_turn", blank_session, 1)
