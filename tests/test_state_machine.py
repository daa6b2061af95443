from dataclasses import replace

import pytest

from broadside import state_machine as sm
from broadside.errors import CorruptSessionError, IllegalActionError, ValidationError
from broadside.events import Category
from broadside.models import Player, SessionStatus

from conftest import STACKED_FLEET, play_to_win


def _reason(fn, *args, **kwargs) -> str:
    with pytest.raises(IllegalActionError) as exc_info:
        fn(*args, **kwargs)
    return exc_info.value.reason


# -------------------- pairing --------------------


def test_join_moves_to_placement(waiting_session, friend):
    t = sm.join(waiting_session, friend)
    assert t.session.status is SessionStatus.WAITING_FOR_BOAT_PLACEMENTS
    assert t.session.friend.id == friend.id
    assert not t.session.friend.is_owner
    assert [(e.category, e.type) for e in t.events] == [(Category.LOBBY, "joined")]


def test_third_player_cannot_join(paired_session):
    assert _reason(sm.join, paired_session, Player("carol-id", "carol")) == "session_full"


def test_owner_cannot_join_own_session(waiting_session, owner):
    assert _reason(sm.join, waiting_session, owner) == "already_joined"


# -------------------- placement --------------------


def test_cannot_place_before_opponent_joins(waiting_session, owner, fleet):
    assert _reason(sm.place_boats, waiting_session, owner.id, fleet) == "invalid_state"


def test_first_fleet_waits_for_second(paired_session, owner, fleet):
    t = sm.place_boats(paired_session, owner.id, fleet)
    assert t.session.status is SessionStatus.WAITING_FOR_BOAT_PLACEMENTS
    assert len(t.session.ships_of(owner.id)) == 5
    assert [e.type for e in t.events] == ["placed"]


def test_resubmission_replaces_fleet(paired_session, owner, fleet):
    s = sm.place_boats(paired_session, owner.id, fleet).session
    moved = [replace(p, start_y=p.start_y + 4) for p in fleet]
    s = sm.place_boats(s, owner.id, moved).session
    assert [ship.start_y for ship in s.ships_of(owner.id)] == [4, 5, 6, 7, 8]


def test_invalid_fleet_stores_nothing(paired_session, owner, fleet):
    with pytest.raises(ValidationError):
        sm.place_boats(paired_session, owner.id, fleet[:3])
    assert paired_session.ships_of(owner.id) == ()


def test_both_fleets_start_the_game(paired_session, owner, friend, fleet, rng):
    s = sm.place_boats(paired_session, owner.id, fleet, rng=rng).session
    t = sm.place_boats(s, friend.id, fleet, rng=rng)
    assert t.session.status is SessionStatus.PLAYING
    assert t.session.current_turn == owner.id
    assert [e.type for e in t.events] == ["placed", "start"]
    assert t.events[-1].payload == {"first_player_id": owner.id}


# -------------------- shooting --------------------


def test_only_current_player_may_shoot(playing_session, friend, clock):
    assert _reason(sm.fire_shot, playing_session, friend.id, 0, 0, clock=clock) == "not_your_turn"


def test_shot_off_board(playing_session, owner, clock):
    with pytest.raises(ValidationError) as exc_info:
        sm.fire_shot(playing_session, owner.id, 9, 0, clock=clock)
    assert exc_info.value.kind == "out_of_bounds"


def test_hit_keeps_turn(playing_session, owner, friend, clock):
    t = sm.fire_shot(playing_session, owner.id, 0, 0, clock=clock)
    assert t.session.current_turn == owner.id
    last = t.events[0].payload["last_shot"]
    assert last.shot.hit and not last.sunk_boat
    assert last.shot.target_id == friend.id
    assert last.shot.created_at == clock()


def test_miss_passes_turn(playing_session, owner, friend, clock):
    t = sm.fire_shot(playing_session, owner.id, 8, 8, clock=clock)
    assert t.session.current_turn == friend.id
    assert not t.session.shots[-1].hit


def test_sink_passes_turn(playing_session, owner, friend, clock):
    s = sm.fire_shot(playing_session, owner.id, 0, 4, clock=clock).session
    t = sm.fire_shot(s, owner.id, 1, 4, clock=clock)
    assert t.events[0].payload["last_shot"].sunk_boat
    assert t.session.current_turn == friend.id
    assert [ship.sunk for ship in t.session.ships_of(friend.id)] == [False, False, False, False, True]


def test_duplicate_shot_rejected(playing_session, owner, clock):
    s = sm.fire_shot(playing_session, owner.id, 0, 0, clock=clock).session
    assert _reason(sm.fire_shot, s, owner.id, 0, 0, clock=clock) == "duplicate_shot"


def test_both_players_may_target_the_same_coordinates(playing_session, owner, friend, clock):
    s = sm.fire_shot(playing_session, owner.id, 8, 8, clock=clock).session
    s = sm.fire_shot(s, friend.id, 8, 8, clock=clock).session
    assert len(s.shots) == 2


def test_full_game_ends_with_winner(playing_session, owner, friend, clock):
    t = play_to_win(playing_session, owner.id, clock)
    s = t.session
    assert s.status is SessionStatus.GAME_OVER
    assert s.winner == owner.id
    assert s.current_turn is None
    assert s.owner.wins == 1 and s.friend.wins == 0
    assert all(ship.sunk for ship in s.ships_of(friend.id))
    assert t.events[0].type == "end"
    assert t.events[0].payload["last_shot"].sunk_boat


def test_no_shots_after_game_over(playing_session, owner, friend, clock):
    s = play_to_win(playing_session, owner.id, clock).session
    assert _reason(sm.fire_shot, s, friend.id, 8, 8, clock=clock) == "invalid_state"


def test_friend_can_win(playing_session, friend, clock):
    s = play_to_win(playing_session, friend.id, clock).session
    assert s.winner == friend.id
    assert s.friend.wins == 1
    assert s.owner.is_owner and not s.friend.is_owner


# -------------------- rematch --------------------


def test_rematch_rejected_while_playing(playing_session, owner):
    assert _reason(sm.request_new_game, playing_session, owner.id) == "game_in_progress"


def test_rematch_is_owner_only(playing_session, friend, clock):
    s = play_to_win(playing_session, friend.id, clock).session
    assert _reason(sm.request_new_game, s, friend.id) == "not_owner"


def test_rematch_before_any_game(paired_session, owner):
    assert _reason(sm.request_new_game, paired_session, owner.id) == "invalid_state"


def test_rematch_clears_game_but_keeps_wins(playing_session, owner, friend, fleet, rng, clock):
    s = play_to_win(playing_session, owner.id, clock).session
    t = sm.request_new_game(s, owner.id)
    s = t.session
    assert s.status is SessionStatus.WAITING_FOR_BOAT_PLACEMENTS
    assert s.ships == {} and s.shots == ()
    assert s.current_turn is None and s.winner is None
    assert s.owner.wins == 1
    assert [(e.category, e.type) for e in t.events] == [(Category.SESSION, "new_game")]

    s = sm.place_boats(s, owner.id, fleet, rng=rng).session
    s = sm.place_boats(s, friend.id, fleet, rng=rng).session
    assert s.status is SessionStatus.PLAYING


# -------------------- leaving --------------------


def test_friend_leaving_resets_session(playing_session, owner, friend, clock):
    s = sm.fire_shot(playing_session, owner.id, 0, 0, clock=clock).session
    t = sm.leave(s, friend.id)
    s = t.session
    assert s.status is SessionStatus.WAITING_FOR_OPPONENT
    assert s.friend is None and s.owner.id == owner.id
    assert s.ships == {} and s.shots == ()
    assert t.events[0].payload == {"player_id": friend.id, "remaining_id": owner.id}


def test_owner_leaving_alone_discards(waiting_session, owner):
    t = sm.leave(waiting_session, owner.id)
    assert t.discarded
    assert t.events[0].type == "discarded"


def test_owner_leaving_promotes_friend(paired_session, owner, friend):
    s = sm.leave(paired_session, owner.id).session
    assert s.owner.id == friend.id and s.owner.is_owner
    assert s.friend is None
    assert s.status is SessionStatus.WAITING_FOR_OPPONENT


def test_stranger_cannot_leave(paired_session):
    assert _reason(sm.leave, paired_session, "nobody") == "not_in_session"


# -------------------- integrity --------------------


def test_consistent_sessions_pass(waiting_session, paired_session, playing_session, owner, clock):
    for s in (waiting_session, paired_session, playing_session, play_to_win(playing_session, owner.id, clock).session):
        sm.check_consistency(s)


@pytest.mark.parametrize(
    "changes",
    [
        {"current_turn": None},
        {"ships": {}},
        {"status": SessionStatus.GAME_OVER, "current_turn": None},
        {"friend": None},
        {"status": SessionStatus.WAITING_FOR_BOAT_PLACEMENTS},
    ],
)
def test_corrupt_sessions_detected(playing_session, changes):
    with pytest.raises(CorruptSessionError):
        sm.check_consistency(replace(playing_session, **changes))


def test_stacked_fleet_helper_matches_manifest():
    assert sum(p.length for p in STACKED_FLEET) == 17
