from broadside import state_machine as sm
from broadside.projection import project, project_pair

from conftest import play_to_win


def test_no_projection_before_play(paired_session, owner):
    assert project(paired_session, owner.id) is None
    assert project_pair(paired_session) == {}


def test_turn_is_relative(playing_session, owner, friend):
    assert project(playing_session, owner.id)["turn"] == "player"
    assert project(playing_session, friend.id)["turn"] == "opponent"


def test_unsunk_enemy_ships_stay_hidden(playing_session, owner, friend, clock):
    # Sink the destroyer, wound the carrier
    s = playing_session
    for shooter, x, y in [(owner.id, 0, 4), (owner.id, 1, 4), (friend.id, 8, 8), (owner.id, 0, 0)]:
        s = sm.fire_shot(s, shooter, x, y, clock=clock).session

    view = project(s, owner.id)
    sunk = view["opponent"]["sunkBoats"]
    assert [b["id"] for b in sunk] == ["destroyer"]
    assert all(b["sunk"] for b in sunk)

    friend_view = project(s, friend.id)
    assert len(friend_view["player"]["boats"]) == 5
    assert friend_view["opponent"]["sunkBoats"] == []


def test_shots_are_split_by_direction(playing_session, owner, friend, clock):
    s = sm.fire_shot(playing_session, owner.id, 8, 8, clock=clock).session
    s = sm.fire_shot(s, friend.id, 0, 0, clock=clock).session

    owner_view = project(s, owner.id)
    assert [(sh["x"], sh["y"]) for sh in owner_view["player"]["shots"]] == [(8, 8)]
    assert [(sh["x"], sh["y"], sh["hit"]) for sh in owner_view["opponent"]["shotsAgainstPlayer"]] == [(0, 0, True)]


def test_shot_entries_never_name_a_ship(playing_session, owner, clock):
    t = sm.fire_shot(playing_session, owner.id, 0, 0, clock=clock)
    view = project(t.session, owner.id, t.events[0].payload["last_shot"])
    for shot in view["player"]["shots"] + [view["lastShot"]]:
        assert "shipId" not in shot and "boatId" not in shot
    assert view["lastShot"]["sunkBoat"] is False
    assert view["lastShot"]["shooterId"] == owner.id


def test_pair_views_differ(playing_session, owner, friend, clock):
    t = sm.fire_shot(playing_session, owner.id, 0, 0, clock=clock)
    views = project_pair(t.session, t.events[0].payload["last_shot"])
    assert set(views) == {owner.id, friend.id}
    assert views[owner.id] != views[friend.id]
    assert views[owner.id]["lastShot"] == views[friend.id]["lastShot"]


def test_game_over_view(playing_session, owner, friend, clock):
    s = play_to_win(playing_session, owner.id, clock).session
    owner_view, friend_view = project(s, owner.id), project(s, friend.id)
    assert owner_view["status"] == friend_view["status"] == "over"
    assert owner_view["winner"] == "player"
    assert friend_view["winner"] == "opponent"
    assert "turn" not in owner_view
    assert owner_view["player"]["wins"] == 1
    assert friend_view["opponent"]["wins"] == 1
    assert len(owner_view["opponent"]["sunkBoats"]) == 5
    assert owner_view["session"] == {"status": "game_over"}
