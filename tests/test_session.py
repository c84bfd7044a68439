import dataclasses
import math
from collections import Counter

import pytest

from game.invaders import EntityKind, GameSettings, Phase


def _incoming(session):
    """Enemy missile that will overlap the ship after one update"""
    p = session.player
    return session.missiles.spawn(p.center_x, p.y - session.missiles.height + 5, direction=-1)


# ----------------------------
# Scoring and shooting
# ----------------------------

def test_single_shot_destroys_enemy_directly_above(make_session):
    session = make_session()
    target = session.formation.grid[4][5]
    assert target.x < session.player.center_x < target.x + target.width

    session.shoot()
    for _ in range(200):
        session.step()
        if session.kill_count:
            break

    assert session.formation.grid[4][5] is None
    assert session.kill_count == 1
    assert session.score == (5 - 4) * 1.0 * 10
    assert session.formation.remaining == 54
    assert len(session.missiles) == 0


def test_score_rewards_back_rows_and_speed(make_session):
    session = make_session()
    session.speed = 2.0
    enemy = session.formation.grid[0][3]
    session.missiles.spawn(enemy.center_x, enemy.y + enemy.height - 5 + 3, direction=1)
    session.step()
    assert session.formation.grid[0][3] is None
    assert session.score == 5 * 2 * 10


def test_shoot_respects_cooldown(make_session):
    session = make_session()
    for _ in range(20):
        session.shoot()
        session.step()
    assert session.shots_fired == 1

    session.shoot()
    session.step()
    assert session.shots_fired == 2


def test_move_intent_is_consumed_once(make_session):
    session = make_session()
    x0 = session.player.x
    session.move(1)
    session.step()
    session.step()
    assert session.player.x == pytest.approx(x0 + 10)

    session.move(-25)
    session.step()
    assert session.player.x == pytest.approx(x0)


def test_fired_missile_leaves_field_on_expected_tick(make_session):
    session = make_session(barricades=0)
    keep = session.formation.grid[0][0]
    for enemy in list(session.formation.live()):
        if enemy is not keep:
            session.formation.destroy(enemy)

    session.shoot()
    session.step()
    missile = next(iter(session.missiles))
    y0 = session.player.y
    expected = math.ceil((y0 + missile.height) / missile.speed)

    for _ in range(expected - 2):
        session.step()
    assert len(session.missiles) == 1

    session.step()
    assert len(session.missiles) == 0
    assert session.tick == expected


def test_enemy_at_edge_skips_collisions_that_tick(make_session):
    session = make_session()
    enemy = session.formation.grid[4][0]
    enemy.x = 0.0
    session.missiles.spawn(enemy.center_x, enemy.y + enemy.height - 5 + 3, direction=1)

    session.step()

    assert session.formation.grid[4][0] is enemy
    assert session.kill_count == 0
    assert len(session.missiles) == 1


def test_only_frontmost_enemies_fire(make_session):
    session = make_session(enemy_fire_chance=1.0)
    session.step()

    missiles = list(session.missiles)
    assert len(missiles) == 11
    assert all(m.d == -1 for m in missiles)
    front = sorted(round(e.center_x, 6) for e in session.formation.grid[4])
    assert sorted(round(m.center_x, 6) for m in missiles) == front

    session.formation.destroy(session.formation.grid[4][0])
    session.missiles.clear()
    session.step()
    assert len(session.missiles) == 11
    shooter = session.formation.grid[3][0]
    col0 = [m for m in session.missiles if m.center_x == pytest.approx(shooter.center_x)]
    assert len(col0) == 1
    assert col0[0].y == pytest.approx(shooter.y + shooter.height)


# ----------------------------
# Barricades
# ----------------------------

def test_ramming_is_checked_before_missile_hits(make_session):
    session = make_session()
    barricade = session.barricades[0]
    enemy = session.formation.grid[4][0]
    enemy.x = 60.0
    enemy.y = barricade.y - 20
    session.missiles.spawn(enemy.center_x, enemy.y + 5 + 3, direction=1)

    session.step()

    assert session.formation.grid[4][0] is None
    assert barricade.health == 24 - 8
    assert session.kill_count == 1
    assert session.score == 10
    # The player missile then ran into the barricade without hurting it
    assert len(session.missiles) == 0


def test_enemy_missile_chips_barricade(make_session):
    session = make_session()
    barricade = session.barricades[0]
    session.missiles.spawn(barricade.center_x, barricade.y - session.missiles.height + 5, direction=-1)

    session.step()

    assert barricade.health == 23
    assert len(session.missiles) == 0
    assert session.lives == 3


def test_player_missile_is_stopped_by_barricade_without_damage(make_session):
    session = make_session()
    barricade = session.barricades[0]
    session.missiles.spawn(barricade.center_x, barricade.y + barricade.height - 5 + 3, direction=1)

    session.step()

    assert barricade.health == 24
    assert len(session.missiles) == 0


def test_destroyed_barricade_no_longer_collides(make_session):
    session = make_session()
    barricade = session.barricades[0]
    barricade.lose_durability(100)
    session.missiles.spawn(barricade.center_x, barricade.y - session.missiles.height + 5, direction=-1)

    session.step()

    assert len(session.missiles) == 1
    assert barricade.health == 24 - 100


def test_enemy_missile_hits_player_before_barricade(make_session):
    session = make_session()
    p = session.player
    barricade = session.barricades[0]
    barricade.x, barricade.width = p.x, p.width
    barricade.y, barricade.height = p.y - 10, 30.0
    _incoming(session)

    session.step()

    assert session.lives == 2
    assert barricade.health == 24
    assert len(session.missiles) == 0


# ----------------------------
# Lives and invulnerability
# ----------------------------

def test_invulnerability_gates_lethality(make_session, events):
    session = make_session(invulnerability_ticks=5, barricades=0)
    session.add_listener(events)

    _incoming(session)
    session.step()
    assert session.lives == 2
    assert session.player.invulnerable

    for _ in range(4):
        _incoming(session)
        session.step()
        assert session.lives == 2
        assert len(session.missiles) == 0

    _incoming(session)
    session.step()
    assert session.lives == 1
    assert [e for e, _ in events.seen] == ["life_lost", "life_lost"]


def test_blinking_during_invulnerability(make_session):
    session = make_session(barricades=0)
    _incoming(session)
    session.step()
    assert not session.player.visible
    assert session.invulnerable_timer == 120
    assert EntityKind.PLAYER not in {e.kind for e in session.snapshot().entities()}

    session.step()
    assert session.invulnerable_timer == 119
    assert not session.player.visible

    for _ in range(10):
        session.step()
    assert session.invulnerable_timer == 109
    assert session.player.visible

    for _ in range(109):
        session.step()
    assert session.invulnerable_timer == 0
    assert not session.player.invulnerable
    assert session.player.visible


# ----------------------------
# Formation movement and terminal states
# ----------------------------

def test_edge_triggers_synchronized_descent(make_session):
    session = make_session()
    edge = session.formation.grid[0][0]
    edge.x = 0.5
    edge.direction = -1.0
    ys = {(e.row, e.col): e.y for e in session.formation.live()}

    session.step()

    assert session.phase is Phase.RUNNING
    assert edge.direction == 1.0
    for e in session.formation.live():
        assert e.y == pytest.approx(ys[(e.row, e.col)] + e.height / 2)


def test_losing_last_life_ends_game_once(make_session, events):
    session = make_session(lives=1, barricades=0)
    session.add_listener(events)

    _incoming(session)
    session.step()

    assert session.game_over
    assert session.reason == "destroyed"
    assert session.lives == 0
    assert events.seen == [("life_lost", 1), ("game_over", 1)]

    snap = session.snapshot()
    tick = session.tick
    session.move(1)
    session.shoot()
    session.quit()
    for _ in range(5):
        assert session.step() is snap
    assert session.tick == tick
    assert events.seen == [("life_lost", 1), ("game_over", 1)]


def test_formation_reaching_player_ends_game(make_session, events):
    session = make_session(barricades=0)
    session.add_listener(events)
    player = session.player
    for enemy in session.formation.live():
        enemy.y = player.y - enemy.height - 1
    edge = session.formation.grid[0][0]
    edge.x = 0.5
    edge.direction = -1.0

    session.step()

    assert session.game_over
    assert session.reason == "invaded"
    assert events.seen == [("game_over", 1)]
    tick = session.tick
    session.step()
    assert session.tick == tick


def test_wave_clear_progresses_once(make_session, events):
    session = make_session()
    session.add_listener(events)
    session.barricades[1].lose_durability(10)

    last = session.formation.grid[0][0]
    for enemy in list(session.formation.live()):
        if enemy is not last:
            session.formation.destroy(enemy)
    assert session.kill_count == 54
    session.missiles.spawn(last.center_x, last.y + last.height - 5 + 3, direction=1)

    session.step()

    assert events.seen == [("wave_cleared", 2)]
    assert session.wave == 2
    assert session.speed == pytest.approx(1.5)
    assert session.kill_count == 0
    assert session.formation.remaining == 55
    assert all(e.direction == pytest.approx(-1.5) for e in session.formation.live())
    assert all(b.health == 24 and not b.destroyed for b in session.barricades)
    assert session.score == 50
    assert session.lives == 3

    session.step()
    assert session.wave == 2
    assert len(events.seen) == 1


# ----------------------------
# Pause / quit / reset
# ----------------------------

def test_pause_halts_simulation(make_session):
    session = make_session()
    session.pause()
    assert session.snapshot().phase is Phase.PAUSED

    session.move(1)
    session.shoot()
    x0 = session.player.x
    session.step()
    assert session.tick == 0
    assert session.player.x == x0

    session.toggle_pause()
    assert session.running
    session.step()
    assert session.tick == 1
    assert session.player.x == x0
    assert session.shots_fired == 0


def test_quit_then_reset(make_session, events):
    session = make_session()
    session.add_listener(events)
    session.score = 120
    session.quit()
    session.quit()

    assert session.game_over
    assert session.reason == "quit"
    assert session.snapshot().phase is Phase.GAME_OVER
    assert events.seen == [("game_over", 1)]

    session.reset()
    assert session.running
    assert session.score == 0
    assert session.lives == 3
    assert session.wave == 1
    assert session.formation.remaining == 55
    assert session.reason is None


# ----------------------------
# Snapshots and reentrancy
# ----------------------------

def test_snapshot_is_a_frozen_copy(make_session):
    session = make_session()
    snap = session.snapshot()
    x0 = snap.player.x

    session.move(1)
    session.shoot()
    new = session.step()

    assert snap.player.x == x0
    assert new.player.x == pytest.approx(x0 + 10)
    assert new.missiles[0] is not next(iter(session.missiles))
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.score = 5


def test_snapshot_entities_are_tagged(make_session):
    snap = make_session().snapshot()
    kinds = Counter(e.kind for e in snap.entities())
    assert kinds == {
        EntityKind.BARRICADE: 4,
        EntityKind.ENEMY: 55,
        EntityKind.PLAYER: 1,
    }


def test_step_cannot_be_reentered(make_session):
    session = make_session()
    move = session.formation.move
    calls = []

    def _move_and_reenter():
        calls.append(1)
        move()
        if len(calls) == 1:
            session.step()

    session.formation.move = _move_and_reenter
    with pytest.raises(RuntimeError):
        session.step()
    session.step()
    assert session.tick == 2


def test_listeners_see_the_finished_step(make_session):
    session = make_session(barricades=0)
    seen = []

    def _listener(event, s):
        if event == "life_lost":
            snap = s.snapshot()
            seen.append((s.lives, s.player.invulnerable, snap.lives, snap.tick == s.tick))

    session.add_listener(_listener)
    _incoming(session)
    session.step()
    assert seen == [(2, True, 2, True)]


def test_failing_listener_does_not_half_apply_a_hit(make_session):
    session = make_session(barricades=0)

    def _listener(event, s):
        if event == "life_lost":
            raise RuntimeError("listener failed")

    session.add_listener(_listener)
    _incoming(session)
    with pytest.raises(RuntimeError):
        session.step()

    assert session.lives == 2
    assert session.player.invulnerable
    assert session.snapshot().lives == session.lives
    assert session.snapshot().tick == session.tick

    # Back-to-back hit lands inside the invulnerability window
    _incoming(session)
    session.step()
    assert session.lives == 2


def test_listener_may_step_after_the_event(make_session):
    session = make_session(barricades=0)

    def _listener(event, s):
        if event == "life_lost":
            s.step()

    session.add_listener(_listener)
    _incoming(session)
    session.step()

    assert session.tick == 2
    assert session.lives == 2
    assert session.player.invulnerable


def test_settings_validation():
    with pytest.raises(ValueError):
        GameSettings.from_dict({"rows": 5, "colums": 11})
    with pytest.raises(ValueError):
        GameSettings.from_dict({"rows": 0})
    with pytest.raises(ValueError):
        GameSettings.from_dict({"enemy_fire_chance": 1.5})
    assert GameSettings.from_dict({"rows": 3}).rows == 3
