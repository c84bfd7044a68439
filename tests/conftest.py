import pytest

from game.invaders import GameSession, GameSettings


@pytest.fixture
def make_session():
    """Session factory: no enemy fire by default; `frozen` stops the formation"""
    def _make(frozen: bool = True, seed: int = 0, **overrides):
        overrides.setdefault("enemy_fire_chance", 0.0)
        session = GameSession(GameSettings(**overrides), seed=seed)
        if frozen:
            for enemy in session.formation.live():
                enemy.direction = 0.0
        return session
    return _make


@pytest.fixture
def events():
    """Collects (event, wave) tuples from a session listener"""
    seen = []

    def _listener(event, session):
        seen.append((event, session.wave))

    _listener.seen = seen
    return _listener
