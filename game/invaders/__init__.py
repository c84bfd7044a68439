"""Space-invaders style arcade simulation: entities, formation, session and gym env"""

from .entities import Barricade, EntityKind, Enemy, Missile, MissileStore, Player
from .formation import Formation
from .session import GameSession, GameSettings, Phase, Snapshot
from .utils import overlaps
from .invaders_env import InvadersEnv, run_random_episode

__all__ = [
    'Barricade', 'EntityKind', 'Enemy', 'Missile', 'MissileStore', 'Player',
    'Formation', 'GameSession', 'GameSettings', 'Phase', 'Snapshot',
    'overlaps', 'InvadersEnv', 'run_random_episode',
]
