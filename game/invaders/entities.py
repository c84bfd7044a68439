"""
Game entity dataclasses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterator, List, Optional, Tuple

import numpy as np

from .utils import clamp, sign


class EntityKind(str, Enum):
    """Discriminant used by renderers to pick how an entity is drawn"""
    PLAYER = "player"
    ENEMY = "enemy"
    MISSILE = "missile"
    BARRICADE = "barricade"


@dataclass
class Body:
    """Axis-aligned box; y grows downwards like a canvas"""
    x: float
    y: float
    width: float
    height: float

    kind: ClassVar[EntityKind]

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


@dataclass
class Player(Body):
    """The user's ship, which moves left/right along the bottom of the field"""
    speed: float = 10.0
    field_width: float = 640.0
    invulnerable: bool = False
    visible: bool = True

    kind: ClassVar[EntityKind] = EntityKind.PLAYER

    def move(self, direction: float):
        """Move `direction * speed` px, keeping the whole ship on the field"""
        self.x = clamp(self.x + direction * self.speed, 0.0, self.field_width - self.width)

    def shoot(self, missiles: "MissileStore") -> "Missile":
        # Cooldown is the caller's business
        return missiles.spawn(self.center_x, self.y, direction=1)


@dataclass
class Enemy(Body):
    """Formation member; `direction` is +/-1 already scaled by the wave speed"""
    row: int = 0
    col: int = 0
    direction: float = -1.0
    field_width: float = 640.0

    kind: ClassVar[EntityKind] = EntityKind.ENEMY

    def update(self) -> bool:
        """True when touching a side of the field (formation must reverse)"""
        return self.x <= 0 or self.x + self.width >= self.field_width

    def advance(self, threshold: float, descent: float = 0.5) -> bool:
        """
        Reverse and step down by `descent` of own height.
        Returns True if the enemy has reached the player's line.
        """
        self.direction *= -1
        self.y += self.height * descent
        return self.y + self.height >= threshold

    def shoot(self, missiles: "MissileStore", rng: np.random.Generator, chance: float) -> Optional["Missile"]:
        """Roll for a shot; frontmost gating is done by the formation"""
        if rng.random() >= chance:
            return None
        return missiles.spawn(self.center_x, self.y + self.height, direction=-1)


@dataclass
class Missile(Body):
    """Projectile; d=+1 is player-fired (up), d=-1 enemy-fired (down)"""
    d: int = 1
    speed: float = 3.0

    kind: ClassVar[EntityKind] = EntityKind.MISSILE

    @property
    def from_player(self) -> bool:
        return self.d > 0

    def update(self, field_height: float) -> bool:
        """Move one tick; False once it has left the field"""
        self.y -= self.d * self.speed
        if self.d > 0:
            return self.y > -self.height
        return self.y < field_height


@dataclass
class Barricade(Body):
    """Destructible shield between the player and the formation"""
    max_health: float = 24.0
    health: float = 24.0
    destroyed: bool = False

    kind: ClassVar[EntityKind] = EntityKind.BARRICADE

    @property
    def damage_increment(self) -> float:
        return self.max_health / 3

    @property
    def tier(self) -> int:
        """Visual damage tier: 0 = intact .. 3 = gone"""
        if self.destroyed:
            return 3
        lost = self.max_health - self.health
        return min(3, int(lost // self.damage_increment))

    @property
    def display_health(self) -> float:
        return max(0.0, self.health)

    def lose_durability(self, amount: float):
        if self.destroyed:
            return
        self.health -= amount
        if self.health <= 0:
            self.destroyed = True

    def restore(self):
        self.health = self.max_health
        self.destroyed = False


@dataclass
class MissileStore:
    """
    Sparse missile arena. Removal nulls the slot so indices stay stable
    during a tick; empty slots are compacted on the next insertion.
    """
    speed: float = 3.0
    width: float = 4.0
    height: float = 24.0
    _slots: List[Optional[Missile]] = field(default_factory=list)

    def spawn(self, center_x: float, y: float, direction: int) -> Missile:
        missile = Missile(
            x=center_x - self.width / 2,
            y=y,
            width=self.width,
            height=self.height,
            d=sign(direction),
            speed=self.speed,
        )
        self.add(missile)
        return missile

    def add(self, missile: Missile) -> int:
        self._slots = [m for m in self._slots if m is not None]
        self._slots.append(missile)
        return len(self._slots) - 1

    def remove(self, index: int):
        self._slots[index] = None

    def get(self, index: int) -> Optional[Missile]:
        return self._slots[index]

    def items(self) -> Iterator[Tuple[int, Missile]]:
        """Live (index, missile) pairs; safe to remove while iterating"""
        for idx in range(len(self._slots)):
            missile = self._slots[idx]
            if missile is not None:
                yield idx, missile

    def clear(self):
        self._slots = []

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Missile]:
        return (m for _, m in self.items())

    def __len__(self) -> int:
        return sum(1 for m in self._slots if m is not None)
