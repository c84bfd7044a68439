"""
GameSession - owns every entity and runs the per-frame simulation step
----------------------------------------------------------------------
- One `step()` call == one animation tick; all timers count ticks
- Input handlers only record intents (move/shoot) or flip flags
  (pause/resume/quit); intents are consumed at the top of the next step
- Renderers read immutable `Snapshot`s, never the live entities
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .entities import Barricade, Body, Enemy, Missile, MissileStore, Player
from .formation import Formation
from .utils import overlaps, sign


class Phase(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    GAME_OVER = "game_over"


@dataclass
class GameSettings:
    """All gameplay constants in one place"""
    # Field
    width: float = 640.0
    height: float = 480.0

    # Formation
    rows: int = 5
    cols: int = 11
    initial_speed: float = 1.0
    speed_step: float = 0.5      # added to the speed multiplier every wave
    descent: float = 0.5         # fraction of enemy height per advance
    threshold_slack: float = 4.0  # px below the player's top edge
    enemy_fire_chance: float = 1 / 500

    # Player
    lives: int = 3
    player_speed: float = 10.0
    shoot_cooldown: int = 20
    invulnerability_ticks: int = 120
    blink_period: int = 10

    # Missiles
    missile_speed: float = 3.0
    missile_width: float = 4.0

    # Barricades
    barricades: int = 4
    barricade_health: float = 24.0
    ram_damage: float = 8.0
    missile_damage: float = 1.0

    # Scoring
    score_unit: int = 10

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown game settings: {sorted(unknown)}")
        settings = cls(**data)
        settings.validate()
        return settings

    def validate(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Field size must be positive, got {self.width}x{self.height}")
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError(f"Formation needs at least one slot, got {self.rows}x{self.cols}")
        if not 0.0 <= self.enemy_fire_chance <= 1.0:
            raise ValueError(f"enemy_fire_chance must be in [0, 1], got {self.enemy_fire_chance}")
        if self.lives <= 0:
            raise ValueError(f"lives must be positive, got {self.lives}")
        if self.missile_speed <= 0 or self.player_speed < 0:
            raise ValueError("Speeds must be positive")
        if self.shoot_cooldown < 0 or self.invulnerability_ticks < 0:
            raise ValueError("Tick counters cannot be negative")
        if self.blink_period <= 0:
            raise ValueError(f"blink_period must be positive, got {self.blink_period}")
        if self.barricades < 0:
            raise ValueError(f"barricades cannot be negative, got {self.barricades}")
        if self.barricade_health <= 0:
            raise ValueError(f"barricade_health must be positive, got {self.barricade_health}")


@dataclass(frozen=True)
class Snapshot:
    """Consistent copy of the session taken at a frame boundary"""
    tick: int
    phase: Phase
    score: int
    lives: int
    wave: int
    speed: float
    width: float
    height: float
    player: Player
    enemies: Tuple[Tuple[Optional[Enemy], ...], ...]
    missiles: Tuple[Missile, ...]
    barricades: Tuple[Barricade, ...]
    reason: Optional[str] = None

    def entities(self) -> Iterator[Body]:
        """Everything a renderer should draw, tagged by `kind`"""
        for barricade in self.barricades:
            if not barricade.destroyed:
                yield barricade
        for row in self.enemies:
            for enemy in row:
                if enemy is not None:
                    yield enemy
        yield from self.missiles
        if self.player.visible:
            yield self.player


Listener = Callable[[str, "GameSession"], None]


class GameSession:
    """Score, lives, wave speed and every entity for one game"""

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        self.settings = settings if settings is not None else GameSettings()
        self.settings.validate()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self._listeners: List[Listener] = []
        self._pending_events: List[str] = []
        self._stepping = False
        self.reset()

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def reset(self):
        """Start a brand new game with the same settings"""
        s = self.settings

        self.score = 0
        self.lives = s.lives
        self.speed = s.initial_speed
        self.wave = 1
        self.tick = 0
        self.total_kills = 0
        self.shots_fired = 0
        self.phase = Phase.RUNNING
        self.reason: Optional[str] = None

        self.invulnerable_timer = 0
        self.shoot_timer = s.shoot_cooldown  # first shot is available at once

        self._pending_events = []
        self._move_intent = 0
        self._shoot_intent = False

        self.player = self._make_player()
        self.missiles = MissileStore(
            speed=s.missile_speed,
            width=s.missile_width,
            height=self.player.height / 2,
        )
        self.formation = Formation(s.rows, s.cols, s.width, s.height)
        self.formation.populate(self.speed)
        self.barricades = self._make_barricades()

        self._snapshot = self._build_snapshot()

    def _make_player(self) -> Player:
        s = self.settings
        height = s.height / 10
        width = height * 1.1
        return Player(
            x=(s.width - width) / 2,
            y=s.height - height * 1.2,
            width=width,
            height=height,
            speed=s.player_speed,
            field_width=s.width,
        )

    def _make_barricades(self) -> List[Barricade]:
        s = self.settings
        if s.barricades == 0:
            return []
        width = s.width / 10
        height = s.height / 20
        slot = s.width / s.barricades
        y = self.player.y - height - self.player.height
        return [
            Barricade(
                x=slot * k + (slot - width) / 2,
                y=y,
                width=width,
                height=height,
                max_health=s.barricade_health,
                health=s.barricade_health,
            )
            for k in range(s.barricades)
        ]

    # ----------------------------
    # Listeners
    # ----------------------------

    def add_listener(self, callback: Listener):
        """
        callback(event, session) for "wave_cleared", "life_lost", "game_over".
        Events raised during a step are delivered after its snapshot is built.
        """
        self._listeners.append(callback)

    def _emit(self, event: str):
        self._pending_events.append(event)

    def _flush_events(self):
        """Deliver queued events; called once the snapshot is consistent"""
        events, self._pending_events = self._pending_events, []
        for event in events:
            for callback in list(self._listeners):
                callback(event, self)

    # ----------------------------
    # Input entry points
    # ----------------------------

    def move(self, direction: float):
        if self.phase is not Phase.RUNNING:
            return
        self._move_intent = sign(direction)

    def shoot(self):
        if self.phase is not Phase.RUNNING:
            return
        self._shoot_intent = True

    def pause(self):
        if self.phase is Phase.RUNNING:
            self.phase = Phase.PAUSED
            self._drop_intents()
            self._snapshot = self._build_snapshot()

    def resume(self):
        if self.phase is Phase.PAUSED:
            self.phase = Phase.RUNNING
            self._snapshot = self._build_snapshot()

    def toggle_pause(self):
        if self.phase is Phase.PAUSED:
            self.resume()
        else:
            self.pause()

    def quit(self):
        if self._end_game("quit"):
            self._snapshot = self._build_snapshot()
            self._flush_events()

    def _drop_intents(self):
        self._move_intent = 0
        self._shoot_intent = False

    # ----------------------------
    # Read-only accessors
    # ----------------------------

    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self.phase is Phase.RUNNING

    @property
    def game_over(self) -> bool:
        return self.phase is Phase.GAME_OVER

    @property
    def paused(self) -> bool:
        return self.phase is Phase.PAUSED

    @property
    def kill_count(self) -> int:
        return self.formation.kill_count

    @property
    def shot_ready(self) -> bool:
        return self.shoot_timer >= self.settings.shoot_cooldown

    # ----------------------------
    # Simulation step
    # ----------------------------

    def step(self) -> Snapshot:
        """Advance one tick and return the new snapshot"""
        if self._stepping:
            raise RuntimeError("GameSession.step() re-entered while a step is running")
        if self.phase is not Phase.RUNNING:
            self._drop_intents()
            return self._snapshot

        self._stepping = True
        try:
            self._advance()
        finally:
            self._stepping = False

        self._snapshot = self._build_snapshot()
        self._flush_events()
        return self._snapshot

    def _advance(self):
        s = self.settings
        self.tick += 1

        self._apply_intents()

        # Physics and timers
        self.formation.move()
        self.shoot_timer += 1
        self._tick_invulnerability()

        # Missiles in flight
        for idx, missile in self.missiles.items():
            if not missile.update(s.height):
                self.missiles.remove(idx)

        # Enemies: fire, edge check, ramming, player missiles
        for enemy in list(self.formation.live()):
            if self.formation.is_frontmost(enemy):
                enemy.shoot(self.missiles, self.rng, s.enemy_fire_chance)
            if enemy.update():
                self.formation.pending_descent = True
                continue
            if self._ram_barricades(enemy):
                continue
            self._hit_by_player_missile(enemy)

        # Remaining missiles against the player and the barricades
        self._resolve_missiles()
        if self.phase is Phase.GAME_OVER:
            return

        if self.formation.pending_descent:
            threshold = self.player.y + s.threshold_slack
            if self.formation.advance(threshold, s.descent):
                self._end_game("invaded")
                return

        if self.formation.cleared:
            self._next_wave()

    def _apply_intents(self):
        if self._move_intent:
            self.player.move(self._move_intent)
        if self._shoot_intent and self.shot_ready:
            self.shoot_timer = 0
            self.player.shoot(self.missiles)
            self.shots_fired += 1
        self._drop_intents()

    def _tick_invulnerability(self):
        if self.invulnerable_timer <= 0:
            return
        self.invulnerable_timer -= 1
        if self.invulnerable_timer == 0:
            self.player.invulnerable = False
            self.player.visible = True
        else:
            self.player.visible = (self.invulnerable_timer // self.settings.blink_period) % 2 == 0

    # ----------------------------
    # Collisions
    # ----------------------------

    def _ram_barricades(self, enemy: Enemy) -> bool:
        for barricade in self.barricades:
            if barricade.destroyed:
                continue
            if overlaps(enemy, barricade):
                barricade.lose_durability(self.settings.ram_damage)
                self._kill(enemy)
                return True
        return False

    def _hit_by_player_missile(self, enemy: Enemy) -> bool:
        for idx, missile in self.missiles.items():
            if not missile.from_player:
                continue
            if overlaps(missile, enemy):
                self.missiles.remove(idx)
                self._kill(enemy)
                return True
        return False

    def _resolve_missiles(self):
        s = self.settings
        for idx, missile in self.missiles.items():
            if missile.from_player:
                # Own shields stop outgoing shots without taking damage
                if self._barricade_hit(missile) is not None:
                    self.missiles.remove(idx)
                continue

            if overlaps(missile, self.player):
                self.missiles.remove(idx)
                self._hit_player()
                if self.phase is Phase.GAME_OVER:
                    return
                continue

            barricade = self._barricade_hit(missile)
            if barricade is not None:
                self.missiles.remove(idx)
                barricade.lose_durability(s.missile_damage)

    def _barricade_hit(self, missile: Missile) -> Optional[Barricade]:
        for barricade in self.barricades:
            if not barricade.destroyed and overlaps(missile, barricade):
                return barricade
        return None

    def _kill(self, enemy: Enemy):
        s = self.settings
        self.formation.destroy(enemy)
        self.total_kills += 1
        self.score += int(round((s.rows - enemy.row) * self.speed * s.score_unit))

    def _hit_player(self):
        if self.player.invulnerable:
            return
        self.lives -= 1
        self._emit("life_lost")
        if self.lives <= 0:
            self._end_game("destroyed")
            return
        self.invulnerable_timer = self.settings.invulnerability_ticks
        if self.invulnerable_timer > 0:
            self.player.invulnerable = True
            self.player.visible = False

    # ----------------------------
    # Progression / terminal
    # ----------------------------

    def _next_wave(self):
        self.speed += self.settings.speed_step
        self.wave += 1
        self.formation.populate(self.speed)
        for barricade in self.barricades:
            barricade.restore()
        self._emit("wave_cleared")

    def _end_game(self, reason: str) -> bool:
        """Flip to GameOver; returns False if the session already ended"""
        if self.phase is Phase.GAME_OVER:
            return False
        self.phase = Phase.GAME_OVER
        self.reason = reason
        self._drop_intents()
        self._emit("game_over")
        return True

    def _build_snapshot(self) -> Snapshot:
        return Snapshot(
            tick=self.tick,
            phase=self.phase,
            score=self.score,
            lives=self.lives,
            wave=self.wave,
            speed=self.speed,
            width=self.settings.width,
            height=self.settings.height,
            player=replace(self.player),
            enemies=tuple(
                tuple(replace(e) if e is not None else None for e in row)
                for row in self.formation.grid
            ),
            missiles=tuple(replace(m) for m in self.missiles),
            barricades=tuple(replace(b) for b in self.barricades),
            reason=self.reason,
        )
