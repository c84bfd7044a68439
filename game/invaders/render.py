"""
Arcade rendering for GameSession snapshots, plus the playable window
"""

from __future__ import annotations

from typing import Set

import arcade

from .entities import Body, EntityKind
from .session import GameSession, Phase, Snapshot


BG = (18, 18, 22)
PLAYER_C = (80, 200, 120)
MISSILE_C = {1: (120, 220, 120), -1: (240, 210, 80)}
HUD_C = (220, 220, 220)

# Classic three invader kinds: top row, middle rows, bottom rows
ENEMY_C = [(220, 80, 220), (80, 200, 220), (220, 80, 80)]

# Barricade tier 0 (intact) .. 2 (badly damaged)
BARRICADE_C = [(90, 200, 90), (170, 170, 70), (190, 90, 60)]


def enemy_kind(row: int) -> int:
    if row == 0:
        return 0
    if row < 3:
        return 1
    return 2


def entity_color(entity: Body):
    if entity.kind is EntityKind.ENEMY:
        return ENEMY_C[enemy_kind(entity.row)]
    if entity.kind is EntityKind.MISSILE:
        return MISSILE_C[entity.d]
    if entity.kind is EntityKind.BARRICADE:
        return BARRICADE_C[min(entity.tier, len(BARRICADE_C) - 1)]
    return PLAYER_C


def draw_snapshot(snapshot: Snapshot):
    """Draw a snapshot; game y grows downwards, arcade y grows upwards"""
    height = snapshot.height

    for entity in snapshot.entities():
        top = height - entity.y
        arcade.draw_lrbt_rectangle_filled(
            entity.x, entity.x + entity.width, top - entity.height, top, entity_color(entity)
        )

    txt = (f"Score: {snapshot.score}  "
           f"Lives: {snapshot.lives}  "
           f"Wave: {snapshot.wave}  "
           f"Speed: {snapshot.speed:.1f}")
    arcade.draw_text(txt, 12, height - 22, HUD_C, 14)

    if snapshot.phase is Phase.PAUSED:
        arcade.draw_text("PAUSED", snapshot.width / 2, height / 2, HUD_C, 30,
                         anchor_x="center")
    elif snapshot.phase is Phase.GAME_OVER:
        arcade.draw_lrbt_rectangle_filled(0, snapshot.width, 0, height, (60, 60, 60, 200))
        arcade.draw_text("Game Over", snapshot.width / 2, height / 2, HUD_C, 30,
                         anchor_x="center")
        arcade.draw_text("R: restart   Esc: close", snapshot.width / 2, height / 2 - 36,
                         HUD_C, 14, anchor_x="center")


class InvadersWindow(arcade.Window):
    """Arcade window showing a session; drawing only, no input"""

    def __init__(self, session: GameSession, title: str = "Invaders - Arcade"):
        s = session.settings
        super().__init__(int(s.width), int(s.height), title)
        self.session = session
        self.background_color = BG

    def on_draw(self):
        self.clear()
        draw_snapshot(self.session.snapshot())


class PlayWindow(InvadersWindow):
    """
    Human-playable window. Arcade's clock is the scheduler (one `step()`
    per update) and key events are turned into session intents.
    """

    def __init__(self, session: GameSession, fps: int = 60):
        super().__init__(session, title="Invaders")
        self.set_update_rate(1 / fps)
        self._held: Set[int] = set()

    def on_key_press(self, symbol: int, modifiers: int):
        if symbol in (arcade.key.LEFT, arcade.key.RIGHT, arcade.key.SPACE):
            self._held.add(symbol)
        elif symbol == arcade.key.P:
            self.session.toggle_pause()
        elif symbol == arcade.key.Q:
            self.session.quit()
        elif symbol == arcade.key.R and self.session.game_over:
            self.session.reset()
        elif symbol == arcade.key.ESCAPE:
            self.close()

    def on_key_release(self, symbol: int, modifiers: int):
        self._held.discard(symbol)

    def on_update(self, delta_time: float):
        # One tick per frame; delta_time unused
        if arcade.key.LEFT in self._held and arcade.key.RIGHT not in self._held:
            self.session.move(-1)
        elif arcade.key.RIGHT in self._held and arcade.key.LEFT not in self._held:
            self.session.move(1)
        if arcade.key.SPACE in self._held:
            self.session.shoot()
        self.session.step()
