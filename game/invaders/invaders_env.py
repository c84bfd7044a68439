"""
InvadersEnv - the invaders simulation wrapped as an RL environment
-------------------------------------------------------------------
- GameSession does all the simulation; this module only adapts it
- Gymnasium API
- MultiDiscrete action space: [move(3), shoot(2)]
- Vector observation: player state + formation summary + alive mask
  + k nearest enemy missiles + barricade health
- Arcade rendering (imported lazily, only when a window is requested)

Quick test:
    python -m game.invaders.invaders_env
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from .session import GameSession, GameSettings
from .utils import clamp, seed_everything


DEFAULT_REWARD_CONFIG = {
    "R_SCORE": 0.01,   # per score point (kills are worth 10-50 x speed)
    "R_WAVE": 2.0,     # wave cleared
    "R_LIFE": 1.0,     # penalty per life lost
    "R_SHOT": 0.005,   # penalty per shot fired
    "R_TIME": 0.0005,  # per-tick cost
    "R_DEATH": 5.0,    # game over by losing
}

# move action -> session.move() direction
_MOVES = (0, -1, 1)


class InvadersEnv(gym.Env):
    """Space-invaders style arcade environment"""

    metadata = {"render_modes": ["human", "rgb_array"], "render_fps": 60}

    def __init__(
        self,
        render_mode: Optional[str] = None,
        obs_mode: str = "vector",
        max_steps: int = 20_000,
        k_missiles: int = 4,
        game_config: Optional[Dict[str, Any]] = None,
        reward_config: Optional[Dict[str, Any]] = None,
        verbose: int = 0,
    ):
        super().__init__()

        assert obs_mode in ("vector",), "Only 'vector' is implemented."
        assert render_mode is None or render_mode in self.metadata["render_modes"], \
            f"Unsupported render_mode: {render_mode}"
        self.render_mode = render_mode
        self.obs_mode = obs_mode
        self.max_steps = max_steps
        self.k_missiles = k_missiles
        self.verbose = verbose

        self.settings = GameSettings.from_dict(game_config or {})
        self.reward_config = dict(DEFAULT_REWARD_CONFIG)
        if reward_config:
            self.reward_config.update(reward_config)

        # move: 0 stay, 1 left, 2 right; shoot: 0/1
        self.action_space = spaces.MultiDiscrete([3, 2])

        # Player: x, shot ready, invulnerable, lives, speed (5)
        # Formation: left, right, bottom, direction (4) + alive mask (rows*cols)
        # Each enemy missile: rel pos (2)
        # Each barricade: health (1)
        s = self.settings
        obs_dim = 5 + 4 + (s.rows * s.cols) + (self.k_missiles * 2) + s.barricades
        self.observation_space = spaces.Box(
            low=-1.0, high=1.0, shape=(obs_dim,), dtype=np.float32
        )

        self._window = None

        self.session: GameSession = None  # type: ignore
        self._step_count = 0
        self._events: Dict[str, float] = {}

    # ----------------------------
    # Gym API
    # ----------------------------

    def reset(self, seed: Optional[int] = None, options: Optional[dict] = None):
        super().reset(seed=seed)
        seed_everything(seed)

        self._step_count = 0
        self.session = GameSession(self.settings, rng=self.np_random)
        self.session.add_listener(self._on_event)

        obs = self._get_obs()
        info = self._get_info()
        return obs, info

    def step(self, action):
        self._events = {"wave": 0.0, "life": 0.0}

        move, shoot = int(action[0]), int(action[1])
        session = self.session
        score_before = session.score
        shots_before = session.shots_fired

        if _MOVES[move]:
            session.move(_MOVES[move])
        if shoot:
            session.shoot()
        session.step()

        self._events["score"] = float(session.score - score_before)
        self._events["shot"] = float(session.shots_fired - shots_before)

        reward = self._compute_reward()

        terminated = session.game_over
        self._step_count += 1
        truncated = self._step_count >= self.max_steps

        obs = self._get_obs()
        info = self._get_info()

        if self.render_mode == "human":
            self.render()

        return obs, reward, terminated, truncated, info

    def _on_event(self, event: str, session: GameSession):
        if event == "wave_cleared":
            self._events["wave"] = self._events.get("wave", 0.0) + 1.0
            if self.verbose > 0:
                print(f"[InvadersEnv] Wave cleared -> wave {session.wave}, "
                      f"speed {session.speed:.1f}, score {session.score}")
        elif event == "life_lost":
            self._events["life"] = self._events.get("life", 0.0) + 1.0
        elif event == "game_over" and self.verbose > 0:
            print(f"[InvadersEnv] Game over ({session.reason}) at tick {session.tick}, "
                  f"score {session.score}, wave {session.wave}")

    # ----------------------------
    # Observation / reward / info
    # ----------------------------

    def _get_obs(self) -> np.ndarray:
        session = self.session
        s = self.settings
        player = session.player

        px = player.x / max(1e-6, s.width - player.width)
        obs_parts: List[float] = [
            px * 2 - 1,
            1.0 if session.shot_ready else -1.0,
            1.0 if player.invulnerable else -1.0,
            (session.lives / s.lives) * 2 - 1,
            clamp(session.speed / 5.0, 0, 1) * 2 - 1,
        ]

        # Formation summary
        bounds = session.formation.bounds()
        if bounds is None:
            obs_parts += [0.0, 0.0, 0.0, 0.0]
        else:
            left, _, right, bottom = bounds
            direction = session.formation.direction
            obs_parts += [
                clamp(left / s.width * 2 - 1, -1, 1),
                clamp(right / s.width * 2 - 1, -1, 1),
                clamp(bottom / s.height * 2 - 1, -1, 1),
                float(np.sign(direction)),
            ]

        # Alive mask, row-major
        for row in session.formation.grid:
            obs_parts += [1.0 if enemy is not None else 0.0 for enemy in row]

        # Enemy missiles: k nearest to the ship
        cx, cy = player.center_x, player.y
        incoming = sorted(
            (m for m in session.missiles if not m.from_player),
            key=lambda m: (m.center_x - cx) ** 2 + (m.y + m.height - cy) ** 2,
        )
        for i in range(self.k_missiles):
            if i < len(incoming):
                m = incoming[i]
                dx = (m.center_x - cx) / s.width
                dy = (m.y + m.height - cy) / s.height
                obs_parts += [clamp(dx, -1, 1), clamp(dy, -1, 1)]
            else:
                obs_parts += [0.0, 0.0]

        # Barricades
        for barricade in session.barricades:
            frac = barricade.display_health / barricade.max_health
            obs_parts.append(-1.0 if barricade.destroyed else frac * 2 - 1)

        obs = np.array(obs_parts, dtype=np.float32)
        return np.clip(obs, -1.0, 1.0)

    def _compute_reward(self) -> float:
        cfg = self.reward_config
        reward = 0.0

        reward += cfg["R_SCORE"] * self._events.get("score", 0.0)
        reward += cfg["R_WAVE"] * self._events.get("wave", 0.0)

        reward -= cfg["R_LIFE"] * self._events.get("life", 0.0)
        reward -= cfg["R_SHOT"] * self._events.get("shot", 0.0)
        reward -= cfg["R_TIME"]

        if self.session.game_over and self.session.reason != "quit":
            reward -= cfg["R_DEATH"]

        return float(reward)

    def _get_info(self) -> Dict[str, Any]:
        session = self.session
        return {
            "score": session.score,
            "lives": session.lives,
            "wave": session.wave,
            "kills": session.total_kills,
            "remaining_enemies": session.formation.remaining,
            "num_missiles": len(session.missiles),
            "shots_fired": session.shots_fired,
            "reason": session.reason,
            "step": self._step_count,
        }

    # ----------------------------
    # Rendering
    # ----------------------------

    def render(self):
        if self.render_mode is None:
            return None

        if self.render_mode == "human":
            if self._window is None:
                from .render import InvadersWindow
                self._window = InvadersWindow(self.session)
            self._window.session = self.session
            self._window.on_draw()
            return None

        # rgb_array: blank frame with the field's shape
        s = self.settings
        return np.zeros((int(s.height), int(s.width), 3), dtype=np.uint8)

    def close(self):
        if self._window is not None:
            self._window.close()
            self._window = None


# ----------------------------
# Quick sanity test
# ----------------------------

def run_random_episode(render: bool = True, seed: Optional[int] = 42):
    """Run a random episode for testing"""
    env = InvadersEnv(render_mode="human" if render else None, verbose=1)
    obs, info = env.reset(seed=seed)

    terminated = False
    truncated = False
    total = 0.0

    print("Running episode... close the window to exit early.")

    import time
    while not (terminated or truncated):
        action = env.action_space.sample()
        obs, reward, terminated, truncated, info = env.step(action)
        total += reward

        if render and env._window:
            env._window.dispatch_events()
            env._window.on_draw()
            env._window.flip()
            time.sleep(1 / 120)

    print(f"Random episode return: {total:.2f}  (score {info['score']}, wave {info['wave']})")
    env.close()


if __name__ == "__main__":
    run_random_episode(render=True)
