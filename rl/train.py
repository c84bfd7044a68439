"""
Train PPO or DQN agents on the invaders environment with Stable-Baselines3
"""

import os
import argparse
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from stable_baselines3 import PPO, DQN
from stable_baselines3.common.callbacks import CallbackList, CheckpointCallback, EvalCallback
from stable_baselines3.common.monitor import Monitor
from stable_baselines3.common.vec_env import DummyVecEnv, VecEnv, VecNormalize

from game.invaders import InvadersEnv
from rl.configs.invaders_config import (
    DQN_CONFIG, ENV_CONFIG, PPO_CONFIG, REWARD_CONFIGS, TRAINING_CONFIG, get_reward_config,
)
from rl.metrics_callback import EpisodeMetricsCallback


# DQN only handles a single Discrete action, PPO gets normalized observations
ALGORITHMS: Dict[str, Dict[str, Any]] = {
    "ppo": {"cls": PPO, "config": PPO_CONFIG, "flat_actions": False, "normalize": True, "n_envs": 4},
    "dqn": {"cls": DQN, "config": DQN_CONFIG, "flat_actions": True, "normalize": False, "n_envs": 1},
}


def get_algorithm(name: str) -> Dict[str, Any]:
    if name not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm: {name} (choose from {sorted(ALGORITHMS)})")
    return ALGORITHMS[name]


class FlatActionWrapper(gym.ActionWrapper):
    """
    Exposes the (move, shoot) MultiDiscrete action as one Discrete index,
    row-major: index = move * n_shoot + shoot.
    """

    def __init__(self, env: gym.Env):
        super().__init__(env)
        assert isinstance(env.action_space, spaces.MultiDiscrete), "Expected a MultiDiscrete action space."
        self.nvec = tuple(int(n) for n in env.action_space.nvec)
        self.action_space = spaces.Discrete(int(np.prod(self.nvec)))

    def action(self, action) -> np.ndarray:
        return np.array(np.unravel_index(int(action), self.nvec), dtype=np.int64)

    def encode(self, action: Sequence[int]) -> int:
        """Inverse of `action()`"""
        return int(np.ravel_multi_index(tuple(int(a) for a in action), self.nvec))


def make_env(
    seed: Optional[int] = None,
    flat_actions: bool = False,
    reward: str = "baseline",
    render_mode: Optional[str] = None,
    monitor: bool = True,
    **env_overrides,
) -> Callable[[], gym.Env]:
    """Thunk building one env, the form VecEnv constructors take"""
    env_kwargs = {**ENV_CONFIG, **env_overrides}
    reward_config = get_reward_config(reward)

    def _init() -> gym.Env:
        env: gym.Env = InvadersEnv(render_mode=render_mode, reward_config=reward_config, **env_kwargs)
        if flat_actions:
            env = FlatActionWrapper(env)
        if monitor:
            env = Monitor(env)
        env.reset(seed=seed)
        return env
    return _init


def build_vec_env(algo: str, n_envs: int = 1, seed: int = 0, reward: str = "baseline",
                  training: bool = True) -> VecEnv:
    algo_cfg = get_algorithm(algo)
    env: VecEnv = DummyVecEnv([
        make_env(seed=seed + i, flat_actions=algo_cfg["flat_actions"], reward=reward)
        for i in range(n_envs)
    ])
    if algo_cfg["normalize"]:
        env = VecNormalize(env, norm_obs=True, norm_reward=training, training=training)
    return env


def train(
    algo: str = "ppo",
    total_timesteps: Optional[int] = None,
    n_envs: Optional[int] = None,
    reward: str = "baseline",
    seed: int = 0,
):
    """Train one agent; returns the model and its episode summary"""
    algo_cfg = get_algorithm(algo)
    total_timesteps = total_timesteps or TRAINING_CONFIG["total_timesteps"]
    n_envs = n_envs or algo_cfg["n_envs"]

    save_dir = os.path.join(TRAINING_CONFIG["model_dir"], algo)
    log_dir = os.path.join(TRAINING_CONFIG["log_dir"], algo)
    os.makedirs(save_dir, exist_ok=True)

    print(f"\n[train] {algo.upper()}: {total_timesteps:,} timesteps, {n_envs} env(s), reward '{reward}'")

    env = build_vec_env(algo, n_envs, seed=seed, reward=reward)
    eval_env = build_vec_env(algo, 1, seed=seed + 1000, reward=reward, training=False)

    metrics = EpisodeMetricsCallback(log_dir, algo, verbose=1)
    callbacks = CallbackList([
        CheckpointCallback(
            save_freq=max(1, TRAINING_CONFIG["save_freq"] // n_envs),
            save_path=save_dir,
            name_prefix=f"{algo}_invaders",
        ),
        EvalCallback(
            eval_env,
            best_model_save_path=save_dir,
            log_path=log_dir,
            eval_freq=max(1, TRAINING_CONFIG["eval_freq"] // n_envs),
            deterministic=True,
        ),
        metrics,
    ])

    model = algo_cfg["cls"](
        env=env,
        seed=seed,
        tensorboard_log=os.path.join(TRAINING_CONFIG["tensorboard_log"], algo),
        **algo_cfg["config"],
    )
    model.learn(total_timesteps=total_timesteps, callback=callbacks)

    final_path = os.path.join(save_dir, f"{algo}_invaders_final")
    model.save(final_path)
    if isinstance(env, VecNormalize):
        env.save(os.path.join(save_dir, "vec_normalize.pkl"))
    env.close()
    eval_env.close()

    summary = metrics.summary()
    print(f"[train] {algo.upper()} saved to {final_path}")
    if summary:
        print(f"[train] {summary['episodes']} episodes, "
              f"reward {summary['mean_reward']:.2f} ± {summary['std_reward']:.2f}, "
              f"score {summary['mean_score']:.1f}, best wave {summary['max_wave']}")
    return model, summary


def main():
    parser = argparse.ArgumentParser(description="Train an RL agent on the invaders environment")
    parser.add_argument("--algo", type=str, default="ppo", choices=sorted(ALGORITHMS) + ["all"],
                        help="Algorithm to train (default: ppo)")
    parser.add_argument("--timesteps", type=int, default=None,
                        help=f"Total timesteps (default: {TRAINING_CONFIG['total_timesteps']:,})")
    parser.add_argument("--n-envs", type=int, default=None,
                        help="Parallel environments (default: 4 for PPO, 1 for DQN)")
    parser.add_argument("--reward", type=str, default="baseline", choices=sorted(REWARD_CONFIGS),
                        help="Reward shaping config (default: baseline)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    args = parser.parse_args()

    algos = sorted(ALGORITHMS) if args.algo == "all" else [args.algo]
    for algo in algos:
        train(algo, total_timesteps=args.timesteps, n_envs=args.n_envs, reward=args.reward, seed=args.seed)


if __name__ == "__main__":
    main()
