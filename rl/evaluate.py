"""
Roll out a saved agent, or a random baseline, on the invaders environment
"""

import argparse
import time
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import gymnasium as gym

from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

from rl.train import ALGORITHMS, get_algorithm, make_env


Policy = Callable[[np.ndarray], Any]


def load_policy(model_path: str, algo: str = "ppo", vec_normalize_path: Optional[str] = None) -> Policy:
    """
    Deterministic policy from a saved model. When the model was trained on
    normalized observations, pass the saved VecNormalize stats so raw env
    observations are scaled the same way.
    """
    algo_cfg = get_algorithm(algo)
    model = algo_cfg["cls"].load(model_path)

    normalizer: Optional[VecNormalize] = None
    if vec_normalize_path:
        venv = DummyVecEnv([make_env(flat_actions=algo_cfg["flat_actions"], monitor=False)])
        normalizer = VecNormalize.load(vec_normalize_path, venv)
        normalizer.training = False

    def _policy(obs: np.ndarray):
        if normalizer is not None:
            obs = normalizer.normalize_obs(obs)
        action, _ = model.predict(obs, deterministic=True)
        return action

    return _policy


def random_policy(env: gym.Env) -> Policy:
    return lambda obs: env.action_space.sample()


def play_episodes(
    env: gym.Env,
    policy: Policy,
    n_episodes: int = 10,
    seed: Optional[int] = None,
    on_step: Optional[Callable[[gym.Env], None]] = None,
    verbose: int = 0,
) -> List[Dict[str, Any]]:
    """Run `n_episodes` to completion; one dict of totals per episode"""
    episodes = []
    for episode in range(n_episodes):
        obs, info = env.reset(seed=None if seed is None else seed + episode)
        total, steps, done = 0.0, 0, False

        while not done:
            obs, reward, terminated, truncated, info = env.step(policy(obs))
            total += float(reward)
            steps += 1
            done = terminated or truncated
            if on_step is not None:
                on_step(env)

        episodes.append({
            "reward": total,
            "length": steps,
            "score": info["score"],
            "kills": info["kills"],
            "wave": info["wave"],
            "reason": info["reason"] or "truncated",
        })
        if verbose > 0:
            print(f"Episode {episode + 1}/{n_episodes}: reward {total:.2f}, length {steps}, "
                  f"score {info['score']}, wave {info['wave']} ({episodes[-1]['reason']})")
    return episodes


def summarize(episodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    rewards = [e["reward"] for e in episodes]
    return {
        "episodes": len(episodes),
        "mean_reward": float(np.mean(rewards)),
        "std_reward": float(np.std(rewards)),
        "mean_length": float(np.mean([e["length"] for e in episodes])),
        "mean_score": float(np.mean([e["score"] for e in episodes])),
        "max_wave": int(max(e["wave"] for e in episodes)),
    }


def _print_summary(title: str, summary: Dict[str, Any]):
    print(f"\n{title} ({summary['episodes']} episodes)")
    print(f"  reward {summary['mean_reward']:.2f} ± {summary['std_reward']:.2f}")
    print(f"  score  {summary['mean_score']:.1f}, best wave {summary['max_wave']}")
    print(f"  length {summary['mean_length']:.1f}")


def _pump_window(env: gym.Env):
    # The env draws in step(); the window still needs its events and a flip
    window = env.unwrapped._window
    if window is not None:
        window.dispatch_events()
        window.flip()
        time.sleep(1 / 120)


def evaluate(
    model_path: str,
    algo: str = "ppo",
    n_episodes: int = 10,
    render: bool = True,
    seed: Optional[int] = 42,
    vec_normalize_path: Optional[str] = None,
    compare_random: bool = False,
) -> Dict[str, Any]:
    algo_cfg = get_algorithm(algo)
    policy = load_policy(model_path, algo, vec_normalize_path)

    env = make_env(flat_actions=algo_cfg["flat_actions"], render_mode="human" if render else None, monitor=False)()
    try:
        episodes = play_episodes(env, policy, n_episodes, seed=seed,
                                 on_step=_pump_window if render else None, verbose=1)
    finally:
        env.close()
    results = summarize(episodes)
    _print_summary(f"{algo.upper()} agent", results)

    if compare_random:
        baseline_env = make_env(monitor=False)()
        try:
            baseline = summarize(play_episodes(baseline_env, random_policy(baseline_env), n_episodes, seed=seed))
        finally:
            baseline_env.close()
        _print_summary("Random policy", baseline)
        results["random_mean_reward"] = baseline["mean_reward"]
        print(f"\nImprovement over random: {results['mean_reward'] - baseline['mean_reward']:.2f}")

    return results


def main():
    parser = argparse.ArgumentParser(description="Evaluate a trained agent on the invaders environment")
    parser.add_argument("model_path", type=str, help="Path to the saved model")
    parser.add_argument("--algo", type=str, default="ppo", choices=sorted(ALGORITHMS),
                        help="Algorithm the model was trained with (default: ppo)")
    parser.add_argument("--n-episodes", type=int, default=10, help="Episodes to run (default: 10)")
    parser.add_argument("--no-render", action="store_true", help="Run headless")
    parser.add_argument("--seed", type=int, default=42, help="Seed of the first episode (default: 42)")
    parser.add_argument("--vec-normalize", type=str, default=None,
                        help="VecNormalize stats saved next to a PPO model")
    parser.add_argument("--compare-random", action="store_true",
                        help="Also run a random policy for comparison")
    args = parser.parse_args()

    evaluate(
        args.model_path,
        algo=args.algo,
        n_episodes=args.n_episodes,
        render=not args.no_render,
        seed=args.seed,
        vec_normalize_path=args.vec_normalize,
        compare_random=args.compare_random,
    )


if __name__ == "__main__":
    main()
