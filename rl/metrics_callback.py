"""
Per-episode training metrics: one CSV row per finished episode, plus
scalars on the model's TensorBoard logger.
"""

import csv
import os
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from stable_baselines3.common.callbacks import BaseCallback


CSV_FIELDS = ("timestep", "episode", "reward", "length", "score", "kills", "wave", "lives", "reason")


def episode_row(info: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Metrics of a finished episode, None unless Monitor stamped `info` with its totals"""
    if "episode" not in info:
        return None
    return {
        "reward": float(info["episode"]["r"]),
        "length": int(info["episode"]["l"]),
        "score": info.get("score", 0),
        "kills": info.get("kills", 0),
        "wave": info.get("wave", 1),
        "lives": info.get("lives", 0),
        # Time-limit truncation ends the episode without a game-over reason
        "reason": info.get("reason") or "truncated",
    }


class EpisodeMetricsCallback(BaseCallback):
    """
    Collects finished episodes from the vec env infos.

    Rows go to `<log_dir>/<algo_name>_metrics.csv`; reward, length, score
    and wave are also recorded under `invaders/` for TensorBoard.
    """

    def __init__(self, log_dir: str, algo_name: str, verbose: int = 1, print_every: int = 10):
        super().__init__(verbose)
        self.log_dir = log_dir
        self.algo_name = algo_name
        self.print_every = print_every
        self.csv_path = os.path.join(log_dir, f"{algo_name}_metrics.csv")

        self.episodes: List[Dict[str, Any]] = []
        self._csv_file = None
        self._writer: Optional[csv.DictWriter] = None

    # ----------------------------
    # CSV file
    # ----------------------------

    def open(self):
        os.makedirs(self.log_dir, exist_ok=True)
        self._csv_file = open(self.csv_path, "w", newline="")
        self._writer = csv.DictWriter(self._csv_file, fieldnames=CSV_FIELDS)
        self._writer.writeheader()
        self._csv_file.flush()
        if self.verbose > 0:
            print(f"[{self.algo_name}] Logging episodes to {self.csv_path}")

    def close(self):
        if self._csv_file is None:
            return
        self._csv_file.close()
        self._csv_file = None
        self._writer = None
        if self.verbose > 0:
            print(f"[{self.algo_name}] Saved {len(self.episodes)} episodes to {self.csv_path}")

    # ----------------------------
    # Collection
    # ----------------------------

    def collect(self, infos: Sequence[Dict[str, Any]], dones: Sequence[bool]) -> int:
        """Record every finished episode in one vec env step; returns how many"""
        recorded = 0
        for info, done in zip(infos, dones):
            if not done:
                continue
            row = episode_row(info)
            if row is None:
                continue
            self._record(row)
            recorded += 1
        return recorded

    def _record(self, row: Dict[str, Any]):
        row = {"timestep": self.num_timesteps, "episode": len(self.episodes) + 1, **row}
        self.episodes.append(row)

        if self._writer is not None:
            self._writer.writerow(row)
            self._csv_file.flush()

        # The logger belongs to the model, which only exists during learn()
        if getattr(self, "model", None) is not None:
            for key in ("reward", "length", "score", "wave"):
                self.logger.record(f"invaders/episode_{key}", row[key])

        if self.verbose > 0 and row["episode"] % self.print_every == 0:
            recent = self.episodes[-self.print_every:]
            print(f"[{self.algo_name}] Episode {row['episode']}, Timestep {self.num_timesteps}, "
                  f"Avg Reward: {np.mean([e['reward'] for e in recent]):.2f}, "
                  f"Avg Score: {np.mean([e['score'] for e in recent]):.1f}")

    def summary(self) -> Dict[str, Any]:
        if not self.episodes:
            return {}
        return {
            "episodes": len(self.episodes),
            "mean_reward": float(np.mean([e["reward"] for e in self.episodes])),
            "std_reward": float(np.std([e["reward"] for e in self.episodes])),
            "mean_length": float(np.mean([e["length"] for e in self.episodes])),
            "mean_score": float(np.mean([e["score"] for e in self.episodes])),
            "mean_kills": float(np.mean([e["kills"] for e in self.episodes])),
            "max_wave": int(max(e["wave"] for e in self.episodes)),
        }

    # ----------------------------
    # BaseCallback hooks
    # ----------------------------

    def _on_training_start(self) -> None:
        self.open()

    def _on_step(self) -> bool:
        self.collect(self.locals.get("infos", []), self.locals.get("dones", []))
        return True

    def _on_training_end(self) -> None:
        self.close()
