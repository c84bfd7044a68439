"""
Play the invaders game with the keyboard.

    python -m game.invaders.play [--rows 5] [--cols 11] [--barricades 4] [--seed 42]

Controls: LEFT/RIGHT move, SPACE fire, P pause, Q give up, R restart, ESC close.
"""

import argparse

import arcade

from .render import PlayWindow
from .session import GameSession, GameSettings


def main():
    parser = argparse.ArgumentParser(description="Play invaders")
    parser.add_argument("--rows", type=int, default=5, help="Formation rows (default: 5)")
    parser.add_argument("--cols", type=int, default=11, help="Formation columns (default: 11)")
    parser.add_argument("--barricades", type=int, default=4, help="Number of barricades (default: 4)")
    parser.add_argument("--lives", type=int, default=3, help="Starting lives (default: 3)")
    parser.add_argument("--fps", type=int, default=60, help="Simulation ticks per second (default: 60)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for enemy fire")

    args = parser.parse_args()

    settings = GameSettings(
        rows=args.rows,
        cols=args.cols,
        barricades=args.barricades,
        lives=args.lives,
    )
    session = GameSession(settings, seed=args.seed)
    session.add_listener(_report)

    PlayWindow(session, fps=args.fps)
    arcade.run()


def _report(event: str, session: GameSession):
    if event == "wave_cleared":
        print(f"Wave {session.wave - 1} cleared! Speed is now {session.speed:.1f}")
    elif event == "game_over":
        print(f"Game over ({session.reason}). Final score: {session.score}, wave {session.wave}")


if __name__ == "__main__":
    main()
