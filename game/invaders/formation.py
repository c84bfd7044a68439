"""
Formation controller - the rows x cols enemy grid moving as one unit
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from .entities import Enemy


Grid = List[List[Optional[Enemy]]]


class Formation:
    """
    Owns the enemy grid. An empty slot (None) means the enemy there was
    destroyed; it stays empty until the next `populate()`.
    """

    def __init__(self, rows: int, cols: int, field_width: float, field_height: float,
                 box_fraction: float = 0.75):
        self.rows = rows
        self.cols = cols
        self.field_width = field_width
        self.field_height = field_height
        self.box_fraction = box_fraction
        self.grid: Grid = []
        self.kill_count = 0
        self.pending_descent = False

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def populate(self, speed: float):
        """Fill every slot with a fresh enemy moving left at `speed`"""
        box_width = self.field_width * self.box_fraction
        cell_w = box_width / self.cols
        cell_h = cell_w * 0.9
        padding = cell_w / 7
        offset_x = (self.field_width - box_width) / 2

        self.grid = [
            [
                Enemy(
                    x=offset_x + cell_w * j,
                    y=cell_h * (i + 1),
                    width=cell_w - padding,
                    height=cell_h - padding,
                    row=i,
                    col=j,
                    direction=-1.0 * speed,
                    field_width=self.field_width,
                )
                for j in range(self.cols)
            ]
            for i in range(self.rows)
        ]
        self.kill_count = 0
        self.pending_descent = False

    # ----------------------------
    # Queries
    # ----------------------------

    def live(self) -> Iterator[Enemy]:
        """Surviving enemies in row-major order"""
        for row in self.grid:
            for enemy in row:
                if enemy is not None:
                    yield enemy

    def is_alive(self, enemy: Enemy) -> bool:
        return self.grid[enemy.row][enemy.col] is enemy

    def is_frontmost(self, enemy: Enemy) -> bool:
        """True if no surviving enemy sits below this one in its column"""
        for i in range(self.rows - 1, -1, -1):
            if self.grid[i][enemy.col] is not None:
                return i == enemy.row
        return False

    @property
    def remaining(self) -> int:
        return sum(1 for _ in self.live())

    @property
    def cleared(self) -> bool:
        return self.remaining == 0

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(left, top, right, bottom) of the surviving enemies, None if empty"""
        enemies = list(self.live())
        if not enemies:
            return None
        return (
            min(e.x for e in enemies),
            min(e.y for e in enemies),
            max(e.x + e.width for e in enemies),
            max(e.y + e.height for e in enemies),
        )

    @property
    def direction(self) -> float:
        for enemy in self.live():
            return enemy.direction
        return 0.0

    # ----------------------------
    # Mutation
    # ----------------------------

    def move(self):
        """Physics: shift every live enemy by its direction"""
        for enemy in self.live():
            enemy.x += enemy.direction

    def destroy(self, enemy: Enemy):
        if not self.is_alive(enemy):
            raise ValueError(f"enemy at ({enemy.row}, {enemy.col}) already destroyed")
        self.grid[enemy.row][enemy.col] = None
        self.kill_count += 1

    def advance(self, threshold: float, descent: float = 0.5) -> bool:
        """
        Reverse and descend every live enemy. Returns True if any reached
        the player's line. Clears the pending flag.
        """
        self.pending_descent = False
        reached = False
        for enemy in self.live():
            if enemy.advance(threshold, descent):
                reached = True
        return reached
