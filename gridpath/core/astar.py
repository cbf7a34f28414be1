# gridpath/core/astar.py
#!/usr/bin/env python3
"""
A* over an 8-connected grid — one expansion per step() for animation,
or find_path() to run the search to completion.

Movement:
- Orthogonal steps cost 1, diagonal steps cost sqrt(2).
- A diagonal step is only allowed when both orthogonal cells it passes
  between are walkable (no corner cutting).

Heuristic:
- Euclidean distance to the goal. Admissible and consistent for this cost
  metric, so the first time the goal is popped its path is optimal.

Tie-breaking in the PQ:
- (f, h, -g, seq, cell): lower f, then lower h, then deeper g, then FIFO by seq.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple, List, Optional, Iterable, FrozenSet
import heapq
import math
from math import inf

from gridpath.core.types import Cell, StepResult

SQRT2 = math.sqrt(2.0)

# fixed order keeps expansion (and therefore tie resolution) reproducible
DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (1, -1), (-1, 1), (-1, -1),
)


def step_cost(a: Cell, b: Cell) -> float:
    return SQRT2 if a[0] != b[0] and a[1] != b[1] else 1.0


def path_cost(path: List[Cell]) -> float:
    """Total movement cost along an ordered cell sequence."""
    return sum(step_cost(a, b) for a, b in zip(path, path[1:]))


@dataclass
class AStarAlgo:
    name: str = "A*"

    # Problem
    width: int = 0
    height: int = 0
    obstacles: FrozenSet[Cell] = frozenset()
    start: Optional[Cell] = None
    goal_cell: Optional[Cell] = None

    # Internal state
    open_pq: List[Tuple[float, float, float, int, Cell]] = field(default_factory=list)  # (f, h, -g, seq, cell)
    open_set: set = field(default_factory=set)         # for overlay
    closed_set: set = field(default_factory=set)
    g: Dict[Cell, float] = field(default_factory=dict)
    parent: Dict[Cell, Cell] = field(default_factory=dict)
    popped_count: int = 0
    done: bool = False
    no_path: bool = False
    seq: int = 0  # monotonic counter for PQ stability

    # -------------------- lifecycle --------------------

    def init(self, width: int, height: int, obstacles: Iterable[Cell], start: Cell, goal: Cell) -> None:
        """Initialize on a given grid."""
        self.width = width
        self.height = height
        self.obstacles = frozenset(obstacles)
        self.start = start
        self.goal_cell = goal
        self.reset()

    def reset(self) -> None:
        """Clear all state and seed with the start node."""
        if self.start is None or self.goal_cell is None:
            return
        self.open_pq.clear()
        self.open_set.clear()
        self.closed_set.clear()
        self.g.clear()
        self.parent.clear()
        self.popped_count = 0
        self.done = False
        self.no_path = False
        self.seq = 0

        s = self.start
        if not self._walkable(s) or not self._walkable(self.goal_cell):
            # endpoints sitting on obstacles (or off the grid) are never routable
            self.no_path = True
            return

        self.g[s] = 0.0
        h0 = self._h(s)
        heapq.heappush(self.open_pq, (h0, h0, -0.0, self._bump(), s))
        self.open_set.add(s)

    # -------------------- helpers --------------------

    def _bump(self) -> int:
        self.seq += 1
        return self.seq

    def _walkable(self, c: Cell) -> bool:
        x, y = c
        return 0 <= x < self.width and 0 <= y < self.height and c not in self.obstacles

    def _neighbors8(self, c: Cell) -> List[Cell]:
        """Return walkable 8-connected neighbors of c, without corner cutting."""
        x, y = c
        out: List[Cell] = []
        for dx, dy in DIRECTIONS:
            n = (x + dx, y + dy)
            if not self._walkable(n):
                continue
            if dx and dy and not (self._walkable((x + dx, y)) and self._walkable((x, y + dy))):
                continue
            out.append(n)
        return out

    def _h(self, c: Cell) -> float:
        (x, y) = c
        (gx, gy) = self.goal_cell
        return math.hypot(gx - x, gy - y)

    def _reconstruct_path(self, end: Cell) -> List[Cell]:
        path: List[Cell] = [end]
        cur = end
        while cur != self.start:
            cur = self.parent[cur]
            path.append(cur)
        path.reverse()
        return path

    # -------------------- main stepping logic --------------------

    def step(self) -> StepResult:
        """
        Run ONE A* expansion step:
          - Pop the lowest-f node.
          - If goal, reconstruct and finish.
          - Else relax neighbors with orthogonal cost 1 and diagonal cost sqrt(2).
        """
        if self.start is None or self.goal_cell is None:
            return StepResult(status="idle", metrics={"algo": self.name})

        if self.done:
            path = self._reconstruct_path(self.goal_cell)
            return StepResult(status="done", path=path, metrics=self._metrics(path_len=len(path)))

        if self.no_path:
            return StepResult(status="no_path", metrics=self._metrics())

        if not self.open_pq:
            self.no_path = True
            return StepResult(status="no_path", metrics=self._metrics())

        # Pop best (f, h, -g, seq, u)
        f_u, h_u, neg_g_u, _, u = heapq.heappop(self.open_pq)
        g_u = -neg_g_u

        # Ignore stale pops
        if u in self.closed_set or g_u != self.g.get(u, inf):
            return StepResult(status="running", current=u, metrics=self._metrics())

        # Finalize u
        self.popped_count += 1
        self.open_set.discard(u)
        self.closed_set.add(u)

        if u == self.goal_cell:
            self.done = True
            path = self._reconstruct_path(u)
            return StepResult(status="done", closed=[u], current=u, path=path,
                              metrics=self._metrics(path_len=len(path)))

        # Relax neighbors
        opened_now: List[Cell] = []
        for v in self._neighbors8(u):
            if v in self.closed_set:
                continue
            alt = g_u + step_cost(u, v)
            if alt < self.g.get(v, inf):
                self.g[v] = alt
                self.parent[v] = u
                h_v = self._h(v)
                heapq.heappush(self.open_pq, (alt + h_v, h_v, -alt, self._bump(), v))
                if v not in self.open_set:
                    self.open_set.add(v)
                    opened_now.append(v)

        return StepResult(status="running", opened=opened_now, closed=[u], current=u,
                          metrics=self._metrics())

    def run(self) -> List[Cell]:
        """Step until the search finishes; return the path or [] when unreachable."""
        while True:
            res = self.step()
            if res.status == "done":
                return res.path or []
            if res.status in ("no_path", "idle"):
                return []

    # -------------------- metrics --------------------

    def _metrics(self, path_len: int = 0) -> dict:
        return {
            "algo": self.name,
            "popped": self.popped_count,
            "open_size": len(self.open_set),
            "closed_count": len(self.closed_set),
            "path_len": path_len,
            "total_cost": self.g.get(self.goal_cell) if self.done else None,
        }


def find_path(start: Cell, end: Cell, width: int, height: int, obstacles: Iterable[Cell]) -> List[Cell]:
    """Shortest 8-connected path from start to end, inclusive; [] if none."""
    algo = AStarAlgo()
    algo.init(width, height, obstacles, start, end)
    return algo.run()
