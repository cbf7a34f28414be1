# gridpath/app/viewer.py
#!/usr/bin/env python3
"""
Grid Pathfinding Viewer — click to route, watch A* search

- Mouse (over the grid):
    [LEFT]        -> set start
    [RIGHT]       -> set end
    [MIDDLE]/[O]  -> toggle obstacle
- Keyboard:
    [B]/[C]/[S]   -> place box / cylinder / sphere on the hovered cell
    [U]           -> remove last placed object
    [P]           -> clear path (drops the end)
    [X]           -> clear all (keeps the start)
    [R]           -> random start
    [SPACE]       -> animate A* search / pause
    [N]           -> single search step
    [+]/[-]       -> steps/sec
    [1]/[2]/[3]   -> switch scenario
    [Q]/[ESC]     -> quit

Settings:
- ENV: GRIDPATH_SCENARIO=<key|path>, GRIDPATH_SEED=<int>, LOG_LEVEL=<level>
- CLI: --scenario=<key|path>, --seed=<int>
"""

import logging
import os
import random
import sys
import time
from pathlib import Path
from typing import List, Tuple, Optional, Dict, Sequence, Mapping

import pygame

from gridpath.core.astar import AStarAlgo
from gridpath.core.errors import GridError
from gridpath.core.footprint import BoxShape, DiscShape, PlacedObject
from gridpath.core.grid_state import GridSnapshot, GridState
from gridpath.core.scenario import load_scenario, scenario_files
from gridpath.core.types import Cell, TileStatus

log = logging.getLogger(__name__)

# ---------- Settings ----------
DEFAULT_SCENARIO = "01_open_field"


def _setting(env_name: str, flag: str, default: Optional[str],
             argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """CLI `--flag=value` wins over the environment variable, which wins over the default."""
    argv = sys.argv[1:] if argv is None else argv
    environ = os.environ if environ is None else environ
    value = environ.get(env_name, default)
    for arg in argv:
        if arg.startswith(f"--{flag}="):
            value = arg.split("=", 1)[1]
    return value


def resolve_scenario(argv=None, environ=None) -> str:
    return _setting("GRIDPATH_SCENARIO", "scenario", DEFAULT_SCENARIO, argv, environ)


def resolve_seed(argv=None, environ=None) -> Optional[int]:
    raw = _setting("GRIDPATH_SEED", "seed", None, argv, environ)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        log.warning("ignoring non-integer seed %r", raw)
        return None


def scenario_path(key: str, scenarios: Dict[str, Path]) -> Path:
    return scenarios[key] if key in scenarios else Path(key)


# ---------- Config ----------
PANEL_W = 360            # right band: metrics + buttons
GRID_MARGIN = 16
FONT_NAME = None  # default pygame font

# Colors
WHITE       = (255,255,255)
BLACK       = (  0,  0,  0)
GROUND      = (153,153,153)
START_RED   = (255, 85, 85)
END_YELLOW  = (255,221,  0)
OBSTACLE    = ( 68, 68, 68)
PATH_PINK   = (255,105,180)
OBJECT_EDGE = ( 30, 30, 30)
NEON_CYAN_A = (0,150,255,110)
NEON_MAG_A  = (255,0,120,90)

CARD_BG     = (24,28,36,220)
CARD_HI     = (255,255,255,18)
TEXT_LIGHT  = (230,235,240)
ACCENT_GOLD = (255,210,0)

TILE_COLORS = {
    TileStatus.DEFAULT:  GROUND,
    TileStatus.START:    START_RED,
    TileStatus.END:      END_YELLOW,
    TileStatus.PATH:     PATH_PINK,
    TileStatus.OBSTACLE: OBSTACLE,
}


# ---------- Pixel <-> cell ----------
def cell_at(pos: Tuple[int, int], origin: Tuple[int, int], cell_px: int, width: int, height: int) -> Optional[Cell]:
    """Grid cell under screen point `pos`, or None when outside the grid."""
    px, py = pos
    ox, oy = origin
    if px < ox or py < oy:
        return None
    col = (px - ox) // cell_px
    row = (py - oy) // cell_px
    if col >= width or row >= height:
        return None
    return (col, row)


def cell_center(c: Cell, origin: Tuple[int, int], cell_px: int) -> Tuple[int, int]:
    col, row = c
    ox, oy = origin
    return (ox + col*cell_px + cell_px//2, oy + row*cell_px + cell_px//2)


# ---------- Simple UI Button ----------
class UIButton:
    def __init__(self, label: str, rect: pygame.Rect, callback, *, togglable: bool = False):
        self.label = label
        self.rect = rect
        self.callback = callback
        self.hover = False
        self.togglable = togglable
        self.active = False  # highlight state

    def set_active(self, value: bool):
        self.active = bool(value)

    def draw(self, screen: pygame.Surface, font: pygame.font.Font):
        base = pygame.Surface(self.rect.size, pygame.SRCALPHA)
        bg_idle   = (36, 40, 48, 220)
        bg_hover  = (46, 50, 60, 230)
        bg_active = (58, 86, 160, 235)
        border_active = (120, 170, 255, 255)

        if self.active and self.togglable:
            bg = bg_active
        elif self.hover:
            bg = bg_hover
        else:
            bg = bg_idle
        pygame.draw.rect(base, bg, base.get_rect(), border_radius=10)
        screen.blit(base, self.rect.topleft)

        if self.active and self.togglable:
            pygame.draw.rect(screen, border_active, self.rect, width=2, border_radius=10)

        text = font.render(self.label, True, (235,238,242))
        screen.blit(text, text.get_rect(center=self.rect.center))

    def handle_mouse(self, event: pygame.event.Event) -> bool:
        if event.type == pygame.MOUSEMOTION:
            self.hover = self.rect.collidepoint(event.pos)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if self.rect.collidepoint(event.pos):
                self.callback()
                return True
        return False


# ---------- Viewer ----------
class Viewer:
    def __init__(self, state: GridState, scenarios: Dict[str, Path], scenario_key: str = "custom"):
        pygame.init()

        self.state = state
        self.scenarios = scenarios
        self.scenario_key = scenario_key
        self.snap: GridSnapshot = state.snapshot()
        self._unsubscribe = state.subscribe(self._on_state_change)

        self.font_small = pygame.font.Font(FONT_NAME, 14)
        self.font = pygame.font.Font(FONT_NAME, 18)
        self.font_big = pygame.font.Font(FONT_NAME, 22)

        win_w = 960
        win_h = 640
        self.screen = pygame.display.set_mode((win_w, win_h), pygame.RESIZABLE)
        pygame.display.set_caption(f"Grid Pathfinding — {scenario_key}")

        self._buttons: List[UIButton] = []
        self._placed: List[PlacedObject] = []
        self.hover_cell: Optional[Cell] = None

        # search animation
        self.algo = AStarAlgo()
        self.searching = False
        self.search_state = "Idle"
        self.open_set: set = set()
        self.closed_set: set = set()
        self.steps_per_sec = 20
        self._last_step_t = 0.0
        self._last_metrics: dict = {}

        self.clock = pygame.time.Clock()
        self._layout(win_w, win_h)

    # ---------- state sink ----------
    def _on_state_change(self, snap: GridSnapshot):
        self.snap = snap
        self._reset_search()

    # ---------- layout ----------
    def _layout(self, win_w: int, win_h: int):
        """Compute integer cell_px that fits window and center the grid."""
        cfg = self.snap.config
        avail_w = max(1, win_w - PANEL_W - 2 * GRID_MARGIN)
        avail_h = max(1, win_h - 2 * GRID_MARGIN)
        self.cell_px = int(max(4, min(avail_w // cfg.width, avail_h // cfg.height)))

        grid_plate_w = cfg.width * self.cell_px + 2 * GRID_MARGIN
        grid_plate_h = cfg.height * self.cell_px + 2 * GRID_MARGIN
        left_x = max(0, (win_w - PANEL_W - grid_plate_w) // 2)
        top_y = max(0, (win_h - grid_plate_h) // 2)

        self.canvas_rect = pygame.Rect(left_x, top_y, grid_plate_w, grid_plate_h)
        self._grid_origin = (self.canvas_rect.x + GRID_MARGIN, self.canvas_rect.y + GRID_MARGIN)
        self._right_band = pygame.Rect(max(self.canvas_rect.right, win_w - PANEL_W), 0, PANEL_W, win_h)

        self._build_buttons()

    def world_to_screen(self, x: float, z: float) -> Tuple[int, int]:
        cfg = self.snap.config
        ox, oy = self._grid_origin
        u = (x + cfg.extent_x / 2) / cfg.cell_size
        v = (z + cfg.extent_z / 2) / cfg.cell_size
        return (int(ox + u * self.cell_px), int(oy + v * self.cell_px))

    # ---------- main loop ----------
    def run(self):
        while True:
            self._handle_events()
            if self.searching:
                self._tick_search()
            self._draw()
            self.clock.tick(60)

    def _quit(self):
        self._unsubscribe()
        pygame.quit()
        sys.exit(0)

    def _handle_events(self):
        for e in pygame.event.get():
            if e.type == pygame.QUIT:
                self._quit()
            elif e.type == pygame.KEYDOWN:
                self._handle_key(e.key)
            elif e.type == pygame.VIDEORESIZE:
                w, h = max(640, e.w), max(480, e.h)
                self.screen = pygame.display.set_mode((w, h), pygame.RESIZABLE)
                self._layout(w, h)
            elif e.type == pygame.MOUSEMOTION:
                self.hover_cell = self._cell_under(e.pos)
                for b in self._buttons:
                    b.handle_mouse(e)
            elif e.type == pygame.MOUSEBUTTONDOWN:
                if any(b.handle_mouse(e) for b in self._buttons):
                    continue
                c = self._cell_under(e.pos)
                if c is None:
                    continue
                if e.button == 1:
                    self.state.set_start(*c)
                elif e.button == 3:
                    self.state.set_end(*c)
                elif e.button == 2:
                    self.state.toggle_obstacle(*c)

    def _handle_key(self, key: int):
        if key in (pygame.K_ESCAPE, pygame.K_q):
            self._quit()
        elif key == pygame.K_SPACE:
            self._toggle_search()
        elif key == pygame.K_n:
            self._step_search()
        elif key in (pygame.K_PLUS, pygame.K_EQUALS):
            self._bump_speed(+5)
        elif key in (pygame.K_MINUS, pygame.K_UNDERSCORE):
            self._bump_speed(-5)
        elif key == pygame.K_o and self.hover_cell:
            self.state.toggle_obstacle(*self.hover_cell)
        elif key == pygame.K_b:
            self._place("box")
        elif key == pygame.K_c:
            self._place("cylinder")
        elif key == pygame.K_s:
            self._place("sphere")
        elif key == pygame.K_u:
            self._remove_last_object()
        elif key == pygame.K_p:
            self.state.clear_path()
        elif key == pygame.K_x:
            self.state.clear_all()
        elif key == pygame.K_r:
            self.state.initialize_random_start()
        elif key in (pygame.K_1, pygame.K_2, pygame.K_3):
            keys = list(self.scenarios)
            idx = key - pygame.K_1
            if idx < len(keys):
                self._switch_scenario(keys[idx])

    def _cell_under(self, pos) -> Optional[Cell]:
        cfg = self.snap.config
        return cell_at(pos, self._grid_origin, self.cell_px, cfg.width, cfg.height)

    # ---------- objects ----------
    def _place(self, kind: str):
        if self.hover_cell is None:
            return
        cs = self.snap.config.cell_size
        position = self.state.grid_to_world_position(*self.hover_cell, height=0.5 * cs)
        if kind == "box":
            shape = BoxShape(cs)
        elif kind == "cylinder":
            shape = DiscShape(0.5 * cs)
        else:
            shape = DiscShape(0.4 * cs)
        obj = PlacedObject(position, shape, name=kind)
        self.state.add_custom_component(obj)
        self._placed.append(obj)

    def _remove_last_object(self):
        while self._placed:
            if self.state.remove_custom_component(self._placed.pop()):
                return

    # ---------- scenarios ----------
    def _switch_scenario(self, key: str):
        try:
            scenario = load_scenario(scenario_path(key, self.scenarios))
        except GridError as ex:
            print(f"Failed to load scenario {key}: {ex}")
            return
        self._placed.clear()
        with self.state.batch():
            self.state.reconfigure(scenario.config, random_start=False)
            scenario.apply(self.state)
        self._placed.extend(self.state.get_custom_objects())
        self.scenario_key = key
        pygame.display.set_caption(f"Grid Pathfinding — {key}")
        self._layout(*self.screen.get_size())

    # ---------- search animation ----------
    def _reset_search(self):
        self.searching = False
        self.search_state = "Idle"
        self.open_set.clear()
        self.closed_set.clear()
        self._last_metrics = {}
        self._refresh_active_states()

    def _begin_search(self) -> bool:
        snap = self.snap
        if snap.start is None or snap.end is None:
            self.search_state = "Need start + end"
            return False
        self.open_set.clear()
        self.closed_set.clear()
        cfg = snap.config
        self.algo.init(cfg.width, cfg.height, snap.obstacles, snap.start, snap.end)
        self.search_state = "Running"
        return True

    def _toggle_search(self):
        if self.searching:
            self.searching = False
            self.search_state = "Paused"
        elif self.search_state == "Paused" or self._begin_search():
            self.searching = True
            self.search_state = "Running"
        self._refresh_active_states()

    def _step_search(self):
        if self.search_state in ("Idle", "Done", "No path", "Need start + end") and not self._begin_search():
            return
        res = self.algo.step()
        for c in res.opened: self.open_set.add(c)
        for c in res.closed:
            self.closed_set.add(c)
            self.open_set.discard(c)
        if res.metrics:
            self._last_metrics = res.metrics
        if res.status == "done":
            self.search_state = "Done"; self.searching = False
        elif res.status == "no_path":
            self.search_state = "No path"; self.searching = False
        self._refresh_active_states()

    def _tick_search(self):
        t0 = time.time()
        if t0 - self._last_step_t >= 1.0 / max(1, self.steps_per_sec):
            self._last_step_t = t0
            self._step_search()

    def _bump_speed(self, dv: int):
        self.steps_per_sec = int(max(1, min(120, self.steps_per_sec + dv)))

    # ---------- drawing ----------
    def _draw(self):
        self._draw_backdrop()
        self._draw_grid()
        self._draw_metrics_and_buttons()
        pygame.display.flip()

    def _draw_backdrop(self):
        w, h = self.screen.get_size()
        top = (24, 26, 32); bot = (36, 40, 48)
        for y in range(h):
            t = y / max(1, h-1)
            c = (
                int(top[0] + (bot[0]-top[0]) * t),
                int(top[1] + (bot[1]-top[1]) * t),
                int(top[2] + (bot[2]-top[2]) * t),
            )
            pygame.draw.line(self.screen, c, (0, y), (w, y))

    def _draw_grid(self):
        cs = self.cell_px
        ox, oy = self._grid_origin
        cfg = self.snap.config

        for row in range(cfg.height):
            for col in range(cfg.width):
                rect = pygame.Rect(ox + col*cs, oy + row*cs, cs, cs)
                pygame.draw.rect(self.screen, TILE_COLORS[self.snap.status_at((col, row))], rect)
                pygame.draw.rect(self.screen, BLACK, rect, 1)

        # search overlays
        for cells, color in ((self.closed_set, NEON_MAG_A), (self.open_set, NEON_CYAN_A)):
            for (col, row) in cells:
                s = pygame.Surface((cs, cs), pygame.SRCALPHA); s.fill(color)
                self.screen.blit(s, (ox + col*cs, oy + row*cs))

        # placed objects (true shapes, over their sampled footprint)
        for obj in self.state.get_custom_objects():
            x, _, z = obj.position
            center = self.world_to_screen(x, z)
            shape = getattr(obj, "shape", None)
            if isinstance(shape, BoxShape):
                half = int(shape.half_extent / cfg.cell_size * cs)
                rect = pygame.Rect(center[0] - half, center[1] - half, 2 * half, 2 * half)
                pygame.draw.rect(self.screen, OBJECT_EDGE, rect, 2)
            elif isinstance(shape, DiscShape):
                r = max(2, int(shape.radius / cfg.cell_size * cs))
                pygame.draw.circle(self.screen, OBJECT_EDGE, center, r, 2)
            else:
                pygame.draw.circle(self.screen, OBJECT_EDGE, center, 3)

        # path line
        if len(self.snap.path) >= 2:
            pts = [cell_center(c, self._grid_origin, cs) for c in self.snap.path]
            glow = pygame.Surface(self.screen.get_size(), pygame.SRCALPHA)
            pygame.draw.lines(glow, (255, 105, 180, 70), False, pts, 7)
            self.screen.blit(glow, (0,0), special_flags=pygame.BLEND_ADD)
            pygame.draw.lines(self.screen, WHITE, False, pts, 3)

        if self.hover_cell is not None:
            col, row = self.hover_cell
            pygame.draw.rect(self.screen, (0, 170, 255), pygame.Rect(ox + col*cs, oy + row*cs, cs, cs), 2)

        for c, label in ((self.snap.start, "S"), (self.snap.end, "E")):
            if c is not None and cs >= 12:
                txt = self.font_small.render(label, True, BLACK)
                self.screen.blit(txt, txt.get_rect(center=cell_center(c, self._grid_origin, cs)))

    # ---------- buttons + metrics ----------
    def _build_buttons(self):
        self._buttons.clear()
        rb = self._right_band
        x = rb.x + 16
        y = rb.y + 290  # leaves space for metrics card above
        w = max(160, rb.width - 32)
        h = 32
        gap = 8

        def add(label, cb, *, togglable=False, store_as: Optional[str] = None):
            nonlocal y
            btn = UIButton(label, pygame.Rect(x, y, w, h), cb, togglable=togglable)
            self._buttons.append(btn)
            if store_as:
                setattr(self, store_as, btn)
            y += h + gap

        add("Search / Pause", self._toggle_search, togglable=True, store_as="btn_search")
        add("Step Once", self._step_search)
        add("Clear Path", self.state.clear_path)
        add("Clear All", self.state.clear_all)
        add("Random Start", self.state.initialize_random_start)
        add("Remove Last Object", self._remove_last_object)
        for i, key in enumerate(list(self.scenarios)[:3]):
            add(f"Map {i + 1}: {key}", lambda k=key: self._switch_scenario(k), togglable=True)

        self._refresh_active_states()

    def _refresh_active_states(self):
        if hasattr(self, "btn_search"):
            self.btn_search.set_active(self.searching)
        for b in self._buttons:
            if b.label.startswith("Map "):
                b.set_active(b.label.endswith(self.scenario_key))

    def _draw_metrics_and_buttons(self):
        rb = self._right_band

        card_h = 270
        card = pygame.Surface((rb.width - 20, card_h), pygame.SRCALPHA)
        pygame.draw.rect(card, CARD_BG, card.get_rect(), border_radius=14)
        hi = pygame.Surface((card.get_width(), 24), pygame.SRCALPHA)
        pygame.draw.rect(hi, CARD_HI, hi.get_rect(), border_radius=14)
        card.blit(hi, (0,0))
        self.screen.blit(card, (rb.x + 10, rb.y + 10))

        x0 = rb.x + 24
        y0 = rb.y + 18

        def line(text, big=False, color=TEXT_LIGHT):
            nonlocal y0
            f = self.font_big if big else self.font
            surf = f.render(text, True, color)
            self.screen.blit(surf, (x0, y0))
            y0 += surf.get_height() + 5

        snap = self.snap
        line("Grid", big=True, color=ACCENT_GOLD)
        line(f"Start: {snap.start if snap.start is not None else '-'}   End: {snap.end if snap.end is not None else '-'}")
        line(f"Obstacles: {len(snap.obstacles)}   Objects: {len(self.state.get_custom_objects())}")
        if snap.end is not None and not snap.path:
            line("Path: unreachable", color=START_RED)
        else:
            line(f"Path Len: {len(snap.path)}   Cost: {snap.path_cost:.2f}")
        line("-" * 30)

        m = self._last_metrics
        line(f"Search: {self.search_state}")
        line(f"Popped: {m.get('popped', 0)}   Open: {m.get('open_size', 0)}   Closed: {m.get('closed_count', 0)}")
        line(f"Speed: {self.steps_per_sec} steps/s")
        line(f"Scenario: {self.scenario_key}")

        for b in self._buttons:
            b.draw(self.screen, self.font_small)


# ---------- main ----------
def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    scenarios = scenario_files()
    key = resolve_scenario()
    try:
        scenario = load_scenario(scenario_path(key, scenarios))
    except GridError as ex:
        print(f"Failed to load scenario {key}: {ex}")
        sys.exit(1)
    state = scenario.build_state(rng=random.Random(resolve_seed()))
    Viewer(state, scenarios, scenario.name).run()


if __name__ == "__main__":
    main()
