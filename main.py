from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

try:
    import pygame  # type: ignore
except Exception:
    pygame = None

from config import (
    AUTO_ADVANCE_INTERVAL,
    BLOCKED,
    EVENT_LOG_LIMIT,
    FLOOR_VIEW_PX,
    GENERATOR,
    MAX_CELL_PX,
    PANEL_W,
    RULES_FILE,
    SAVE_FILE,
    WORKING,
)
from factory import State, apply_command, create_initial_state, load_state, save_state
from factory.commands import (
    AdvanceTick,
    BuildGenerator,
    BuildMachine,
    Command,
    ExpandFloor,
    ExpandStorage,
    ToggleResearch,
    command_from_dict,
)
from factory.engine import replay
from factory.events import describe_tick
from factory.handlers import storage_upgrade_cost
from factory.placement import next_expansion_chunk
from rules_catalog import Rules, load_rules

logger = logging.getLogger("replaceable_parts")


def load_script(path: Path) -> List[Command]:
    raw = json.loads(path.read_text())
    if not isinstance(raw, list):
        raise ValueError(f"{path}: command script must be a JSON list")
    return [command_from_dict(entry) for entry in raw]


def starting_state(rules: Rules, seed: Optional[int], load_save: bool) -> State:
    if load_save and SAVE_FILE.exists():
        return load_state(SAVE_FILE)
    return create_initial_state(rules, seed)


def research_status(state: State) -> str:
    cost = state.research.energy_cost
    if state.research.active:
        return f"Research ON (using {cost} energy)"
    return f"Research off (costs {cost} energy)"


def run_headless(
    rules: Rules,
    ticks: int,
    seed: Optional[int],
    load_save: bool,
    script: Optional[Path],
    save: bool,
) -> State:
    state = starting_state(rules, seed, load_save)

    if script is not None:
        state, rejected = replay(state, rules, load_script(script))
        for command, error in rejected:
            print(f"rejected {command.TAG}: {error}")

    for _ in range(ticks):
        previous = state
        state = apply_command(state, rules, AdvanceTick()).state
        for event in describe_tick(previous, state, rules):
            logger.debug("tick %d: %s", state.tick, event)

    if save:
        save_state(state, SAVE_FILE)

    stock = sum(state.inventory.values())
    print(
        f"headless_done tick={state.tick} seed={state.seed} credits={state.credits} "
        f"floor={state.floor_space.width}x{state.floor_space.height} "
        f"energy[{state.energy.consumed}/{state.energy.produced}] "
        f"inventory[items={len(state.inventory)},units={stock},cap={state.inventory_space}] "
        f"machines={len(state.machines)} generators={len(state.generators)} "
        f"recipes[discovered={len(state.discovered_recipes)},unlocked={len(state.unlocked_recipes)}]"
    )
    return state


class GameUI:
    def __init__(self, rules: Rules, state: State):
        if pygame is None:
            raise RuntimeError("pygame is required for graphical mode. Relaunch with --headless.")
        pygame.init()
        if not pygame.display.get_init():
            raise RuntimeError("Display subsystem is unavailable. Relaunch with --headless.")
        try:
            self.screen = pygame.display.set_mode((FLOOR_VIEW_PX + PANEL_W, FLOOR_VIEW_PX))
        except pygame.error as exc:
            raise RuntimeError(f"Could not open a window ({exc}). Relaunch with --headless.") from exc
        pygame.display.set_caption("Replaceable Parts")
        self.rules = rules
        self.state = state
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("arial", 20)
        self.small = pygame.font.SysFont("arial", 15)
        self.running = True
        self.auto_advance = False
        self.last_advance = time.monotonic()
        # None builds nothing, "machine" builds machines, a generator key builds that generator
        self.build_mode: Optional[str] = None
        self.log: List[str] = []
        self.error: str = ""

        self.palette = {
            "bg": (12, 15, 24),
            "floor": (40, 44, 58),
            "panel": (20, 25, 38),
            "grid_line": (38, 45, 62),
            "text": (230, 236, 248),
            "muted": (161, 177, 205),
            "error": (240, 110, 96),
            "machine_idle": (120, 128, 148),
            "machine_working": (230, 190, 102),
            "machine_blocked": (232, 102, 61),
            "generator": (98, 211, 222),
        }

    def dispatch(self, command: Command) -> None:
        previous = self.state
        result = apply_command(self.state, self.rules, command)
        if result.error:
            self.error = result.error
            return
        self.error = ""
        self.state = result.state
        if isinstance(command, AdvanceTick):
            for event in describe_tick(previous, self.state, self.rules):
                self.log.insert(0, f"[{self.state.tick}] {event}")
            del self.log[EVENT_LOG_LIMIT:]

    def cell_px(self) -> int:
        floor = self.state.floor_space
        return max(1, min(MAX_CELL_PX, FLOOR_VIEW_PX // max(floor.width, floor.height)))

    def cycle_generator_mode(self) -> None:
        keys = [g.key for g in self.rules.generator_types]
        if not keys:
            return
        if self.build_mode in keys:
            index = keys.index(self.build_mode) + 1
            self.build_mode = keys[index] if index < len(keys) else None
        else:
            self.build_mode = keys[0]

    def handle_input(self) -> None:
        for ev in pygame.event.get():
            if ev.type == pygame.QUIT:
                self.running = False
            if ev.type == pygame.KEYDOWN:
                if ev.key == pygame.K_SPACE:
                    self.dispatch(AdvanceTick())
                elif ev.key == pygame.K_a:
                    self.auto_advance = not self.auto_advance
                elif ev.key == pygame.K_m:
                    self.build_mode = None if self.build_mode == "machine" else "machine"
                elif ev.key == pygame.K_g:
                    self.cycle_generator_mode()
                elif ev.key == pygame.K_e:
                    self.dispatch(ExpandFloor())
                elif ev.key == pygame.K_i:
                    self.dispatch(ExpandStorage())
                elif ev.key == pygame.K_r:
                    self.dispatch(ToggleResearch(active=not self.state.research.active))
                elif ev.key == pygame.K_s:
                    save_state(self.state, SAVE_FILE)
                elif ev.key == pygame.K_l and SAVE_FILE.exists():
                    self.state = load_state(SAVE_FILE)
            if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1 and self.build_mode:
                mx, my = pygame.mouse.get_pos()
                cell = self.cell_px()
                gx, gy = mx // cell, my // cell
                if self.build_mode == "machine":
                    self.dispatch(BuildMachine(x=gx, y=gy))
                else:
                    self.dispatch(BuildGenerator(generator_type=self.build_mode, x=gx, y=gy))

    def _structure_color(self, structure_id: str, kind: str) -> Tuple[int, int, int]:
        if kind == GENERATOR:
            return self.palette["generator"]
        machine = self.state.find_machine(structure_id)
        if machine is None or not machine.enabled:
            return self.palette["machine_idle"]
        if machine.status == BLOCKED:
            return self.palette["machine_blocked"]
        if machine.status == WORKING:
            return self.palette["machine_working"]
        return self.palette["machine_idle"]

    def draw_floor(self) -> None:
        floor = self.state.floor_space
        cell = self.cell_px()
        pygame.draw.rect(self.screen, self.palette["floor"], (0, 0, floor.width * cell, floor.height * cell))
        for x in range(floor.width + 1):
            pygame.draw.line(self.screen, self.palette["grid_line"], (x * cell, 0), (x * cell, floor.height * cell), 1)
        for y in range(floor.height + 1):
            pygame.draw.line(self.screen, self.palette["grid_line"], (0, y * cell), (floor.width * cell, y * cell), 1)

        for placement in floor.placements:
            rect = pygame.Rect(
                placement.x * cell + 1, placement.y * cell + 1, placement.size * cell - 2, placement.size * cell - 2
            )
            color = self._structure_color(placement.structure_id, placement.kind)
            pygame.draw.rect(self.screen, color, rect, border_radius=6)
            pygame.draw.rect(self.screen, (255, 255, 255), rect, width=1, border_radius=6)

    def draw_panel(self) -> None:
        state = self.state
        left = FLOOR_VIEW_PX + 12
        pygame.draw.rect(self.screen, self.palette["panel"], (FLOOR_VIEW_PX, 0, PANEL_W, FLOOR_VIEW_PX))
        expansion = next_expansion_chunk(state.floor_space, self.rules)
        lines = [
            f"Tick {state.tick}   Credits {state.credits}",
            f"Energy {state.energy.consumed}/{state.energy.produced}   {research_status(state)}",
            f"Floor {state.floor_space.width}x{state.floor_space.height} "
            f"(E expand: {expansion.cost} cr)",
            f"Storage {state.inventory_space} (I upgrade: {storage_upgrade_cost(state, self.rules)} cr)",
            f"Build: {self.build_mode or '-'}   Auto: {'on' if self.auto_advance else 'off'}",
        ]
        y = 10
        for line in lines:
            self.screen.blit(self.font.render(line, True, self.palette["text"]), (left, y))
            y += 24
        if self.error:
            self.screen.blit(self.small.render(self.error, True, self.palette["error"]), (left, y))
        y += 24

        for item_id, quantity in state.inventory.items():
            text = f"{self.rules.display_name(item_id)}: {quantity}"
            self.screen.blit(self.small.render(text, True, self.palette["muted"]), (left, y))
            y += 18
        y += 8
        for entry in self.log[: max(0, (FLOOR_VIEW_PX - y) // 18 - 1)]:
            self.screen.blit(self.small.render(entry, True, (255, 236, 160)), (left, y))
            y += 18

        help_text = "SPACE tick  A auto  M machine  G gen  E floor  I storage  R research  S/L save/load"
        self.screen.blit(self.small.render(help_text, True, self.palette["muted"]), (left, FLOOR_VIEW_PX - 22))

    def draw(self) -> None:
        self.screen.fill(self.palette["bg"])
        self.draw_floor()
        self.draw_panel()
        pygame.display.flip()

    def run(self) -> None:
        while self.running:
            self.clock.tick(60)
            self.handle_input()
            now = time.monotonic()
            if self.auto_advance and now - self.last_advance >= AUTO_ADVANCE_INTERVAL:
                self.last_advance = now
                self.dispatch(AdvanceTick())
            self.draw()
        pygame.quit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Replaceable Parts factory simulation")
    parser.add_argument("--headless", action="store_true", help="run simulation without graphics")
    parser.add_argument("--ticks", type=int, default=100, help="headless ticks to run")
    parser.add_argument("--seed", type=int, default=None, help="seed for a new game")
    parser.add_argument("--script", type=Path, default=None, help="JSON list of commands to apply first")
    parser.add_argument("--rules", type=Path, default=RULES_FILE, help="JSON rules override")
    parser.add_argument("--load", action="store_true", help="resume from the save file")
    parser.add_argument("--save", action="store_true", help="write the save file after a headless run")
    parser.add_argument("--log-level", default="WARNING", help="logging level (DEBUG, INFO, ...)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    rules = load_rules(args.rules)

    if args.headless:
        try:
            run_headless(rules, args.ticks, args.seed, args.load, args.script, args.save)
        except (OSError, ValueError) as exc:
            print(f"Startup error: {exc}", file=sys.stderr)
            raise SystemExit(1) from exc
        return

    try:
        ui = GameUI(rules, starting_state(rules, args.seed, args.load))
    except (RuntimeError, OSError, ValueError) as exc:
        print(f"Startup error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    ui.run()


if __name__ == "__main__":
    main()
