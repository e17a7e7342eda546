"""Tasking model: gather blocks, deliver them to constructors and submit.

Workers alternate between gathering (request a block at a dispenser, attach
it) and delivering (join the block to a constructor cell, then detach).
Diggers clear obstacles inside their flock. Constructors clear, attach or
connect delivered blocks, and submit once every required cell is filled.

Constraint families are built in stages (main, action and derived
variables, then position, movement, clearing, attachment, constructor,
dispenser and attached-block constraints), followed by a tiered objective.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Iterable
from dataclasses import replace

import networkx as nx
from ortools.sat.python import cp_model

from joint_planner.config.constants import MAX_AMOUNT, MIN_HORIZON
from joint_planner.domain.actions import (
    SKIP,
    SUBMIT,
    AgentAction,
    Attach,
    Clear,
    Connect,
    Detach,
    Move,
    Request,
    Rotate,
)
from joint_planner.domain.geometry import (
    Direction,
    Position,
    Rotation,
    add_bounded,
    distance_bounded,
    neighbours_at_most,
    neighbours_exactly,
    sub_bounded,
    sub_closest,
)
from joint_planner.domain.snapshot import (
    CellType,
    Constructor,
    Digger,
    Dispenser,
    TaskingSnapshot,
    Worker,
    WorkerStatus,
)
from joint_planner.errors import DecodeError
from joint_planner.planning.distances import (
    build_grid_graph,
    distances_to_cells,
    integer_distances,
    problem_cells,
)
from joint_planner.planning.literals import (
    Literal,
    add_and_equality,
    add_at_most_one_if_many,
    add_exactly_one,
    add_or_and_equality_at_most_one,
    add_or_and_equality_exactly_one,
    add_or_and_implication_at_most_one,
    add_or_equality,
    add_or_implication,
    add_or_or_and_or_implication_at_most_one,
    forbid,
    new_true_literal,
)
from joint_planner.planning.objective import TieredObjective
from joint_planner.planning.timeline import (
    AgentDirTime,
    AgentRotTime,
    AgentSubTime,
    AgentTime,
    CellAgentSubTime,
    CellAgentTime,
    CellConstrTime,
    CellTime,
    ConstrTime,
    ReachabilityIndex,
    Timeline,
    clear_units,
)

logger = logging.getLogger(__name__)

TIERS = (
    "idle",
    "constructor_clearing",
    "gatherer_distance",
    "gatherer_progress",
    "gatherer_loaded",
    "deliverer_distance",
    "deliverer_empty_sides",
    "deliverer_unloaded",
    "deliverer_handover",
    "digger_outside_flock",
    "digger_distance",
    "digger_inside_flock",
    "submission",
)
"""Objective tiers, lowest priority first."""

WORKER_FACTOR_EXPONENT = 6
"""Worker distance tiers are scaled by ``horizon ** WORKER_FACTOR_EXPONENT``."""


def _first_tick(distance: int, step_dist: int) -> int | None:
    """Earliest tick at which an agent ``distance`` cells away can act on a cell."""
    gap = max(distance - 1, 0)
    if gap == 0:
        return 1
    if step_dist == 0:
        return None
    return -(-gap // step_dist) + 1


def _is_set(solver: cp_model.CpSolver, literal: Literal | None) -> bool:
    return literal is not None and solver.BooleanValue(literal)


class TaskingProblem:
    """CP-SAT model of one knowledge group's construction tick."""

    def __init__(
        self, snapshot: TaskingSnapshot, horizon: int, max_amount: int = MAX_AMOUNT
    ) -> None:
        snapshot.validate()
        self.snapshot = snapshot
        self.timeline = Timeline(max(horizon, MIN_HORIZON))
        self.max_amount = max_amount
        self.model = cp_model.CpModel()
        self._true = new_true_literal(self.model)

        self._index_snapshot()

        # Main variables
        self.on_vars: dict[CellAgentSubTime, Literal] = {}
        self.on_cells: dict[AgentSubTime, list[Position]] = {}
        self.free_block_vars: dict[CellTime, Literal] = {}
        self.attached_dir_vars: dict[AgentDirTime, Literal] = {}
        self.constructor_block_vars: dict[CellConstrTime, Literal] = {}

        # Actions
        self.move_clear_vars: dict[CellAgentTime, Literal] = {}
        self.constructor_clear_vars: dict[CellConstrTime, Literal] = {}
        self.request_vars: dict[CellAgentTime, Literal] = {}
        self.attach_vars: dict[AgentDirTime, Literal] = {}
        self.join_vars: dict[AgentDirTime, Literal] = {}
        self.detach_vars: dict[AgentDirTime, Literal] = {}
        self.rotate_vars: dict[AgentRotTime, Literal] = {}
        self.submit_vars: dict[ConstrTime, Literal] = {}

        # Derived
        self.move_vars: dict[AgentSubTime, Literal] = {}
        self.clear_any_vars: dict[AgentTime, Literal] = {}
        self.constructor_clear_any_vars: dict[ConstrTime, Literal] = {}
        self.amount_vars: dict[CellTime, cp_model.IntVar] = {}
        self.attached_block_vars: dict[CellAgentSubTime, Literal] = {}
        self.worker_action_vars: dict[AgentTime, Literal] = {}
        self.constructor_action_vars: dict[ConstrTime, Literal] = {}
        self.fully_loaded_vars: dict[AgentTime, Literal] = {}
        self.any_loaded_vars: dict[AgentTime, Literal] = {}
        self.dispenser_attach_vars: dict[CellAgentTime, Literal] = {}

        self.objective = TieredObjective(TIERS)
        self._distance_cache: dict[tuple[int, str], dict[Position, int]] = {}
        self._graph: nx.DiGraph | None = None
        self._fallback_graph: nx.DiGraph | None = None
        self._congested: frozenset[Position] | None = None

        started = time.perf_counter()
        for stage in (
            self._create_main_variables,
            self._create_action_variables,
            self._create_derived_variables,
            self._add_position_constraints,
            self._add_movement_constraints,
            self._add_clear_constraints,
            self._add_attach_constraints,
            self._add_constructor_constraints,
            self._add_dispenser_constraints,
            self._add_attached_block_constraints,
            self._build_objective,
        ):
            stage_started = time.perf_counter()
            stage()
            logger.debug("%s: %.3fs", stage.__name__.lstrip("_"), time.perf_counter() - stage_started)
        proto = self.model.Proto()
        logger.debug(
            "tasking model built in %.3fs: %d variables, %d constraints",
            time.perf_counter() - started,
            len(proto.variables),
            len(proto.constraints),
        )

    # ------------------------------------------------------------------
    # Snapshot indexing
    # ------------------------------------------------------------------

    def _index_snapshot(self) -> None:
        snap = self.snapshot
        bounds = snap.bounds
        cells = snap.cells
        self._workers = snap.workers

        # Occupied cells still holding a block attached to a worker are about
        # to be connected and count as free.
        self._connected: set[Position] = set()
        for con in snap.constructors:
            for cell_pos, cell in con.cells.items():
                if cell.occupied and self._is_held_by_worker(cell_pos):
                    self._connected.add(cell_pos)
        self.constructors: tuple[Constructor, ...] = tuple(
            replace(
                con,
                cells={
                    p: replace(cell, occupied=cell.occupied and p not in self._connected)
                    for p, cell in con.cells.items()
                },
            )
            for con in snap.constructors
        )

        self._gatherers = {
            idx for idx, worker in self._workers if worker.status is WorkerStatus.GATHERER
        }
        self._deliverers = {
            idx
            for idx, worker in self._workers
            if worker.status is WorkerStatus.DELIVERER and worker.constructor_index is not None
        }
        self._available: list[Dispenser] = [
            d for d in snap.dispensers if cells[d.position] is CellType.EMPTY
        ]

        constructor_positions = {con.position for con in self.constructors}
        dispenser_positions = {d.position for d in snap.dispensers}
        self._visitable = {
            p
            for p, c in cells.items()
            if c is not CellType.FIXED_OBSTACLE
            and p not in constructor_positions
            and p not in dispenser_positions
        }
        self._blockable = {
            p
            for p, c in cells.items()
            if c is not CellType.FIXED_OBSTACLE and p not in constructor_positions
        }
        self._obstacles = {p for p in self._visitable if cells[p] is CellType.MUTABLE_OBSTACLE}
        self._visitable_index = ReachabilityIndex(bounds, self._visitable)
        self._blockable_index = ReachabilityIndex(bounds, self._blockable)
        self._obstacle_index = ReachabilityIndex(bounds, self._obstacles)

        self._cell_owners: dict[Position, list[int]] = {}
        for c, con in enumerate(self.constructors):
            for p in con.cells:
                self._cell_owners.setdefault(p, []).append(c)

        self._agent_units = [clear_units(a.clear_probability, self.max_amount) for a in snap.agents]
        self._constructor_units = [
            clear_units(con.clear_probability, self.max_amount) for con in self.constructors
        ]

        # Cells an agent or its attached blocks may cover at the start of each tick
        self._any_on_cells: dict[int, dict[Position, list[int]]] = {}
        self._worker_any_on_cells: dict[int, dict[Position, set[int]]] = {}
        for t in self.timeline.time_range():
            by_cell: dict[Position, list[int]] = {}
            by_worker_cell: dict[Position, set[int]] = {}
            for agent, info in enumerate(snap.agents):
                reach = self._full_time_step(agent, t, 1)
                for p in sorted(self._blockable_index.within(info.position, reach)):
                    by_cell.setdefault(p, []).append(agent)
                    if isinstance(info, Worker):
                        by_worker_cell.setdefault(p, set()).add(agent)
            self._any_on_cells[t] = by_cell
            self._worker_any_on_cells[t] = by_worker_cell

    def _is_held_by_worker(self, cell_pos: Position) -> bool:
        bounds = self.snapshot.bounds
        for _, worker in self._workers:
            if distance_bounded(cell_pos, worker.position, bounds) != 1:
                continue
            offset = sub_closest(cell_pos, worker.position, bounds)
            if any(side.offset == offset for side in worker.attached_sides):
                return True
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def horizon(self) -> int:
        return self.timeline.horizon

    @property
    def agent_count(self) -> int:
        return len(self.snapshot.agents)

    def _step_dist(self, agent: int) -> int:
        return self.snapshot.agents[agent].step_dist

    def _full_time_step(self, agent: int, t: int, s: int) -> int:
        return Timeline.full_time_step(self._step_dist(agent), t, s)

    def _next_key(self, key: CellAgentSubTime) -> CellAgentSubTime:
        t, s = Timeline.next_sub_time(self._step_dist(key.agent), key.t, key.s)
        return CellAgentSubTime(key.pos, key.agent, t, s)

    def _present(
        self, positions: Iterable[Position], agent: int, t: int, s: int
    ) -> list[Literal]:
        found = []
        for p in positions:
            var = self.on_vars.get(CellAgentSubTime(p, agent, t, s))
            if var is not None:
                found.append(var)
        return found

    def _any_on(self, pos: Position, agent: int, t: int, s: int) -> list[Literal]:
        """Literals for ``agent`` or one of its attached blocks covering ``pos``."""
        key = CellAgentSubTime(pos, agent, t, s)
        found = []
        for family in (self.on_vars, self.attached_block_vars):
            var = family.get(key)
            if var is not None:
                found.append(var)
        return found

    def _constructor_blocks(self, pos: Position, t: int) -> list[Literal]:
        found = []
        for c in self._cell_owners.get(pos, ()):
            var = self.constructor_block_vars.get(CellConstrTime(pos, c, t))
            if var is not None:
                found.append(var)
        return found

    def _any_action(self, agent: int, t: int) -> Literal:
        key = AgentTime(agent, t)
        if isinstance(self.snapshot.agents[agent], Worker):
            return self.worker_action_vars[key]
        return self.clear_any_vars[key]

    def _gatherer_dispensers(self, agent: int, worker: Worker) -> list[Dispenser]:
        if worker.dispenser_index is not None:
            assigned = self.snapshot.dispensers[worker.dispenser_index]
            return [assigned] if assigned in self._available else []
        return [d for d in self._available if d.block_type == worker.block_type]

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _create_main_variables(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline

        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.step_dist):
                key = AgentSubTime(agent, t, s)
                reachable = self._visitable_index.less(
                    info.position, self._full_time_step(agent, t, s)
                )
                if info.position not in snap.markers:
                    reachable = reachable - snap.markers
                self.on_cells[key] = sorted(reachable)
                for p in self.on_cells[key]:
                    on_key = CellAgentSubTime(p, agent, t, s)
                    if t > 1 or s > 1:
                        self.on_vars[on_key] = model.NewBoolVar(f"move_agent_on_{on_key.suffix}")
                    elif p == info.position:
                        self.on_vars[on_key] = self._true

        for dispenser in self._available:
            for t in timeline.time_range():
                key = CellTime(dispenser.position, t)
                if t > 1 and dispenser.position in self._worker_any_on_cells[t]:
                    self.free_block_vars[key] = model.NewBoolVar(f"free_block_on_{key.suffix}")
                elif dispenser.occupied:
                    self.free_block_vars[key] = self._true

        for agent, worker in self._workers:
            for direction in Direction:
                for t in timeline.time_range():
                    key = AgentDirTime(agent, direction, t)
                    if t > 1:
                        self.attached_dir_vars[key] = model.NewBoolVar(
                            f"attached_block_dir_{key.suffix}"
                        )
                    elif direction in worker.attached_sides:
                        self.attached_dir_vars[key] = self._true

        for c, con in enumerate(self.constructors):
            for p, cell in con.cells.items():
                for t in timeline.time_range():
                    key = CellConstrTime(p, c, t)
                    if t > 1:
                        self.constructor_block_vars[key] = model.NewBoolVar(
                            f"constructor_block_on_{key.suffix}"
                        )
                    elif cell.occupied:
                        self.constructor_block_vars[key] = self._true

    def _create_action_variables(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds
        horizon = self.horizon

        # Clearing
        self._move_clear_cells: dict[int, dict[Position, list[int]]] = {}
        for t in timeline.time_range(exclude_last=True):
            by_cell: dict[Position, list[int]] = {}
            for agent, info in enumerate(snap.agents):
                radius = (t - 1) * info.step_dist + info.clear_dist
                for p in sorted(self._obstacle_index.within(info.position, radius)):
                    by_cell.setdefault(p, []).append(agent)
            self._move_clear_cells[t] = by_cell
            for p, agents in by_cell.items():
                for agent in agents:
                    if agent in self._deliverers:
                        continue
                    key = CellAgentTime(p, agent, t)
                    self.move_clear_vars[key] = model.NewBoolVar(f"move_clear_{key.suffix}")

        self._constructor_clear_cells = [
            sorted(self._obstacle_index.within(con.position, con.clear_dist))
            for con in self.constructors
        ]
        for t in timeline.time_range(exclude_last=True):
            for c, positions in enumerate(self._constructor_clear_cells):
                for p in positions:
                    key = CellConstrTime(p, c, t)
                    self.constructor_clear_vars[key] = model.NewBoolVar(
                        f"constructor_clear_{key.suffix}"
                    )

        # Requests and attaches, from the first tick a dispenser is in reach
        self._gatherer_start: dict[int, int] = {}
        for agent in sorted(self._gatherers):
            worker = snap.agents[agent]
            ticks = [
                _first_tick(distance_bounded(worker.position, d.position, bounds), worker.step_dist)
                for d in self._gatherer_dispensers(agent, worker)
            ]
            reachable = [tick for tick in ticks if tick is not None]
            if reachable and min(reachable) < horizon:
                self._gatherer_start[agent] = min(reachable)

        for agent, start in self._gatherer_start.items():
            worker = snap.agents[agent]
            for t in range(start, horizon):
                for dispenser in self._gatherer_dispensers(agent, worker):
                    if agent not in self._worker_any_on_cells[t].get(dispenser.position, ()):
                        continue
                    key = CellAgentTime(dispenser.position, agent, t)
                    self.request_vars[key] = model.NewBoolVar(f"request_{key.suffix}")
                for direction in Direction:
                    key = AgentDirTime(agent, direction, t)
                    self.attach_vars[key] = model.NewBoolVar(f"attach_{key.suffix}")

        # Joins and detaches, from the first tick a constructor cell is in reach
        deliverer_start: dict[int, int] = {}
        for agent in sorted(self._deliverers):
            worker = snap.agents[agent]
            con = self.constructors[worker.constructor_index]
            ticks = [
                _first_tick(distance_bounded(worker.position, p, bounds), worker.step_dist)
                for p in con.cells
            ]
            reachable = [tick for tick in ticks if tick is not None]
            if reachable and min(reachable) < horizon:
                deliverer_start[agent] = min(reachable)

        for agent, start in deliverer_start.items():
            for t in range(start, horizon):
                for direction in Direction:
                    key = AgentDirTime(agent, direction, t)
                    self.join_vars[key] = model.NewBoolVar(f"join_{key.suffix}")

        for agent, start in deliverer_start.items():
            worker = snap.agents[agent]
            for t in range(start, horizon):
                for direction in Direction:
                    key = AgentDirTime(agent, direction, t)
                    if t == 1:
                        block = add_bounded(worker.position, direction.offset, bounds)
                        if direction in worker.attached_sides and block in self._connected:
                            self.detach_vars[key] = self._true
                    else:
                        # Detaching always follows a join in the previous tick
                        join = self.join_vars.get(AgentDirTime(agent, direction, t - 1))
                        if join is not None:
                            self.detach_vars[key] = join

        for agent, _ in self._workers:
            for rotation in Rotation:
                for t in timeline.time_range(exclude_last=True):
                    key = AgentRotTime(agent, rotation, t)
                    self.rotate_vars[key] = model.NewBoolVar(f"rotate_{key.suffix}")

        for c in range(len(self.constructors)):
            for t in timeline.time_range(exclude_last=True):
                key = ConstrTime(c, t)
                self.submit_vars[key] = model.NewBoolVar(f"submit_{key.suffix}")

    def _create_derived_variables(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds

        # Movement indicator
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.step_dist, exclude_last=True):
                key = AgentSubTime(agent, t, s)
                var = model.NewBoolVar(f"move_{key.suffix}")
                self.move_vars[key] = var
                pairs = []
                for p in self.on_cells[key]:
                    here = self.on_vars.get(CellAgentSubTime(p, agent, t, s))
                    if here is None:
                        continue
                    there = self.on_vars.get(self._next_key(CellAgentSubTime(p, agent, t, s)))
                    pairs.append((here, self._true if there is None else there.Not()))
                add_or_and_equality_exactly_one(model, var, pairs)

        # Any clear per agent and constructor
        for agent in range(self.agent_count):
            for t in timeline.time_range(exclude_last=True):
                key = AgentTime(agent, t)
                var = model.NewBoolVar(f"move_clear_any_{key.suffix}")
                self.clear_any_vars[key] = var
                clears = []
                for p in self._move_clear_cells[t]:
                    clear = self.move_clear_vars.get(CellAgentTime(p, agent, t))
                    if clear is not None:
                        clears.append(clear)
                add_exactly_one(model, [var.Not()] + clears)
        for c, positions in enumerate(self._constructor_clear_cells):
            for t in timeline.time_range(exclude_last=True):
                key = ConstrTime(c, t)
                var = model.NewBoolVar(f"constructor_clear_any_{key.suffix}")
                self.constructor_clear_any_vars[key] = var
                clears = [self.constructor_clear_vars[CellConstrTime(p, c, t)] for p in positions]
                add_exactly_one(model, [var.Not()] + clears)

        # Accumulated clear mass after each tick with clearing
        constructor_clear_cells = {p for cells in self._constructor_clear_cells for p in cells}
        for t in timeline.time_range(exclude_last=True):
            for p in sorted(set(self._move_clear_cells[t]) | constructor_clear_cells):
                key = CellTime(p, t + 1)
                amount = model.NewIntVar(0, 2 * self.max_amount - 1, f"clear_amount_{key.suffix}")
                self.amount_vars[key] = amount
                model.Add(amount == sum(self._clear_terms(p, range(1, t + 1))))

        # Attached blocks
        for agent, worker in self._workers:
            for t, s in timeline.sub_time_steps(worker.step_dist):
                reach = self._full_time_step(agent, t, s)
                for p in sorted(self._blockable_index.within(worker.position, reach)):
                    key = CellAgentSubTime(p, agent, t, s)
                    var = model.NewBoolVar(f"attached_block_on_{key.suffix}")
                    self.attached_block_vars[key] = var
                    pairs = []
                    for direction in Direction:
                        body = self.on_vars.get(
                            CellAgentSubTime(sub_bounded(p, direction.offset, bounds), agent, t, s)
                        )
                        side = self.attached_dir_vars.get(AgentDirTime(agent, direction, t))
                        if body is not None and side is not None:
                            pairs.append((body, side))
                    add_or_and_equality_at_most_one(model, var, pairs)

        # One action per worker and constructor and tick
        for agent, worker in self._workers:
            for t in timeline.time_range(exclude_last=True):
                key = AgentTime(agent, t)
                var = model.NewBoolVar(f"any_worker_action_{key.suffix}")
                self.worker_action_vars[key] = var
                actions = [var.Not(), self.clear_any_vars[key]]
                for dispenser in self._available:
                    request = self.request_vars.get(CellAgentTime(dispenser.position, agent, t))
                    if request is not None:
                        actions.append(request)
                for direction in Direction:
                    dir_key = AgentDirTime(agent, direction, t)
                    for family in (self.attach_vars, self.join_vars, self.detach_vars):
                        action = family.get(dir_key)
                        if action is not None:
                            actions.append(action)
                for rotation in Rotation:
                    actions.append(self.rotate_vars[AgentRotTime(agent, rotation, t)])
                add_exactly_one(model, actions)

        for c in range(len(self.constructors)):
            for t in timeline.time_range(exclude_last=True):
                key = ConstrTime(c, t)
                var = model.NewBoolVar(f"any_constructor_action_{key.suffix}")
                self.constructor_action_vars[key] = var
                actions = [var.Not(), self.submit_vars[key], self.constructor_clear_any_vars[key]]
                for agent, worker in self._workers:
                    if worker.constructor_index != c:
                        continue
                    for direction in Direction:
                        dir_key = AgentDirTime(agent, direction, t)
                        for family in (self.join_vars, self.detach_vars):
                            action = family.get(dir_key)
                            if action is not None:
                                actions.append(action)
                add_exactly_one(model, actions)

        # Load indicators
        for agent in sorted(self._gatherers):
            worker = snap.agents[agent]
            for t in timeline.time_range():
                key = AgentTime(agent, t)
                var = model.NewBoolVar(f"fully_loaded_{key.suffix}")
                self.fully_loaded_vars[key] = var
                sides = self._attached_sides(agent, t)
                if sides:
                    model.Add(sum(sides) == worker.max_attached).OnlyEnforceIf(var)
                    model.Add(sum(sides) < worker.max_attached).OnlyEnforceIf(var.Not())
                elif worker.max_attached == 0:
                    model.AddBoolOr([var])
                else:
                    forbid(model, var)
        for agent in sorted(self._deliverers):
            for t in timeline.time_range():
                key = AgentTime(agent, t)
                var = model.NewBoolVar(f"any_loaded_{key.suffix}")
                self.any_loaded_vars[key] = var
                add_or_equality(model, var, self._attached_sides(agent, t))

        # A gatherer attaching the free block of a dispenser
        for dispenser in self._available:
            for agent in self._type_gatherers(dispenser.block_type):
                for t in timeline.time_range(exclude_last=True):
                    key = CellAgentTime(dispenser.position, agent, t)
                    var = model.NewBoolVar(f"dispenser_attach_{key.suffix}")
                    self.dispenser_attach_vars[key] = var
                    pairs = []
                    for direction in Direction:
                        pos = sub_bounded(dispenser.position, direction.offset, bounds)
                        if pos not in self._visitable:
                            continue
                        body = self.on_vars.get(CellAgentSubTime(pos, agent, t, 1))
                        attach = self.attach_vars.get(AgentDirTime(agent, direction, t))
                        if body is not None and attach is not None:
                            pairs.append((body, attach))
                    add_or_and_equality_at_most_one(model, var, pairs)

    def _clear_terms(self, pos: Position, ticks: Iterable[int]) -> list[cp_model.LinearExpr]:
        terms = []
        for t in ticks:
            for agent in range(self.agent_count):
                clear = self.move_clear_vars.get(CellAgentTime(pos, agent, t))
                if clear is not None:
                    terms.append(self._agent_units[agent] * clear)
            for c in range(len(self.constructors)):
                clear = self.constructor_clear_vars.get(CellConstrTime(pos, c, t))
                if clear is not None:
                    terms.append(self._constructor_units[c] * clear)
        return terms

    def _attached_sides(self, agent: int, t: int) -> list[Literal]:
        sides = []
        for direction in Direction:
            var = self.attached_dir_vars.get(AgentDirTime(agent, direction, t))
            if var is not None:
                sides.append(var)
        return sides

    def _type_gatherers(self, block_type: str) -> list[int]:
        return [
            agent
            for agent, worker in self._workers
            if worker.status is WorkerStatus.GATHERER and worker.block_type == block_type
        ]

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def _add_position_constraints(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline

        # Exactly one cell per agent and sub-tick
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.step_dist):
                key = AgentSubTime(agent, t, s)
                add_exactly_one(model, self._present(self.on_cells[key], agent, t, s))

        # At most one body or block per cell at the start of each tick
        for t in timeline.time_range():
            for pos, agents in self._any_on_cells[t].items():
                literals = []
                free_block = self.free_block_vars.get(CellTime(pos, t))
                if free_block is not None:
                    literals.append(free_block)
                for agent in agents:
                    literals.extend(self._any_on(pos, agent, t, 1))
                literals.extend(self._constructor_blocks(pos, t))
                add_at_most_one_if_many(model, literals)

        # Mutable obstacles hold bodies and blocks only once fully cleared.
        # Clears and moves of the same tick are concurrent, so the mass must
        # be complete one tick earlier.
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.step_dist):
                reach = self._full_time_step(agent, t, s)
                for pos in sorted(self._obstacle_index.within(info.position, reach)):
                    present = self._any_on(pos, agent, t, s)
                    if not present:
                        continue
                    amount = self.amount_vars.get(CellTime(pos, t - 1))
                    if amount is None:
                        model.AddBoolAnd([lit.Not() for lit in present])
                    else:
                        model.Add(self.max_amount * sum(present) <= amount)
        for c, con in enumerate(self.constructors):
            for pos in con.cells:
                if pos not in self._obstacles:
                    continue
                for t in timeline.time_range():
                    block = self.constructor_block_vars.get(CellConstrTime(pos, c, t))
                    if block is None:
                        continue
                    amount = self.amount_vars.get(CellTime(pos, t - 1))
                    if amount is None:
                        forbid(model, block)
                    else:
                        model.Add(self.max_amount * block <= amount)

        # A cell held in one tick cannot be entered by another agent in the next
        for t in timeline.time_range(exclude_last=True):
            following = self._any_on_cells[t + 1]
            for pos, agents in self._any_on_cells[t].items():
                for agent in agents:
                    literals = self._any_on(pos, agent, t, 1)
                    for other in following.get(pos, ()):
                        if other != agent:
                            literals.extend(self._any_on(pos, other, t + 1, 1))
                    add_at_most_one_if_many(model, literals)
            for c, con in enumerate(self.constructors):
                for pos in con.cells:
                    block = self.constructor_block_vars.get(CellConstrTime(pos, c, t))
                    if block is None:
                        continue
                    literals = [block]
                    for other in following.get(pos, ()):
                        literals.extend(self._any_on(pos, other, t + 1, 1))
                    add_at_most_one_if_many(model, literals)

        # Intermediate sub-ticks avoid bodies and blocks of this and the next tick
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.step_dist):
                if s == 1:
                    continue
                reach = self._full_time_step(agent, t, s)
                for pos in sorted(self._blockable_index.within(info.position, reach)):
                    passing = self._any_on(pos, agent, t, s)
                    for other_t in (t, t + 1):
                        literals = list(passing)
                        for other in self._any_on_cells[other_t].get(pos, ()):
                            if other != agent:
                                literals.extend(self._any_on(pos, other, other_t, 1))
                        literals.extend(self._constructor_blocks(pos, other_t))
                        add_at_most_one_if_many(model, literals)

    def _add_movement_constraints(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds

        # One cardinal step (or none) per sub-tick
        for key, var in self.on_vars.items():
            if key.t == self.horizon:
                continue
            nxt = self._next_key(key)
            add_or_implication(
                model,
                var,
                self._present(neighbours_at_most(key.pos, 1, bounds), key.agent, nxt.t, nxt.s),
            )

        for agent, info in enumerate(snap.agents):
            for t in timeline.time_range(exclude_last=True):
                # Moves within a tick form a prefix
                for s in range(1, info.step_dist):
                    model.AddImplication(
                        self.move_vars[AgentSubTime(agent, t, s + 1)],
                        self.move_vars[AgentSubTime(agent, t, s)],
                    )
                # Acting excludes moving
                acting = self._any_action(agent, t)
                for s in timeline.sub_steps(info.step_dist, t):
                    model.AddImplication(acting, self.move_vars[AgentSubTime(agent, t, s)].Not())

    def _add_clear_constraints(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds
        ceiling = 2 * self.max_amount - 1

        for key, clear in self.move_clear_vars.items():
            info = snap.agents[key.agent]
            add_or_implication(
                model,
                clear,
                self._present(neighbours_at_most(key.pos, info.clear_dist, bounds), key.agent, key.t, 1),
            )
            load = [self.max_amount * clear]
            amount = self.amount_vars.get(CellTime(key.pos, key.t))
            if amount is not None:
                load.append(amount)
            load.extend(self._concurrent_clears(key.pos, key.t, agent=key.agent))
            model.Add(sum(load) <= ceiling)

        for key, clear in self.constructor_clear_vars.items():
            load = [self.max_amount * clear]
            amount = self.amount_vars.get(CellTime(key.pos, key.t))
            if amount is not None:
                load.append(amount)
            load.extend(self._concurrent_clears(key.pos, key.t, constructor=key.constructor))
            model.Add(sum(load) <= ceiling)

        # Clearing needs free hands
        for agent, _ in self._workers:
            for t in timeline.time_range(exclude_last=True):
                clear_any = self.clear_any_vars[AgentTime(agent, t)]
                for side in self._attached_sides(agent, t):
                    model.AddImplication(clear_any, side.Not())
        for c, con in enumerate(self.constructors):
            for t in timeline.time_range(exclude_last=True):
                clear_any = self.constructor_clear_any_vars[ConstrTime(c, t)]
                for pos in con.cells:
                    block = self.constructor_block_vars.get(CellConstrTime(pos, c, t))
                    if block is not None:
                        model.AddImplication(clear_any, block.Not())

    def _concurrent_clears(
        self, pos: Position, t: int, agent: int | None = None, constructor: int | None = None
    ) -> list[cp_model.LinearExpr]:
        """Clear mass other agents and constructors add to ``pos`` during tick ``t``."""
        terms = []
        for other in range(self.agent_count):
            clear = self.move_clear_vars.get(CellAgentTime(pos, other, t))
            if other != agent and clear is not None:
                terms.append(self._agent_units[other] * clear)
        for other in range(len(self.constructors)):
            clear = self.constructor_clear_vars.get(CellConstrTime(pos, other, t))
            if other != constructor and clear is not None:
                terms.append(self._constructor_units[other] * clear)
        return terms

    def _add_attach_constraints(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds

        # Sides facing non-blockable cells stay empty
        for agent, worker in self._workers:
            for t, s in timeline.sub_time_steps(worker.step_dist):
                for pos in self.on_cells[AgentSubTime(agent, t, s)]:
                    body = self.on_vars.get(CellAgentSubTime(pos, agent, t, s))
                    if body is None:
                        continue
                    for direction in Direction:
                        if add_bounded(pos, direction.offset, bounds) in self._blockable:
                            continue
                        side = self.attached_dir_vars.get(AgentDirTime(agent, direction, t))
                        if side is not None:
                            model.AddImplication(body, side.Not())

        # Requests need an empty dispenser and an adjacent requester
        for key, request in self.request_vars.items():
            free_block = self.free_block_vars.get(CellTime(key.pos, key.t))
            if free_block is not None:
                model.AddImplication(request, free_block.Not())
            for other, _ in self._workers:
                present = self._any_on(key.pos, other, key.t, 1)
                if present:
                    model.AddBoolAnd([lit.Not() for lit in present]).OnlyEnforceIf(request)
            adjacent = [p for p in neighbours_exactly(key.pos, 1, bounds) if p in self._visitable]
            add_or_implication(model, request, self._present(adjacent, key.agent, key.t, 1))

        # Attaching needs a free block of the worker's type on that side
        for key, attach in self.attach_vars.items():
            worker = snap.agents[key.agent]
            pairs = []
            for dispenser in self._available:
                if dispenser.block_type != worker.block_type:
                    continue
                pos = sub_bounded(dispenser.position, key.direction.offset, bounds)
                if pos not in self._visitable:
                    continue
                free_block = self.free_block_vars.get(CellTime(dispenser.position, key.t))
                body = self.on_vars.get(CellAgentSubTime(pos, key.agent, key.t, 1))
                if free_block is not None and body is not None:
                    pairs.append((body, free_block))
            if pairs:
                add_or_and_implication_at_most_one(model, attach, pairs)
            else:
                forbid(model, attach)

    def _add_constructor_constraints(self) -> None:
        snap = self.snapshot
        model = self.model
        timeline = self.timeline
        bounds = snap.bounds

        # Joining needs the block on that side and a reachable target cell
        for key, join in self.join_vars.items():
            side = self.attached_dir_vars.get(key)
            if side is None:
                forbid(model, join)
                continue
            worker = snap.agents[key.agent]
            c = worker.constructor_index
            con = self.constructors[c]

            direct = []
            for cell_pos in neighbours_exactly(con.position, 1, bounds):
                cell = con.cells.get(cell_pos)
                if cell is None or cell.block_type != worker.block_type:
                    continue
                body_pos = sub_bounded(cell_pos, key.direction.offset, bounds)
                if body_pos in self._visitable:
                    direct.extend(self._present([body_pos], key.agent, key.t, 1))

            # Cells further out chain through an already filled neighbour
            chained = []
            for cell_pos, cell in con.cells.items():
                if cell.block_type != worker.block_type:
                    continue
                if distance_bounded(con.position, cell_pos, bounds) <= 1:
                    continue
                body_pos = sub_bounded(cell_pos, key.direction.offset, bounds)
                if body_pos not in self._visitable:
                    continue
                body = self.on_vars.get(CellAgentSubTime(body_pos, key.agent, key.t, 1))
                if body is None:
                    continue
                anchors = []
                for neighbour in neighbours_exactly(cell_pos, 1, bounds):
                    if neighbour not in con.cells:
                        continue
                    block = self.constructor_block_vars.get(CellConstrTime(neighbour, c, key.t))
                    if block is not None:
                        anchors.append(block)
                if anchors:
                    chained.append((body, anchors))

            if not direct and not chained:
                forbid(model, join)
                continue
            model.AddImplication(join, side)
            add_or_or_and_or_implication_at_most_one(model, join, direct, chained)

        # Submitting consumes a complete construction
        for c, con in enumerate(self.constructors):
            for t in timeline.time_range(exclude_last=True):
                submit = self.submit_vars[ConstrTime(c, t)]
                blocks = [self.constructor_block_vars.get(CellConstrTime(p, c, t)) for p in con.cells]
                if not blocks or any(block is None for block in blocks):
                    forbid(model, submit)
                else:
                    add_and_equality(model, submit, blocks)

        # Constructor blocks persist until submitted and appear via a detach
        for c, con in enumerate(self.constructors):
            for cell_pos, cell in con.cells.items():
                for t in timeline.time_range(exclude_last=True):
                    submit = self.submit_vars[ConstrTime(c, t)]
                    pairs = []
                    for agent, worker in self._workers:
                        if worker.constructor_index != c or worker.block_type != cell.block_type:
                            continue
                        for direction in Direction:
                            body_pos = sub_bounded(cell_pos, direction.offset, bounds)
                            if body_pos not in self._visitable:
                                continue
                            body = self.on_vars.get(CellAgentSubTime(body_pos, agent, t, 1))
                            detach = self.detach_vars.get(AgentDirTime(agent, direction, t))
                            if body is not None and detach is not None:
                                pairs.append((body, detach))
                    before = self.constructor_block_vars.get(CellConstrTime(cell_pos, c, t))
                    after = self.constructor_block_vars[CellConstrTime(cell_pos, c, t + 1)]
                    if before is not None:
                        model.AddBoolOr([before.Not(), after, submit])
                        model.AddBoolOr([before.Not(), after.Not(), submit.Not()])
                    add_or_and_equality_at_most_one(
                        model, after, pairs, enforcement=None if before is None else before.Not()
                    )

    def _add_dispenser_constraints(self) -> None:
        model = self.model
        timeline = self.timeline

        for dispenser in self._available:
            gatherers = self._type_gatherers(dispenser.block_type)
            for t in timeline.time_range(exclude_last=True):
                before = self.free_block_vars.get(CellTime(dispenser.position, t))
                after = self.free_block_vars.get(CellTime(dispenser.position, t + 1))
                requests = []
                for agent, _ in self._workers:
                    request = self.request_vars.get(CellAgentTime(dispenser.position, agent, t))
                    if request is not None:
                        requests.append(request)
                taken = [
                    self.dispenser_attach_vars[CellAgentTime(dispenser.position, agent, t)]
                    for agent in gatherers
                ]

                # A free block stays until attached
                if before is not None and after is not None:
                    add_and_equality(model, after, [lit.Not() for lit in taken], enforcement=before)

                # A free block appears only via a request
                if requests:
                    if after is not None:
                        add_or_equality(
                            model, after, requests, enforcement=None if before is None else before.Not()
                        )
                    else:
                        constraint = model.AddBoolAnd([lit.Not() for lit in requests])
                        if before is not None:
                            constraint.OnlyEnforceIf(before)
                elif before is not None and after is not None:
                    model.AddImplication(before.Not(), after.Not())
                elif after is not None:
                    forbid(model, after)

                add_at_most_one_if_many(model, requests)
                add_at_most_one_if_many(model, taken)

    def _add_attached_block_constraints(self) -> None:
        model = self.model
        timeline = self.timeline

        for agent, _ in self._workers:
            for t in timeline.time_range(exclude_last=True):
                rotations = [self.rotate_vars[AgentRotTime(agent, r, t)] for r in Rotation]

                # Rotation permutes the sides
                for direction in Direction:
                    for rotation, rotate in zip(Rotation, rotations):
                        before = self.attached_dir_vars.get(AgentDirTime(agent, direction, t))
                        after = self.attached_dir_vars.get(
                            AgentDirTime(agent, direction.rotate(rotation), t + 1)
                        )
                        if before is not None and after is not None:
                            model.AddBoolOr([rotate.Not(), after.Not(), before])
                            model.AddBoolOr([rotate.Not(), after, before.Not()])
                        elif before is not None:
                            model.AddBoolOr([rotate.Not(), before.Not()])
                        elif after is not None:
                            model.AddBoolOr([rotate.Not(), after.Not()])

                # Without rotation a side persists until detached and appears via attach
                for direction in Direction:
                    key = AgentDirTime(agent, direction, t)
                    before = self.attached_dir_vars.get(key)
                    after = self.attached_dir_vars.get(AgentDirTime(agent, direction, t + 1))
                    attach = self.attach_vars.get(key)
                    detach = self.detach_vars.get(key)
                    if before is not None:
                        model.AddBoolOr(
                            rotations
                            + [before.Not()]
                            + ([] if after is None else [after])
                            + ([] if detach is None else [detach])
                        )
                    if before is not None and after is not None and detach is not None:
                        model.AddBoolOr(rotations + [before.Not(), after.Not(), detach.Not()])
                    if attach is not None and before is not None:
                        model.AddImplication(attach, before.Not())
                    if attach is not None:
                        model.AddBoolOr(
                            rotations
                            + ([] if before is None else [before])
                            + ([] if after is None else [after])
                            + [attach.Not()]
                        )
                    if after is not None:
                        model.AddBoolOr(
                            rotations
                            + ([] if before is None else [before])
                            + [after.Not()]
                            + ([] if attach is None else [attach])
                        )

    # ------------------------------------------------------------------
    # Objective
    # ------------------------------------------------------------------

    def _idle_weight(self, step_dist: int) -> int:
        """Largest total the movement and idle terms of one agent can reach."""
        horizon = self.horizon
        sub_ticks = horizon * step_dist
        return sub_ticks * (sub_ticks + 1) // 2 + horizon * (horizon - 1) // 2

    def _build_objective(self) -> None:
        snap = self.snapshot
        objective = self.objective

        for key, var in self.move_vars.items():
            objective.add_negated("idle", var, self._full_time_step(key.agent, key.t, key.s))
        for agent in range(self.agent_count):
            for t in self.timeline.time_range(exclude_last=True):
                objective.add_negated("idle", self._any_action(agent, t), t)

        for agent, worker in self._workers:
            if agent in self._gatherers:
                self._add_gatherer_terms(agent, worker)
            elif agent in self._deliverers:
                self._add_deliverer_terms(agent, worker)
        for agent, info in enumerate(snap.agents):
            if isinstance(info, Digger):
                self._add_digger_terms(agent, info)

        for var in self.constructor_clear_any_vars.values():
            objective.add("constructor_clearing", var, 1)
        submission = objective.span_below("submission") + 1
        for var in self.submit_vars.values():
            objective.add("submission", var, submission)
        objective.maximize(self.model)

    def _add_gatherer_terms(self, agent: int, worker: Worker) -> None:
        snap = self.snapshot
        horizon = self.horizon
        objective = self.objective
        factor = self._idle_weight(worker.step_dist) * horizon**WORKER_FACTOR_EXPONENT

        if worker.dispenser_index is not None:
            targets = [snap.dispensers[worker.dispenser_index].position]
        else:
            targets = [d.position for d in snap.dispensers if d.block_type == worker.block_type]

        # Distance to the nearest suitable dispenser
        total = 0
        if targets:
            for t, s in self.timeline.sub_time_steps(worker.step_dist):
                sub_max = 0
                for pos in self.on_cells[AgentSubTime(agent, t, s)]:
                    body = self.on_vars.get(CellAgentSubTime(pos, agent, t, s))
                    if body is None:
                        continue
                    dist = min(distance_bounded(pos, target, snap.bounds) for target in targets)
                    weight = factor * dist
                    sub_max = max(sub_max, weight)
                    objective.add("gatherer_distance", body, -weight)
                total += sub_max
        progress = max(total, factor)

        # Requests and attached blocks, then being fully loaded
        loaded = progress * horizon * (len(self._available) + len(Direction))
        for t in self.timeline.time_range():
            for dispenser in self._available:
                request = self.request_vars.get(CellAgentTime(dispenser.position, agent, t))
                if request is not None:
                    objective.add("gatherer_progress", request, progress)
            for side in self._attached_sides(agent, t):
                objective.add("gatherer_progress", side, progress)
            objective.add("gatherer_loaded", self.fully_loaded_vars[AgentTime(agent, t)], loaded)

    def _add_deliverer_terms(self, agent: int, worker: Worker) -> None:
        horizon = self.horizon
        objective = self.objective
        factor = self._idle_weight(worker.step_dist) * horizon**WORKER_FACTOR_EXPONENT

        # Distance to the nearest free matching constructor cell
        distances = self._constructor_distances(worker.constructor_index, worker.block_type)
        total = 0
        for t, s in self.timeline.sub_time_steps(worker.step_dist):
            sub_max = 0
            for pos, dist in distances.items():
                weight = factor * max(0, dist - 1)
                sub_max = max(sub_max, weight)
                body = self.on_vars.get(CellAgentSubTime(pos, agent, t, s))
                if body is not None:
                    objective.add("deliverer_distance", body, -weight)
            total += sub_max
        empty_side = max(total, factor)

        for t in self.timeline.time_range():
            for side in self._attached_sides(agent, t):
                objective.add_negated("deliverer_empty_sides", side, empty_side)
        unloaded = empty_side * horizon * len(Direction)
        for t in self.timeline.time_range():
            objective.add_negated(
                "deliverer_unloaded", self.any_loaded_vars[AgentTime(agent, t)], unloaded
            )
        handover = unloaded * horizon
        for t in self.timeline.time_range(exclude_last=True):
            for direction in Direction:
                key = AgentDirTime(agent, direction, t)
                for family in (self.join_vars, self.detach_vars):
                    action = family.get(key)
                    if action is not None:
                        objective.add("deliverer_handover", action, handover)

    def _add_digger_terms(self, agent: int, digger: Digger) -> None:
        snap = self.snapshot
        horizon = self.horizon
        objective = self.objective
        idle = self._idle_weight(digger.step_dist)

        flock_clears = []
        for t in self.timeline.time_range(exclude_last=True):
            for pos in self._move_clear_cells[t]:
                clear = self.move_clear_vars.get(CellAgentTime(pos, agent, t))
                if clear is None:
                    continue
                if pos in digger.flock:
                    flock_clears.append(clear)
                else:
                    objective.add("digger_outside_flock", clear, idle)
        outside = idle * (horizon - 1)

        # Distance to the nearest obstacle inside the flock
        flock_obstacles = [p for p in digger.flock if p in self._obstacles]
        total = 0
        if flock_obstacles:
            gaps: dict[Position, int] = {}

            def gap(pos: Position) -> int:
                if pos not in gaps:
                    nearest = min(distance_bounded(pos, o, snap.bounds) for o in flock_obstacles)
                    gaps[pos] = max(nearest - digger.clear_dist, 0)
                return gaps[pos]

            widest = max((gap(p) for p in self._visitable), default=0)
            for t, s in self.timeline.sub_time_steps(digger.step_dist):
                total += outside * t * widest
                for pos in self.on_cells[AgentSubTime(agent, t, s)]:
                    weight = outside * t * gap(pos)
                    body = self.on_vars.get(CellAgentSubTime(pos, agent, t, s))
                    if weight and body is not None:
                        objective.add("digger_distance", body, -weight)
        inside = max(total, idle)
        for clear in flock_clears:
            objective.add("digger_inside_flock", clear, inside)

    def _constructor_distances(self, constructor: int, block_type: str) -> dict[Position, int]:
        """Weighted path length from cells the matching deliverers may reach to the target cells."""
        cache_key = (constructor, block_type)
        cached = self._distance_cache.get(cache_key)
        if cached is not None:
            return cached

        snap = self.snapshot
        con = self.constructors[constructor]
        sources: set[Position] = set()
        for agent in sorted(self._deliverers):
            worker = snap.agents[agent]
            if worker.constructor_index == constructor and worker.block_type == block_type:
                budget = self.timeline.sub_time_step_count(worker.step_dist)
                sources |= self._visitable_index.within(worker.position, budget)
        matching = {p: cell for p, cell in con.cells.items() if cell.block_type == block_type}
        if not sources or not matching:
            self._distance_cache[cache_key] = {}
            return {}

        goals = {p for p, cell in matching.items() if not cell.occupied} or set(matching)
        congested = self._congested_cells()
        lengths = distances_to_cells(
            self._base_graph(), sources, goals, self._visitable, snap.bounds, congested
        )
        if any(math.isinf(d) for d in lengths.values()):
            lengths = distances_to_cells(
                self._fallback_base_graph(), sources, goals, self._visitable, snap.bounds, congested
            )
        finite = [d for d in lengths.values() if not math.isinf(d)]
        result = integer_distances(lengths, unreachable=int(max(finite, default=0)) + 1)
        self._distance_cache[cache_key] = result
        return result

    def _congested_cells(self) -> frozenset[Position]:
        if self._congested is not None:
            return self._congested
        snap = self.snapshot
        candidates = {p for p, c in snap.cells.items() if c is not CellType.EMPTY}
        for info in snap.agents:
            candidates.add(info.position)
            if isinstance(info, Worker):
                for side in info.attached_sides:
                    candidates.add(add_bounded(info.position, side.offset, snap.bounds))
        self._congested = problem_cells(
            [con.position for con in self.constructors], candidates, snap.bounds
        )
        return self._congested

    def _all_constructor_cells(self) -> set[Position]:
        return {p for con in self.constructors for p in con.cells}

    def _base_graph(self) -> nx.DiGraph:
        if self._graph is None:
            vertices = self._visitable | self._all_constructor_cells()
            self._graph = build_grid_graph(
                vertices, self._visitable, self.snapshot.bounds, self._congested_cells()
            )
        return self._graph

    def _fallback_base_graph(self) -> nx.DiGraph:
        if self._fallback_graph is None:
            snap = self.snapshot
            resources = {con.position for con in self.constructors} | {
                d.position for d in snap.dispensers
            }
            vertices = {p for p in snap.cells if p not in resources}
            self._fallback_graph = build_grid_graph(
                vertices,
                vertices - self._all_constructor_cells(),
                snap.bounds,
                self._congested_cells(),
            )
        return self._fallback_graph

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def configure(self, parameters: object) -> None:
        """Tasking models run with the default search parameters."""

    def decode(
        self, solver: cp_model.CpSolver
    ) -> tuple[tuple[AgentAction, ...], tuple[AgentAction, ...]]:
        """First-tick actions of every move agent and every constructor."""
        attaches: dict[int, Position] = {}
        connects: dict[int, Connect] = {}
        agent_actions = tuple(
            self._decode_agent(solver, agent, attaches, connects)
            for agent in range(self.agent_count)
        )
        constructor_actions = tuple(
            self._decode_constructor(solver, c, attaches, connects)
            for c in range(len(self.constructors))
        )
        return agent_actions, constructor_actions

    def _decode_agent(
        self,
        solver: cp_model.CpSolver,
        agent: int,
        attaches: dict[int, Position],
        connects: dict[int, Connect],
    ) -> AgentAction:
        info = self.snapshot.agents[agent]
        bounds = self.snapshot.bounds
        clears = [
            pos
            for pos in self._move_clear_cells.get(1, {})
            if _is_set(solver, self.move_clear_vars.get(CellAgentTime(pos, agent, 1)))
        ]
        if len(clears) > 1:
            raise DecodeError(f"agent {agent} clears {len(clears)} cells at once")

        offsets: list[Position] = []
        prev = info.position
        for s in self.timeline.sub_steps(info.step_dist, 1):
            t_next, s_next = Timeline.next_sub_time(info.step_dist, 1, s)
            key = AgentSubTime(agent, t_next, s_next)
            bound = [
                p
                for p in self.on_cells[key]
                if _is_set(solver, self.on_vars.get(CellAgentSubTime(p, agent, t_next, s_next)))
            ]
            if len(bound) != 1:
                raise DecodeError(f"agent {agent} occupies {len(bound)} cells at {key}")
            offsets.append(sub_closest(bound[0], prev, bounds))
            prev = bound[0]
        moved = not offsets[0].is_zero

        rotations: list[Rotation] = []
        requests: list[Position] = []
        attach_dirs: list[Direction] = []
        join_dirs: list[Direction] = []
        detach_dirs: list[Direction] = []
        if isinstance(info, Worker):
            rotations = [
                r for r in Rotation if _is_set(solver, self.rotate_vars.get(AgentRotTime(agent, r, 1)))
            ]
            requests = [
                d.position
                for d in self._available
                if _is_set(solver, self.request_vars.get(CellAgentTime(d.position, agent, 1)))
            ]
            for direction in Direction:
                key = AgentDirTime(agent, direction, 1)
                if _is_set(solver, self.attach_vars.get(key)):
                    attach_dirs.append(direction)
                if _is_set(solver, self.join_vars.get(key)):
                    join_dirs.append(direction)
                if _is_set(solver, self.detach_vars.get(key)):
                    detach_dirs.append(direction)
        chosen = len(rotations) + len(requests) + len(attach_dirs) + len(join_dirs) + len(detach_dirs)
        if chosen > 1:
            raise DecodeError(f"agent {agent} takes {chosen} actions at once")
        if (clears or moved) and chosen:
            raise DecodeError(f"agent {agent} acts while clearing or moving")

        if clears:
            if moved:
                raise DecodeError(f"agent {agent} both clears and moves")
            return Clear(sub_closest(clears[0], info.position, bounds))
        if moved:
            while offsets[-1].is_zero:
                offsets.pop()
            return Move(tuple(offsets))
        if rotations:
            return Rotate(rotations[0])
        if requests:
            return Request(sub_closest(requests[0], info.position, bounds))
        if attach_dirs:
            return Attach(attach_dirs[0].offset)
        if join_dirs:
            return self._decode_join(solver, agent, info, join_dirs[0], attaches, connects)
        if detach_dirs:
            return Detach(detach_dirs[0].offset)
        return SKIP

    def _decode_join(
        self,
        solver: cp_model.CpSolver,
        agent: int,
        worker: Worker,
        direction: Direction,
        attaches: dict[int, Position],
        connects: dict[int, Connect],
    ) -> AgentAction:
        bounds = self.snapshot.bounds
        c = worker.constructor_index
        con = self.constructors[c]
        if c in attaches or c in connects:
            raise DecodeError(f"constructor {c} receives two blocks at once")
        block = add_bounded(worker.position, direction.offset, bounds)
        if distance_bounded(con.position, block, bounds) == 1:
            # The constructor attaches the block itself
            attaches[c] = sub_closest(block, con.position, bounds)
            return SKIP
        anchors = [
            p
            for p in neighbours_exactly(block, 1, bounds)
            if _is_set(solver, self.constructor_block_vars.get(CellConstrTime(p, c, 1)))
        ]
        if not anchors:
            raise DecodeError(f"agent {agent} joins constructor {c} without a filled neighbour")
        connects[c] = Connect(
            agent,
            sub_closest(anchors[0], con.position, bounds),
            sub_closest(block, con.position, bounds),
        )
        return Connect(c, direction.offset)

    def _decode_constructor(
        self,
        solver: cp_model.CpSolver,
        c: int,
        attaches: dict[int, Position],
        connects: dict[int, Connect],
    ) -> AgentAction:
        con = self.constructors[c]
        if solver.BooleanValue(self.submit_vars[ConstrTime(c, 1)]):
            return SUBMIT
        clears = [
            p
            for p in self._constructor_clear_cells[c]
            if solver.BooleanValue(self.constructor_clear_vars[CellConstrTime(p, c, 1)])
        ]
        if len(clears) > 1:
            raise DecodeError(f"constructor {c} clears {len(clears)} cells at once")
        if clears:
            return Clear(sub_closest(clears[0], con.position, self.snapshot.bounds))
        if c in attaches:
            return Attach(attaches[c])
        if c in connects:
            return connects[c]
        return SKIP
