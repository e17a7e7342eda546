"""Exploration model: move generic agents so that unseen cells get observed.

The model rewards every unseen candidate cell that falls within an agent's
vision at the start of some later tick. A small cost per sub-tick spent
standing still early (and per tick spent clearing) breaks ties towards the
earliest, cheapest plan.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping

from ortools.sat.python import cp_model

from joint_planner.config.constants import MAX_AMOUNT, MIN_HORIZON, PRIORITY_REGION_RADIUS
from joint_planner.domain.actions import SKIP, AgentAction, Clear, Move
from joint_planner.domain.geometry import (
    Bounds,
    Position,
    neighbours_at_most,
    sub_closest,
)
from joint_planner.domain.snapshot import CellType, ExplorationSnapshot
from joint_planner.errors import DecodeError
from joint_planner.planning.literals import (
    Literal,
    add_exactly_one,
    add_or_and_equality_exactly_one,
    add_or_equality,
    add_or_implication,
    forbid,
    new_true_literal,
)
from joint_planner.planning.objective import TieredObjective
from joint_planner.planning.timeline import (
    AgentSubTime,
    AgentTime,
    CellAgentSubTime,
    CellAgentTime,
    CellTime,
    ReachabilityIndex,
    Timeline,
    clear_units,
)

logger = logging.getLogger(__name__)


def priority_region(
    goal_positions: Iterable[Position],
    cells: Mapping[Position, CellType],
    bounds: Bounds,
    radius: int = PRIORITY_REGION_RADIUS,
) -> frozenset[Position] | None:
    """Unseen cells within ``radius`` of known goal cells, or ``None`` when there are none."""
    region = {
        p
        for goal in goal_positions
        for p in neighbours_at_most(goal, radius, bounds)
        if p not in cells
    }
    return frozenset(region) if region else None


class ExplorationProblem:
    """CP-SAT model of one knowledge group's exploration tick."""

    def __init__(
        self, snapshot: ExplorationSnapshot, horizon: int, max_amount: int = MAX_AMOUNT
    ) -> None:
        snapshot.validate()
        self.snapshot = snapshot
        self.timeline = Timeline(max(horizon, MIN_HORIZON))
        self.max_amount = max_amount
        self.model = cp_model.CpModel()
        self._true = new_true_literal(self.model)

        self.on_vars: dict[CellAgentSubTime, Literal] = {}
        self.on_cells: dict[AgentSubTime, list[Position]] = {}
        self.clear_vars: dict[CellAgentTime, Literal] = {}
        self.new_vars: dict[Position, Literal] = {}
        self.move_vars: dict[AgentSubTime, Literal] = {}
        self.clear_any_vars: dict[AgentTime, Literal] = {}
        self.amount_vars: dict[CellTime, cp_model.IntVar] = {}
        self.objective = TieredObjective(["early_movement", "no_clearing", "observation"])

        started = time.perf_counter()
        self._build()
        proto = self.model.Proto()
        logger.debug(
            "exploration model built in %.3fs: %d variables, %d constraints",
            time.perf_counter() - started,
            len(proto.variables),
            len(proto.constraints),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def horizon(self) -> int:
        return self.timeline.horizon

    def _step_dist(self, agent: int) -> int:
        return self.snapshot.agents[agent].capability.step_dist

    def _next_key(self, key: CellAgentSubTime) -> CellAgentSubTime:
        t, s = Timeline.next_sub_time(self._step_dist(key.agent), key.t, key.s)
        return CellAgentSubTime(key.pos, key.agent, t, s)

    def _present(
        self, positions: Iterable[Position], agent: int, t: int, s: int
    ) -> list[Literal]:
        """Presence literals of ``agent`` at ``(t, s)`` for those ``positions`` it may occupy."""
        found = []
        for p in positions:
            var = self.on_vars.get(CellAgentSubTime(p, agent, t, s))
            if var is not None:
                found.append(var)
        return found

    def _candidate_cells(self) -> list[Position]:
        cells = self.snapshot.cells
        max_vision = max(a.capability.vision for a in self.snapshot.agents)
        candidates: dict[Position, None] = {}
        for pos in cells:
            for p in neighbours_at_most(pos, max_vision, self.snapshot.bounds):
                if p not in cells:
                    candidates[p] = None
        return list(candidates)

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def _build(self) -> None:
        snap = self.snapshot
        model = self.model
        bounds = snap.bounds
        timeline = self.timeline
        cells = snap.cells
        mutable = [p for p, c in cells.items() if c is CellType.MUTABLE_OBSTACLE]
        mutable_set = set(mutable)
        passable = ReachabilityIndex(
            bounds, (p for p, c in cells.items() if c is not CellType.FIXED_OBSTACLE)
        )
        clearable = ReachabilityIndex(bounds, mutable)
        units = [clear_units(a.capability.clear_probability, self.max_amount) for a in snap.agents]

        # Presence
        for agent, info in enumerate(snap.agents):
            step = info.capability.step_dist
            for t, s in timeline.sub_time_steps(step):
                key = AgentSubTime(agent, t, s)
                if t == 1 and s == 1:
                    self.on_cells[key] = [info.position]
                    self.on_vars[CellAgentSubTime(info.position, agent, t, s)] = self._true
                    continue
                reachable = passable.less(info.position, Timeline.full_time_step(step, t, s))
                if info.position not in snap.markers:
                    reachable = reachable - snap.markers
                self.on_cells[key] = sorted(reachable)
                for p in self.on_cells[key]:
                    self.on_vars[CellAgentSubTime(p, agent, t, s)] = model.NewBoolVar(
                        f"is_on_{key.suffix}_{p.x}_{p.y}"
                    )

        # Clearing (mutable obstacles only)
        for agent, info in enumerate(snap.agents):
            cap = info.capability
            for t in timeline.time_range(exclude_last=True):
                radius = cap.step_dist * (t - 1) + cap.clear_dist
                for p in sorted(clearable.within(info.position, radius)):
                    key = CellAgentTime(p, agent, t)
                    self.clear_vars[key] = model.NewBoolVar(f"clear_{key.suffix}")

        # Newly observed cells
        for cand in self._candidate_cells():
            var = model.NewBoolVar(f"new_{cand.x}_{cand.y}")
            self.new_vars[cand] = var
            observers: list[Literal] = []
            for agent, info in enumerate(snap.agents):
                seen_near = [
                    p for p in neighbours_at_most(cand, info.capability.vision, bounds) if p in cells
                ]
                for t in timeline.time_range(exclude_first=True):
                    observers.extend(self._present(seen_near, agent, t, 1))
            add_or_equality(model, var, observers)

        # Movement indicator: the agent leaves its current cell at this sub-tick
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.capability.step_dist, exclude_last=True):
                key = AgentSubTime(agent, t, s)
                var = model.NewBoolVar(f"move_{key.suffix}")
                self.move_vars[key] = var
                pairs = []
                for p in self.on_cells[key]:
                    here = CellAgentSubTime(p, agent, t, s)
                    there = self.on_vars.get(self._next_key(here))
                    pairs.append((self.on_vars[here], self._true if there is None else there.Not()))
                add_or_and_equality_exactly_one(model, var, pairs)

        for agent in range(len(snap.agents)):
            for t in timeline.time_range(exclude_last=True):
                key = AgentTime(agent, t)
                var = model.NewBoolVar(f"clear_any_{key.suffix}")
                self.clear_any_vars[key] = var
                clears = [
                    v for k, v in self.clear_vars.items() if k.agent == agent and k.t == t
                ]
                add_exactly_one(model, [var.Not()] + clears)

        # Accumulated clear mass
        for p in mutable:
            for t in timeline.time_range(exclude_first=True):
                key = CellTime(p, t)
                amount = model.NewIntVar(0, 2 * self.max_amount - 1, f"clear_amount_{key.suffix}")
                self.amount_vars[key] = amount
                terms = []
                for agent in range(len(snap.agents)):
                    for prev_t in range(1, t):
                        clear = self.clear_vars.get(CellAgentTime(p, agent, prev_t))
                        if clear is not None:
                            terms.append(units[agent] * clear)
                model.Add(amount == sum(terms))

        # Each agent is on exactly one cell per sub-tick
        for agent, info in enumerate(snap.agents):
            for t, s in timeline.sub_time_steps(info.capability.step_dist, exclude_first=True):
                key = AgentSubTime(agent, t, s)
                add_exactly_one(
                    model, [self.on_vars[CellAgentSubTime(p, agent, t, s)] for p in self.on_cells[key]]
                )

        # At most one agent per cell at the start of each tick
        for t in timeline.time_range(exclude_first=True):
            occupants: dict[Position, list[Literal]] = {}
            for agent in range(len(snap.agents)):
                for p in self.on_cells[AgentSubTime(agent, t, 1)]:
                    occupants.setdefault(p, []).append(self.on_vars[CellAgentSubTime(p, agent, t, 1)])
            for literals in occupants.values():
                if len(literals) > 1:
                    model.AddAtMostOne(literals)

        # Mutable obstacles are entered only once fully cleared
        for key, var in self.on_vars.items():
            if key.pos not in mutable_set or (key.t == 1 and key.s == 1):
                continue
            amount = self.amount_vars.get(CellTime(key.pos, key.t))
            if amount is None:
                forbid(model, var)
            else:
                model.Add(self.max_amount * var <= amount)

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

        # Moves within a tick form a prefix; clearing excludes moving
        for agent, info in enumerate(snap.agents):
            step = info.capability.step_dist
            for t in timeline.time_range(exclude_last=True):
                for s in range(1, step):
                    model.AddImplication(
                        self.move_vars[AgentSubTime(agent, t, s + 1)],
                        self.move_vars[AgentSubTime(agent, t, s)],
                    )
                model.AddImplication(
                    self.clear_any_vars[AgentTime(agent, t)],
                    self.move_vars[AgentSubTime(agent, t, 1)].Not(),
                )

        # Clearing needs proximity and an unfinished cell
        for key, var in self.clear_vars.items():
            cap = snap.agents[key.agent].capability
            if key.t > 1:
                add_or_implication(
                    model,
                    var,
                    self._present(
                        neighbours_at_most(key.pos, cap.clear_dist, bounds), key.agent, key.t, 1
                    ),
                )
            load = [self.max_amount * var]
            if key.t > 1:
                load.append(self.amount_vars[CellTime(key.pos, key.t)])
            for other in range(len(snap.agents)):
                other_key = CellAgentTime(key.pos, other, key.t)
                if other != key.agent and other_key in self.clear_vars:
                    load.append(units[other] * self.clear_vars[other_key])
            model.Add(sum(load) <= 2 * self.max_amount - 1)

        self._build_objective()

    def _observation_weight(self) -> int:
        """Weight of one new cell, larger than all movement and clearing rewards."""
        snap = self.snapshot
        timeline = self.timeline
        movement = sum(
            Timeline.full_time_step(a.capability.step_dist, t, s)
            for a in snap.agents
            for t in timeline.time_range(exclude_last=True)
            for s in timeline.sub_steps(a.capability.step_dist, t)
        )
        clearing = len(snap.agents) * sum(timeline.time_range(exclude_last=True))
        return movement + clearing

    def _build_objective(self) -> None:
        weight = self._observation_weight()
        region = self.snapshot.priority_region or frozenset()
        for pos, var in self.new_vars.items():
            self.objective.add("observation", var, 2 * weight if pos in region else weight)
        for key, var in self.move_vars.items():
            step = self._step_dist(key.agent)
            self.objective.add_negated(
                "early_movement", var, Timeline.full_time_step(step, key.t, key.s)
            )
        for key, var in self.clear_any_vars.items():
            self.objective.add_negated("no_clearing", var, key.t)
        self.objective.maximize(self.model)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def configure(self, parameters: object) -> None:
        """Model-specific solver parameters."""
        parameters.symmetry_level = 1  # type: ignore[attr-defined]
        parameters.max_presolve_iterations = 1  # type: ignore[attr-defined]

    @property
    def agent_count(self) -> int:
        return len(self.snapshot.agents)

    def decode(self, solver: cp_model.CpSolver) -> tuple[tuple[AgentAction, ...], tuple[()]]:
        """First-tick action of every agent."""
        return tuple(self._decode_agent(solver, a) for a in range(self.agent_count)), ()

    def _decode_agent(self, solver: cp_model.CpSolver, agent: int) -> AgentAction:
        info = self.snapshot.agents[agent]
        bounds = self.snapshot.bounds
        clears = [
            key.pos
            for key, var in self.clear_vars.items()
            if key.agent == agent and key.t == 1 and solver.BooleanValue(var)
        ]
        if len(clears) > 1:
            raise DecodeError(f"agent {agent} clears {len(clears)} cells at once")

        step = info.capability.step_dist
        offsets: list[Position] = []
        prev = info.position
        for s in self.timeline.sub_steps(step, 1):
            t_next, s_next = Timeline.next_sub_time(step, 1, s)
            key = AgentSubTime(agent, t_next, s_next)
            bound = [
                p
                for p in self.on_cells[key]
                if solver.BooleanValue(self.on_vars[CellAgentSubTime(p, agent, t_next, s_next)])
            ]
            if len(bound) != 1:
                raise DecodeError(f"agent {agent} occupies {len(bound)} cells at {key}")
            offsets.append(sub_closest(bound[0], prev, bounds))
            prev = bound[0]

        if clears:
            if not offsets[0].is_zero:
                raise DecodeError(f"agent {agent} both clears and moves")
            return Clear(sub_closest(clears[0], info.position, bounds))
        if offsets[0].is_zero:
            return SKIP
        while offsets[-1].is_zero:
            offsets.pop()
        return Move(tuple(offsets))
