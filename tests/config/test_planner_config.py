"""Tests for joint_planner.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from joint_planner.config import (
    EXPLORATION_HORIZON,
    EXPLORATION_HORIZON_LARGE_TEAM,
    LARGE_TEAM_SIZE,
    MAX_AMOUNT,
    MIN_HORIZON,
    TASKING_HORIZON,
    TASKING_HORIZON_LARGE_TEAM,
    ExplorationConfig,
    PlannerConfig,
    SolverConfig,
    TaskingConfig,
)


def test_horizon_constants_are_ordered() -> None:
    assert MIN_HORIZON <= EXPLORATION_HORIZON_LARGE_TEAM <= EXPLORATION_HORIZON
    assert MIN_HORIZON <= TASKING_HORIZON_LARGE_TEAM <= TASKING_HORIZON


def test_max_amount_is_positive_int() -> None:
    assert isinstance(MAX_AMOUNT, int) and MAX_AMOUNT > 0


class TestConfigValidation:
    def test_rejects_zero_horizon(self) -> None:
        with pytest.raises(ValueError, match="horizon"):
            ExplorationConfig(horizon=0)

    def test_rejects_non_positive_budget(self) -> None:
        with pytest.raises(ValueError, match="budget_seconds"):
            TaskingConfig(budget_seconds=0.0)

    def test_rejects_negative_workers(self) -> None:
        with pytest.raises(ValueError, match="num_workers"):
            SolverConfig(num_workers=-1)

    def test_rejects_zero_pool_size(self) -> None:
        with pytest.raises(ValueError, match="max_workers"):
            PlannerConfig(max_workers=0)


class TestFromTeamSize:
    def test_small_team_uses_default_horizons(self) -> None:
        config = PlannerConfig.from_team_size(LARGE_TEAM_SIZE)
        assert config.exploration.horizon == EXPLORATION_HORIZON
        assert config.tasking.horizon == TASKING_HORIZON

    def test_large_team_uses_short_horizons(self) -> None:
        config = PlannerConfig.from_team_size(LARGE_TEAM_SIZE + 1)
        assert config.exploration.horizon == EXPLORATION_HORIZON_LARGE_TEAM
        assert config.tasking.horizon == TASKING_HORIZON_LARGE_TEAM

    def test_overrides_are_forwarded(self) -> None:
        config = PlannerConfig.from_team_size(3, max_workers=2)
        assert config.max_workers == 2


class TestFromMapping:
    def test_empty_mapping_gives_defaults(self) -> None:
        assert PlannerConfig.from_mapping({}) == PlannerConfig()

    def test_sections_are_coerced(self) -> None:
        config = PlannerConfig.from_mapping(
            {
                "exploration": {"horizon": "4", "budget_seconds": 1},
                "tasking": {"max_amount": 20.0},
                "solver": {"log_search_progress": "yes", "num_workers": 8},
                "dump_dir": "dumps",
            }
        )
        assert config.exploration.horizon == 4
        assert config.exploration.budget_seconds == 1.0
        assert config.tasking.max_amount == 20
        assert config.solver.log_search_progress is True
        assert config.solver.num_workers == 8
        assert config.dump_dir == Path("dumps")

    def test_unknown_keys_are_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown config keys: horizon"):
            PlannerConfig.from_mapping({"horizon": 3})

    def test_non_integer_float_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="integer"):
            PlannerConfig.from_mapping({"tasking": {"horizon": 2.5}})

    def test_bad_boolean_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="boolean"):
            PlannerConfig.from_mapping({"solver": {"log_search_progress": "maybe"}})

    def test_section_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            PlannerConfig.from_mapping({"solver": [1, 2]})
