"""Tiered linear objectives approximating a strict priority order.

CP-SAT optimizes a single linear expression, so priorities are encoded by
magnitude: every tier's multiplier is at least the maximum total the lower
tiers can contribute. Tiers are declared lowest first; terms carry their
final integer coefficient (multiplier already applied).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ortools.sat.python import cp_model

from joint_planner.planning.literals import Literal


@dataclass
class WeightedTier:
    """One priority level and the terms collected for it."""

    name: str
    rank: int
    terms: list[tuple[Literal, int, bool]] = field(default_factory=list)
    """``(variable, coefficient, negated)`` triples."""

    @property
    def upper_bound(self) -> int:
        """Largest value the tier can add to the objective."""
        return sum(coef for _, coef, _ in self.terms if coef > 0)

    @property
    def lower_bound(self) -> int:
        return sum(coef for _, coef, _ in self.terms if coef < 0)


class TieredObjective:
    """Ordered collection of :class:`WeightedTier` objects."""

    def __init__(self, tier_names: Sequence[str]) -> None:
        if len(set(tier_names)) != len(tier_names):
            raise ValueError("tier names must be unique")
        self.tiers = {name: WeightedTier(name, rank) for rank, name in enumerate(tier_names)}

    def add(self, tier: str, variable: Literal, coefficient: int) -> None:
        if coefficient:
            self.tiers[tier].terms.append((variable, int(coefficient), False))

    def add_negated(self, tier: str, variable: Literal, coefficient: int) -> None:
        """Reward ``not variable``; ``variable`` must be a plain Boolean variable."""
        if coefficient:
            self.tiers[tier].terms.append((variable, int(coefficient), True))

    def span_below(self, tier: str) -> int:
        """Width of the range all tiers ranked below ``tier`` can cover together."""
        rank = self.tiers[tier].rank
        return sum(t.upper_bound - t.lower_bound for t in self.tiers.values() if t.rank < rank)

    def linear_terms(self) -> tuple[list[Literal], list[int], int]:
        """Flatten to ``(variables, coefficients, constant)``."""
        variables: list[Literal] = []
        coefficients: list[int] = []
        constant = 0
        for tier in self.tiers.values():
            for variable, coef, negated in tier.terms:
                variables.append(variable)
                if negated:
                    # coef * (1 - x)
                    constant += coef
                    coefficients.append(-coef)
                else:
                    coefficients.append(coef)
        return variables, coefficients, constant

    def maximize(self, model: cp_model.CpModel) -> None:
        variables, coefficients, constant = self.linear_terms()
        if not variables:
            return
        model.Maximize(cp_model.LinearExpr.WeightedSum(variables, coefficients) + constant)
