"""Boolean reformulations shared by the exploration and tasking models.

Every helper posts clauses on a ``cp_model.CpModel``. ``target`` is always a
literal, pairs are ``(l1, l2)`` conjunctions, and an optional
``enforcement`` literal restricts the whole relation to models where it holds.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from ortools.sat.python import cp_model

Literal = cp_model.IntVar
LiteralPair = tuple[Literal, Literal]


def new_true_literal(model: cp_model.CpModel, name: str = "true") -> Literal:
    """A Boolean variable fixed to true."""
    literal = model.NewBoolVar(name)
    model.AddBoolOr([literal])
    return literal


def _negated_enforcement(enforcement: Literal | None) -> list[Literal]:
    return [] if enforcement is None else [enforcement.Not()]


def add_and_equality(
    model: cp_model.CpModel,
    target: Literal,
    literals: Iterable[Literal],
    enforcement: Literal | None = None,
) -> None:
    """``target == AND(literals)`` (when ``enforcement`` holds)."""
    literals = list(literals)
    if literals:
        constraint = model.AddBoolAnd(literals)
        constraint.OnlyEnforceIf([target] + ([] if enforcement is None else [enforcement]))
    model.AddBoolOr([target] + _negated_enforcement(enforcement) + [lit.Not() for lit in literals])


def add_or_equality(
    model: cp_model.CpModel,
    target: Literal,
    literals: Iterable[Literal],
    enforcement: Literal | None = None,
) -> None:
    """``target == OR(literals)`` (when ``enforcement`` holds)."""
    literals = list(literals)
    model.AddBoolOr([target.Not()] + _negated_enforcement(enforcement) + literals)
    if literals:
        constraint = model.AddBoolAnd([lit.Not() for lit in literals])
        constraint.OnlyEnforceIf([target.Not()] + ([] if enforcement is None else [enforcement]))


def add_or_implication(
    model: cp_model.CpModel, target: Literal, literals: Iterable[Literal]
) -> None:
    """``target -> OR(literals)``."""
    model.AddBoolOr([target.Not()] + list(literals))


def add_or_and_equality_exactly_one(
    model: cp_model.CpModel, target: Literal, pairs: Iterable[LiteralPair]
) -> None:
    """``target == OR(l1 and l2)`` given that exactly one ``l1`` holds."""
    for l1, l2 in pairs:
        model.AddBoolOr([target, l1.Not(), l2.Not()])
        model.AddBoolOr([target.Not(), l1.Not(), l2])


def add_or_and_equality_at_most_one(
    model: cp_model.CpModel,
    target: Literal,
    pairs: Iterable[LiteralPair],
    enforcement: Literal | None = None,
) -> None:
    """``target == OR(l1 and l2)`` given that at most one ``l1`` holds."""
    pairs = list(pairs)
    prefix = _negated_enforcement(enforcement)
    for l1, l2 in pairs:
        model.AddBoolOr(prefix + [target, l1.Not(), l2.Not()])
        model.AddBoolOr(prefix + [target.Not(), l1.Not(), l2])
    model.AddBoolOr(prefix + [target.Not()] + [l1 for l1, _ in pairs])


def add_or_and_implication_at_most_one(
    model: cp_model.CpModel, target: Literal, pairs: Iterable[LiteralPair]
) -> None:
    """``target -> OR(l1 and l2)`` given that at most one ``l1`` holds."""
    pairs = list(pairs)
    for l1, l2 in pairs:
        model.AddBoolOr([target.Not(), l1.Not(), l2])
    model.AddBoolOr([target.Not()] + [l1 for l1, _ in pairs])


def add_or_or_and_or_implication_at_most_one(
    model: cp_model.CpModel,
    target: Literal,
    singles: Iterable[Literal],
    pairs: Iterable[tuple[Literal, Sequence[Literal]]],
) -> None:
    """``target -> OR(singles) or OR(l1 and OR(rest))`` given that at most one ``l1`` holds."""
    pairs = list(pairs)
    for l1, rest in pairs:
        model.AddBoolOr([target.Not(), l1.Not()] + list(rest))
    model.AddBoolOr([target.Not()] + list(singles) + [l1 for l1, _ in pairs])


def forbid(model: cp_model.CpModel, literal: Literal) -> None:
    model.AddBoolOr([literal.Not()])


def add_at_most_one_if_many(model: cp_model.CpModel, literals: Iterable[Literal]) -> None:
    """At-most-one that skips trivially satisfied singleton sets."""
    literals = list(literals)
    if len(literals) > 1:
        model.AddAtMostOne(literals)


def add_exactly_one(model: cp_model.CpModel, literals: Iterable[Literal]) -> None:
    model.AddExactlyOne(list(literals))
