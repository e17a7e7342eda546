"""Visualization layer: static plan rendering."""

from joint_planner.viz.render import render_plan

__all__ = ["render_plan"]
