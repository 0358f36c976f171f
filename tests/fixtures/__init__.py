"""
Test fixtures for deterministic testing.

This module provides:
- datasets: record builders and the named scenario datasets
"""

from .datasets import (
    build_dataset,
    entry,
    member,
    planned,
    project,
    scenario_a,
    scenario_b,
    scenario_c,
    seed_store,
    team_month,
)

__all__ = [
    "build_dataset",
    "entry",
    "member",
    "planned",
    "project",
    "scenario_a",
    "scenario_b",
    "scenario_c",
    "seed_store",
    "team_month",
]
