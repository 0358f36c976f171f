"""Narrative summaries: observation registry, phrasing tables and the generator."""

from .generator import NarrativeGenerator, select_observations
from .observations import NARRATIVE_OBSERVATIONS, OBSERVATION_CATALOG, describe_observations

__all__ = [
    "NarrativeGenerator",
    "select_observations",
    "describe_observations",
    "NARRATIVE_OBSERVATIONS",
    "OBSERVATION_CATALOG",
]
