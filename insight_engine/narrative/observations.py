"""
Narrative observation registry and phrasing tables.

Team-mode sentences are looked up in a small table per observation keyed
by (name_individuals, include_specific_numbers); every cell is filled so
each tone combination can be read and tested on its own. Project-mode
sentences have a single phrasing.
"""

from dataclasses import dataclass

from insight_engine.models import NarrativeConfig

TEAM = "team"
PROJECT = "project"


@dataclass(frozen=True)
class ObservationDefinition:
    key: str
    label: str
    modes: tuple[str, ...]


NARRATIVE_OBSERVATIONS: tuple[ObservationDefinition, ...] = (
    ObservationDefinition(
        key="busFactorRisks",
        label="Single Point of Failure Risk",
        modes=(TEAM, PROJECT),
    ),
    ObservationDefinition(
        key="firefightingLoad",
        label="Firefighting Load",
        modes=(TEAM,),
    ),
    ObservationDefinition(
        key="focusFragmentation",
        label="Focus / Context Switching",
        modes=(TEAM, PROJECT),
    ),
    ObservationDefinition(
        key="overtimeIndicators",
        label="Overtime Indicators",
        modes=(TEAM,),
    ),
    ObservationDefinition(
        key="meetingTax",
        label="Meeting Tax",
        modes=(TEAM,),
    ),
    ObservationDefinition(
        key="projectOverBurn",
        label="Project Over-Burning",
        modes=(TEAM, PROJECT),
    ),
    ObservationDefinition(
        key="projectUnderBurn",
        label="Project Under-Burning",
        modes=(TEAM, PROJECT),
    ),
    ObservationDefinition(
        key="labTechContribution",
        label="Lab Technician Contribution",
        modes=(TEAM,),
    ),
)

OBSERVATION_CATALOG: dict[str, ObservationDefinition] = {o.key: o for o in NARRATIVE_OBSERVATIONS}


def observation_keys_for_mode(mode: str) -> frozenset[str]:
    return frozenset(o.key for o in NARRATIVE_OBSERVATIONS if mode in o.modes)


# =============================================================================
# TEAM PHRASING: (name_individuals, include_specific_numbers) -> template
# =============================================================================

ToneKey = tuple[bool, bool]

_FIREFIGHTING_NUMBERS = "unplanned firefighting reached {pct}%{trend}"
_FIREFIGHTING_QUALITATIVE = "unplanned firefighting exceeded the target level"

_BUS_FACTOR_QUALITATIVE = (
    "several projects have single-point-of-failure risk with insufficient contributor diversity"
)

_OVER_BURN_QUALITATIVE = "{some_projects} significantly over planned hours"
_UNDER_BURN_QUALITATIVE = "{some_projects} significantly under planned pace"

_LAB_TECH_NUMBERS = (
    "lab technicians contributed {hours} hours of support across {count} project{plural}"
)
_LAB_TECH_QUALITATIVE = "lab technicians contributed additional support hours across several projects"

TEAM_PHRASES: dict[str, dict[ToneKey, str]] = {
    "firefightingLoad": {
        (True, True): _FIREFIGHTING_NUMBERS,
        (True, False): _FIREFIGHTING_QUALITATIVE,
        (False, True): _FIREFIGHTING_NUMBERS,
        (False, False): _FIREFIGHTING_QUALITATIVE,
    },
    "busFactorRisks": {
        (True, True): (
            "{count} project{plural} — {projects}{more} — {verb} single-point-of-failure risk "
            "with only one engineer contributing"
        ),
        (True, False): _BUS_FACTOR_QUALITATIVE,
        (False, True): (
            "{count} project{plural_verb} single-point-of-failure risk with insufficient "
            "contributor diversity"
        ),
        (False, False): _BUS_FACTOR_QUALITATIVE,
    },
    "focusFragmentation": {
        (True, True): (
            "{person} shows significant context fragmentation, averaging {avg:.1f} projects "
            "per day across {count} different work streams"
        ),
        (True, False): (
            "{person} shows significant context fragmentation across a large number of work streams"
        ),
        (False, True): (
            "one engineer shows significant context fragmentation, averaging {avg:.1f} projects "
            "per day across {count} work streams"
        ),
        (False, False): (
            "one engineer shows significant context fragmentation across a large number of "
            "work streams"
        ),
    },
    "overtimeIndicators": {
        (True, True): (
            "{person} logged overtime on {days} days this month, which may indicate "
            "unsustainable workload"
        ),
        (True, False): (
            "{person} logged overtime on multiple days, which may indicate unsustainable workload"
        ),
        (False, True): (
            "a team member logged overtime on {days} days this month, which may indicate "
            "unsustainable workload"
        ),
        (False, False): (
            "a team member logged overtime on multiple days, which may indicate "
            "unsustainable workload"
        ),
    },
    "meetingTax": {
        (True, True): (
            "{person} spent {pct}% of capacity in meetings, leaving limited time for "
            "engineering work{trend}"
        ),
        (True, False): "{person} spent a disproportionate amount of time in meetings",
        (False, True): "one engineer spent {pct}% of capacity in meetings{trend}",
        (False, False): "one engineer spent a disproportionate amount of time in meetings",
    },
    "projectOverBurn": {
        (True, True): "{project} is over-burning at {pct}% of planned hours",
        (True, False): _OVER_BURN_QUALITATIVE,
        (False, True): "{count} project{plural_verb} significantly over planned hours",
        (False, False): _OVER_BURN_QUALITATIVE,
    },
    "projectUnderBurn": {
        (True, True): "{project} is significantly under planned pace at {pct}% of planned hours",
        (True, False): _UNDER_BURN_QUALITATIVE,
        (False, True): "{count} project{plural_verb} significantly under planned pace",
        (False, False): _UNDER_BURN_QUALITATIVE,
    },
    "labTechContribution": {
        (True, True): _LAB_TECH_NUMBERS,
        (True, False): _LAB_TECH_QUALITATIVE,
        (False, True): _LAB_TECH_NUMBERS,
        (False, False): _LAB_TECH_QUALITATIVE,
    },
}

# =============================================================================
# PROJECT PHRASING
# =============================================================================

PROJECT_PHRASES: dict[str, str] = {
    "busFactorRisks": (
        "This project depends on a single contributor ({person}), creating key-person risk — "
        "{person} accounted for {pct}% of all hours"
    ),
    "focusFragmentation": (
        "{person}, the primary contributor, is also active on {count} other projects this month, "
        "which may affect throughput"
    ),
    "projectOverBurn": (
        "Hours are running {pct}% above plan — {actual}h logged against {planned}h planned"
    ),
    "projectUnderBurn": "Only {pct}% of planned hours have been logged — {actual}h of {planned}h",
}


def phrase_team(key: str, name_individuals: bool, include_specific_numbers: bool, **values) -> str:
    """Render a team-mode observation sentence for the given tone flags."""
    template = TEAM_PHRASES[key][(name_individuals, include_specific_numbers)]
    return template.format(**values)


def phrase_project(key: str, **values) -> str:
    return PROJECT_PHRASES[key].format(**values)


def describe_observations(config: NarrativeConfig) -> list[dict]:
    """
    Registry merged with the narrative config, for display.

    Phrasings are the templates the generator renders under the config's
    current tone flags, so the listing always matches real output.
    """
    tone = (config.name_individuals, config.include_specific_numbers)
    priority = {key: rank for rank, key in enumerate(config.observation_priority)}
    return [
        {
            "key": o.key,
            "label": o.label,
            "modes": list(o.modes),
            "enabled": config.is_enabled(o.key),
            "priority": priority.get(o.key),
            "team_phrasing": TEAM_PHRASES[o.key][tone],
            "project_phrasing": PROJECT_PHRASES.get(o.key),
        }
        for o in NARRATIVE_OBSERVATIONS
    ]
