"""Project code hierarchy: ``R1337.1`` belongs to parent ``R1337``."""


def project_parent(project_id: str) -> str:
    """R1337.1 -> R1337, R1430.1A -> R1430, S0062 -> S0062"""
    return project_id.split(".", 1)[0]


def matches_project(project_id: str, project_filter: str | None) -> bool:
    """True when no filter is given, or the code is the filter or one of its children."""
    if not project_filter:
        return True
    return project_id == project_filter or project_parent(project_id) == project_filter
