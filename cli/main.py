#!/usr/bin/env python3
"""
Resource Insight Engine CLI - metrics, anomalies and narratives from the terminal.

    python -m cli.main metrics 2026-01 [R1337]
"""

import sys

from insight_engine import config
from insight_engine.anomalies.engine import AnomalyEngine
from insight_engine.anomalies.history import AnomalyHistory
from insight_engine.anomalies.rules import describe_rules
from insight_engine.metrics import MetricEngine, MetricHistory, kpi_cards
from insight_engine.narrative import NarrativeGenerator, describe_observations
from insight_engine.observability import configure_logging
from insight_engine.periods import is_valid_period, period_label
from insight_engine.store import RecordStore

SEVERITY_COLORS = {
    "alert": "\033[91m",  # Red
    "warning": "\033[93m",  # Yellow
}
RESET = "\033[0m"

STATUS_COLORS = {
    "critical": "\033[91m",  # Red
    "warning": "\033[93m",  # Yellow
    "good": "\033[92m",  # Green
}

_FORMAT_SUFFIX = {"percent": "%", "hours": "h"}

# Raw hour totals behind the KPIs
_HOUR_TOTALS = ("npd_hours", "sustaining_hours", "sprint_hours", "firefighting_hours")


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [
            max(len(str(row[i])) for row in [headers] + rows)
            for i in range(len(headers))
        ]

    # Header
    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    # Rows
    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def severity_color(severity: str) -> str:
    """Return ANSI color code for severity."""
    return SEVERITY_COLORS.get(severity, RESET)


def _period_and_project(args, usage: str) -> tuple[str, str | None] | None:
    if not args or not is_valid_period(args[0]):
        print(f"Usage: {usage}")
        print("PERIOD must be YYYY-MM.")
        return None
    return args[0], (args[1] if len(args) > 1 else None)


def cmd_metrics(args):
    """Show KPI values and status for a period."""
    parsed = _period_and_project(args, "metrics PERIOD [PROJECT]")
    if parsed is None:
        return
    period, project = parsed

    store = RecordStore()
    result = MetricEngine(store.load_dataset()).compute(period, project)

    print_header(f"METRICS — {period_label(period)}" + (f" — {project}" if project else ""))
    rows = []
    for card in kpi_cards(result, project):
        color = STATUS_COLORS.get(card["status"], RESET)
        value = card["display"] + _FORMAT_SUFFIX.get(card["format"], "")
        rows.append([card["label"], value, f"{color}{card['status']}{RESET}"])
    print_table(["KPI", "Value", "Status"], rows)

    totals = result.to_dict()
    print()
    print_table(["Hours", "Total"], [[name, f"{totals[name]:,.1f}"] for name in _HOUR_TOTALS])


def cmd_anomalies(args):
    """Show findings for a period with new/recurring/resolved status."""
    parsed = _period_and_project(args, "anomalies PERIOD [PROJECT]")
    if parsed is None:
        return
    period, project = parsed

    store = RecordStore()
    findings = AnomalyHistory(store).with_status(period, project)

    print_header(f"ANOMALIES — {period_label(period)}" + (f" — {project}" if project else ""))
    if not findings:
        print("No anomalies detected.")
        return

    for a in findings:
        streak = f" ({a.recurring_months} mo)" if a.recurring_months else ""
        print(f"{severity_color(a.severity)}[{a.severity.upper()}]{RESET} {a.title}  <{a.status}{streak}>")
        print(f"    {a.detail}")


def cmd_live(args):
    """Show live findings with their threshold comparisons."""
    parsed = _period_and_project(args, "live PERIOD [PROJECT]")
    if parsed is None:
        return
    period, project = parsed

    store = RecordStore()
    findings = AnomalyEngine(store.load_dataset(), store.load_threshold_overrides()).detect(period, project)

    print_header(f"LIVE ANOMALIES — {period_label(period)}")
    rows = [
        [f.severity, f.type, f.title[:45], (f.threshold_comparison or "-")[:50]]
        for f in findings
    ]
    if rows:
        print_table(["Severity", "Type", "Title", "Comparison"], rows)
    else:
        print("No anomalies detected.")


def cmd_history(args):
    """Show stored metric history for a project filter."""
    project = args[0] if args else None
    snapshots = MetricHistory(RecordStore()).series(project)

    print_header("METRIC HISTORY" + (f" — {project}" if project else ""))
    if not snapshots:
        print("No history. Run 'refresh' first.")
        return

    rows = [
        [
            s.month,
            f"{s.results.total_hours_logged:,.1f}",
            f"{s.results.team_utilization * 100:.0f}%",
            f"{s.results.npd_focus * 100:.0f}%",
            f"{s.results.firefighting_load * 100:.0f}%",
            s.computed_at[:19],
        ]
        for s in snapshots
    ]
    print_table(["Period", "Hours", "Util", "NPD", "FF", "Computed"], rows)


def cmd_refresh(args):
    """Refresh metric and anomaly history for every period with data."""
    project = args[0] if args else None
    store = RecordStore()

    metrics = MetricHistory(store).refresh(project)
    anomalies = AnomalyHistory(store).refresh_all(project)

    print_header("HISTORY REFRESHED")
    print_table(
        ["History", "Inserted", "Updated", "Deleted"],
        [
            ["metrics", metrics["inserted"], metrics["updated"], metrics["deleted"]],
            ["anomalies", anomalies["inserted"], anomalies["updated"], anomalies["deleted"]],
        ],
    )


def cmd_narrative(args):
    """Show the narrative summary for a period."""
    parsed = _period_and_project(args, "narrative PERIOD [PROJECT]")
    if parsed is None:
        return
    period, project = parsed

    store = RecordStore()
    summary = NarrativeGenerator(store.load_dataset(), store.load_narrative_config()).generate(
        period, project
    )

    print_header(f"SUMMARY — {period_label(period)}" + (f" — {project}" if project else ""))
    print(f"\n{summary.paragraph}\n")
    for highlight in summary.highlights:
        print(f"  • {highlight}")


def cmd_rules(args):
    """Show anomaly rules with effective thresholds."""
    rules = describe_rules(RecordStore().load_threshold_overrides())

    print_header("ANOMALY RULES")
    rows = []
    for rule in rules:
        params = ", ".join(
            f"{p['key']}={p['value']}{'*' if p['is_custom'] else ''}" for p in rule["parameters"]
        )
        rows.append(["on" if rule["enabled"] else "off", rule["severity"], rule["rule_id"], params or "-"])
    print_table(["", "Severity", "Rule", "Thresholds (* = custom)"], rows)


def cmd_observations(args):
    """Show narrative observations with their current phrasing."""
    observations = describe_observations(RecordStore().load_narrative_config())

    print_header("NARRATIVE OBSERVATIONS")
    rows = []
    for obs in sorted(observations, key=lambda o: (o["priority"] is None, o["priority"] or 0)):
        rank = "-" if obs["priority"] is None else obs["priority"] + 1
        rows.append(["on" if obs["enabled"] else "off", rank, obs["key"], "/".join(obs["modes"])])
    print_table(["", "#", "Observation", "Modes"], rows)

    for obs in observations:
        print(f"\n  {obs['label']}")
        print(f"    team:    {obs['team_phrasing']}")
        if obs["project_phrasing"]:
            print(f"    project: {obs['project_phrasing']}")


def cmd_help(args):
    """Show help."""
    print_header("RESOURCE INSIGHT ENGINE CLI")
    print("""
COMMANDS:

  metrics PERIOD [PROJECT]     Show KPIs with good/warning/critical status
  anomalies PERIOD [PROJECT]   Show findings with new/recurring/resolved status
  live PERIOD [PROJECT]        Show live findings with threshold comparisons
  narrative PERIOD [PROJECT]   Show the narrative summary
  history [PROJECT]            Show stored metric history
  refresh [PROJECT]            Refresh metric and anomaly history
  rules                        Show anomaly rules and thresholds
  observations                 Show narrative observations and phrasing
  help                         Show this help

PERIOD is YYYY-MM. PROJECT is a parent code (R1337 includes R1337.1).
""")


COMMANDS = {
    "metrics": cmd_metrics,
    "m": cmd_metrics,
    "anomalies": cmd_anomalies,
    "a": cmd_anomalies,
    "live": cmd_live,
    "narrative": cmd_narrative,
    "n": cmd_narrative,
    "history": cmd_history,
    "refresh": cmd_refresh,
    "rules": cmd_rules,
    "observations": cmd_observations,
    "help": cmd_help,
    "h": cmd_help,
}


def main():
    """Main entry point."""
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)

    if len(sys.argv) < 2:
        cmd_help([])
        return

    cmd = sys.argv[1]
    args = sys.argv[2:]

    if cmd in COMMANDS:
        COMMANDS[cmd](args)
    else:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")


if __name__ == "__main__":
    main()
