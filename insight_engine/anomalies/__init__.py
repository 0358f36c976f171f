"""
Anomaly detection: rule registry, rule engine, history and status diff.

Import from the submodules directly (``insight_engine.anomalies.engine``,
``insight_engine.anomalies.history``); the store imports the registry
lazily, so this package keeps its own imports out of the way.
"""
