"""Prometheus counters for the session lifecycle (exposed at /metrics)."""

from prometheus_client import Counter

LOGINS = Counter("gatekeeper_logins_total", "Login attempts by outcome", ["result"])
ROTATIONS = Counter("gatekeeper_rotations_total", "Renewal token rotations by outcome", ["result"])
LOGOUTS = Counter("gatekeeper_logouts_total", "Logouts by scope", ["scope"])
PURGE_RUNS = Counter("gatekeeper_purge_runs_total", "Expired renewal record purges by outcome", ["result"])
PURGED_RECORDS = Counter("gatekeeper_purged_records_total", "Expired renewal records deleted")
