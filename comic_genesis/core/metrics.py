from __future__ import annotations

from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

RUN_STAGE_DURATION = Histogram(
    "comic_genesis_run_stage_duration_seconds",
    "Duration (seconds) broken down by run stage.",
    ["stage"],
    registry=registry,
)

RUNS_TOTAL = Counter(
    "comic_genesis_runs_total",
    "Completed runs partitioned by outcome.",
    ["outcome"],
    registry=registry,
)

JSON_PARSE_FAILURES = Counter(
    "comic_genesis_json_parse_failures_total",
    "Number of times parsing JSON from Gemini failed, labeled by the extraction tier.",
    ["tier"],
    registry=registry,
)

GEMINI_CALL_DURATION = Histogram(
    "comic_genesis_gemini_call_duration_seconds",
    "Latency for Gemini API calls per operation.",
    ["operation"],
    registry=registry,
)

GEMINI_CALLS_TOTAL = Counter(
    "comic_genesis_gemini_calls_total",
    "Total Gemini API calls partitioned by operation and status.",
    ["operation", "status"],
    registry=registry,
)


@contextmanager
def track_run_stage(stage: str):
    with RUN_STAGE_DURATION.labels(stage=stage).time():
        yield


def record_run_outcome(outcome: str) -> None:
    RUNS_TOTAL.labels(outcome=outcome).inc()


def increment_json_parse_failure(tier: str) -> None:
    JSON_PARSE_FAILURES.labels(tier=tier).inc()


@contextmanager
def track_gemini_call(operation: str):
    timer = GEMINI_CALL_DURATION.labels(operation=operation).time()
    timer.__enter__()
    try:
        yield
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="success").inc()
    except Exception:
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="error").inc()
        raise
    finally:
        timer.__exit__(None, None, None)


def get_metrics_payload() -> bytes:
    return generate_latest(registry)
