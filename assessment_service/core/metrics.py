"""Application metrics using the Prometheus client library.

Every metric the service exposes is declared here, in one inventory.
The owning modules import a metric and increment or observe it at the
point of action; /metrics serves the current values to the scraper.

HTTP METRICS
------------
Filled in by MetricsMiddleware for every request except /metrics.

  http_requests_total{method, endpoint, status_code}     counter
  http_request_duration_seconds{method, endpoint}        histogram
  http_active_requests                                   gauge

``endpoint`` is the route template, so all assignments share one
series per route.

ASSESSMENT FLOW METRICS
-----------------------
Filled in by AssessmentFlowController.

  assessment_answers_recorded_total{question_type}
      One per accepted answer, whether or not the write succeeded.

  assessment_answer_sync_failures_total
      Answer writes that failed and left the answer dirty. A rise here
      with a flat answers_recorded rate points at the data store.

  assessment_completions_total{outcome}
      completed | already_completed | incomplete | failed. ``failed``
      counts completion runs that stopped at a step; the step name is
      in the log line and in the 502 response.

Useful queries:

  rate(assessment_answer_sync_failures_total[5m])
    / rate(assessment_answers_recorded_total[5m])
  -> fraction of answers whose first write failed

  sum by (outcome) (increase(assessment_completions_total[1h]))
  -> completion attempts in the last hour, split by outcome
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Assessment flow metrics
# ---------------------------------------------------------------------------

ANSWERS_RECORDED = Counter(
    "assessment_answers_recorded_total",
    "Answers recorded by the flow controller",
    ["question_type"],  # multiple_choice|yes_no|free_text
)

ANSWER_SYNC_FAILURES = Counter(
    "assessment_answer_sync_failures_total",
    "Remote answer writes that failed and left the answer dirty",
)

COMPLETIONS = Counter(
    "assessment_completions_total",
    "Completion attempts by outcome",
    ["outcome"],  # completed|already_completed|incomplete|failed
)
