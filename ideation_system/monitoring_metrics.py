from prometheus_client import Counter, Histogram

TASKS_TOTAL     = Counter("ideation_tasks_total", "Executed tasks", ["status"])
TASK_LATENCY    = Histogram("ideation_task_seconds", "Task latency")
TASK_RETRIES    = Counter("ideation_task_retries_total", "Retried task attempts")

ROUNDS_TOTAL    = Counter("ideation_rounds_total", "Completed rounds", ["pipeline", "outcome"])
TERMINATIONS    = Counter("ideation_terminations_total", "Run terminations", ["pipeline", "reason"])

SEARCH_REQUESTS = Counter("search_requests_total", "Search requests", ["provider"])
SEARCH_ERRORS   = Counter("search_errors_total",   "Search errors",   ["provider"])
SEARCH_LATENCY  = Histogram("search_request_seconds", "Search latency", ["provider"])

GENERATION_FALLBACKS = Counter("generation_fallbacks_total", "Unparseable generation responses", ["stage"])
