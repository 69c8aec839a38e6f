"""Monitoring configuration for the bot."""
from prometheus_client import Counter, start_http_server

# Revision metrics
answers_submitted = Counter(
    "wordrev_answers_submitted_total",
    "Total number of answers submitted during revision",
    ["outcome"],
)

stage_transitions = Counter(
    "wordrev_stage_transitions_total",
    "Total number of words moved between revision stages",
    ["from_stage", "to_stage"],
)

hints_revealed = Counter(
    "wordrev_hints_revealed_total",
    "Total number of hint letters revealed",
)

revision_sessions = Counter(
    "wordrev_revision_sessions_total",
    "Total number of revision stages selected",
    ["stage"],
)

# Word management metrics
words_added = Counter(
    "wordrev_words_added_total",
    "Total number of words saved for revision",
)

words_deleted = Counter(
    "wordrev_words_deleted_total",
    "Total number of words deleted during revision",
)

# Database metrics
db_errors = Counter(
    "wordrev_db_errors_total",
    "Total number of database errors",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
