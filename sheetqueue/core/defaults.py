"""Shared default constants for the sheetqueue package."""

# Worksheet generation calls the LLM; bounded by its slowest acceptable response.
WORKSHEET_CONCURRENCY: int = 5
WORKSHEET_TIMEOUT_SECONDS: float = 60.0

# Each render drives a headless browser, so fewer run at once.
PDF_CONCURRENCY: int = 3
PDF_TIMEOUT_SECONDS: float = 45.0

# Image uploads rely on the storage client's own timeout.
IMAGE_CONCURRENCY: int = 5
IMAGE_TIMEOUT_SECONDS: float | None = None

REPORT_INTERVAL_SECONDS: float = 60.0
