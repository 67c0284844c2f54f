from __future__ import annotations

import logging

# Probes and the once-a-minute rollover trigger would otherwise flood the access log.
DEFAULT_QUIET_PREFIXES: tuple[str, ...] = ("/healthz", "/readyz", "/api/cron")


class SkipQuietPathsFilter(logging.Filter):
    """Drop access-log records for health probes and the periodic cron trigger."""

    def __init__(self, prefixes: tuple[str, ...] = DEFAULT_QUIET_PREFIXES) -> None:
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        path = _record_path(record)
        if path is not None:
            return not path.startswith(self.prefixes)

        message = record.getMessage()
        return not any(prefix in message for prefix in self.prefixes)


def _record_path(record: logging.LogRecord) -> str | None:
    candidates: list[object] = [getattr(record, "request", None)]
    if isinstance(record.args, tuple):
        candidates.extend(record.args)

    for obj in candidates:
        path = getattr(obj, "path", None) or getattr(obj, "path_info", None)
        if isinstance(path, str) and path:
            return path
    return None
