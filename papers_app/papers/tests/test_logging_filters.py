import logging

from papers.logging_filters import SkipQuietPathsFilter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


class _Req:
    def __init__(self, path: str):
        self.path = path


def test_filter_drops_probe_and_cron_lines_by_message():
    f = SkipQuietPathsFilter()
    assert f.filter(_record('"GET /healthz/ HTTP/1.1" 200 2')) is False
    assert f.filter(_record('"GET /readyz/ HTTP/1.1" 200 2')) is False
    assert f.filter(_record('"POST /api/cron/ HTTP/1.1" 200 80')) is False


def test_filter_drops_by_request_attr():
    f = SkipQuietPathsFilter()
    r = _record("ignored")
    r.request = _Req("/api/cron/")
    assert f.filter(r) is False


def test_filter_keeps_other_paths():
    f = SkipQuietPathsFilter()
    assert f.filter(_record('"POST /groups/3/rollover/ HTTP/1.1" 200 90')) is True
    r = _record("ignored")
    r.request = _Req("/admin/")
    assert f.filter(r) is True


def test_filter_accepts_custom_prefixes():
    f = SkipQuietPathsFilter(prefixes=("/metrics",))
    assert f.filter(_record("GET /metrics 200")) is False
    assert f.filter(_record("GET /healthz/ 200")) is True
