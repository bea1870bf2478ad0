from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest
from loguru import logger

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from statsig_boundary.core import BoundaryPolicy, Diagnostics, ErrorBoundary  # noqa: E402


class ReportRecorder:
    """Collect requests sent to the exception endpoint."""

    def __init__(self, status_code: int = 202) -> None:
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def recorder() -> ReportRecorder:
    return ReportRecorder()


@pytest.fixture
def store() -> Diagnostics:
    return Diagnostics()


@pytest.fixture
def make_boundary(recorder, store):
    def _make(sampled: bool = False, **kwargs: Any) -> ErrorBoundary:
        kwargs.setdefault("policy", BoundaryPolicy())
        kwargs.setdefault("transport", httpx.MockTransport(recorder.handler))
        return ErrorBoundary(
            "client-key",
            diagnostics=store,
            sampler=lambda n: 0 if sampled else n - 1,
            **kwargs,
        )

    return _make


@pytest.fixture
def boundary(make_boundary) -> ErrorBoundary:
    return make_boundary()


@pytest.fixture
def log_messages():
    messages: List[Any] = []
    sink_id = logger.add(messages.append, level="ERROR", format="{message}")
    yield messages
    logger.remove(sink_id)
