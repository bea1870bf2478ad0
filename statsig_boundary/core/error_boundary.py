from __future__ import annotations

"""
Error boundary that keeps SDK failures away from the host application.

Every public SDK entry point runs through ``ErrorBoundary.capture``. Usage
errors propagate; any other exception is logged once, reported to the
exception endpoint at most once per exception name, and replaced by the
caller's recovery value.
"""

import asyncio
from dataclasses import dataclass
import inspect
import json
import random
import threading
import traceback
from typing import Any, Awaitable, Callable, Coroutine, Mapping, Optional, TypeVar, Union

import httpx
from loguru import logger

from .diagnostics import ERROR_BOUNDARY, Diagnostics, diagnostics as shared_diagnostics
from .exceptions import USAGE_ERRORS

T = TypeVar("T")

ExtraDataExtractor = Callable[
    [], Union[Mapping[str, Any], Awaitable[Optional[Mapping[str, Any]]], None]
]

EXCEPTION_ENDPOINT = "https://statsigapi.net/v1/sdk_exception"
NO_NAME = "No Name"
EMPTY_ERROR = "[Statsig] Error was empty"
UNSTRINGIFIABLE_ERROR = "[Statsig] Failed to get string for error."


@dataclass(frozen=True)
class BoundaryPolicy:
    """
    Configuration for an ``ErrorBoundary``.

    Parameters
    ----------
    sampling_rate : int
        One boundary in ``sampling_rate`` records diagnostics markers.
    max_markers : int
        Marker budget granted to the ``error_boundary`` category when sampled.
    endpoint : str
        URL receiving exception reports.
    timeout_sec : float
        Transport timeout for a single report.
    """

    sampling_rate: int = 10000
    max_markers: int = 30
    endpoint: str = EXCEPTION_ENDPOINT
    timeout_sec: float = 10.0


class ErrorBoundary:
    """
    Capture, report and recover from unexpected SDK failures.
    """

    def __init__(
        self,
        sdk_key: str,
        *,
        policy: BoundaryPolicy = BoundaryPolicy(),
        diagnostics: Optional[Diagnostics] = None,
        sampler: Callable[[int], int] = random.randrange,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the boundary and draw the instrumentation sample.

        Parameters
        ----------
        sdk_key : str
            SDK key sent with every report.
        policy : BoundaryPolicy, optional
            Sampling, endpoint and transport settings.
        diagnostics : Diagnostics | None, optional
            Marker store, by default the shared process-wide store.
        sampler : Callable[[int], int], optional
            Returns an integer in ``[0, n)``, by default ``random.randrange``.
        transport : httpx.AsyncBaseTransport | None, optional
            Transport handed to ``httpx.AsyncClient``, by default httpx's own.
        """
        self._sdk_key = sdk_key
        self._statsig_metadata: Optional[dict[str, Any]] = None
        self._seen: set[str] = set()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._tasks: set[asyncio.Task] = set()
        self.policy = policy
        self._diagnostics = diagnostics if diagnostics is not None else shared_diagnostics
        self._transport = transport

        sampling = sampler(max(1, int(policy.sampling_rate)))
        self._diagnostics.set_max_markers(
            ERROR_BOUNDARY, policy.max_markers if sampling == 0 else 0
        )

    def set_statsig_metadata(self, statsig_metadata: Mapping[str, Any]) -> None:
        with self._lock:
            self._statsig_metadata = dict(statsig_metadata)

    def swallow(self, tag: str, task: Callable[[], Any]) -> None:
        """
        Run ``task`` and drop both its result and any captured failure.

        An asynchronous ``task`` keeps running in the background: on the
        running event loop when there is one, otherwise on a daemon thread.
        ``aflush``/``flush`` wait for it.
        """
        result = self.capture(tag, task, lambda: None)
        if inspect.isawaitable(result):
            self._dispatch(self._discard(result), tag, "statsig-swallow")

    def capture(
        self,
        tag: str,
        task: Callable[[], T],
        recover: Callable[[], T],
        get_extra_data: Optional[ExtraDataExtractor] = None,
    ) -> T:
        """
        Run ``task`` and substitute ``recover()`` on unexpected failure.

        Parameters
        ----------
        tag : str
            Call site label used for markers and reports.
        task : Callable[[], T]
            Guarded operation. May return an awaitable.
        recover : Callable[[], T]
            Fallback evaluated when ``task`` fails.
        get_extra_data : ExtraDataExtractor | None, optional
            Supplies extra report context, only called on failure.

        Returns
        -------
        T
            Result of ``task``, or of ``recover`` after a failure. When
            ``task`` returns an awaitable, a coroutine with the same outcome.

        Raises
        ------
        StatsigUninitializedError, StatsigInvalidArgumentError
            Re-raised unchanged from ``task``.
        """
        marker_id = self._begin_marker(tag)
        try:
            result = task()
        except Exception as exc:
            self._end_marker(tag, False, marker_id)
            return self._on_caught(tag, exc, recover, get_extra_data)

        if inspect.isawaitable(result):
            return self._capture_async(tag, result, recover, get_extra_data, marker_id)

        self._end_marker(tag, True, marker_id)
        return result

    def log_error(
        self,
        tag: str,
        error: Any,
        get_extra_data: Optional[ExtraDataExtractor] = None,
    ) -> None:
        """
        Report ``error`` in the background.

        Names already reported by this boundary return immediately, before
        any thread or task is created. Runs on the current event loop when one
        is running, otherwise on a daemon thread. Never raises.
        """
        unwrapped = error if error is not None else EMPTY_ERROR
        name = type(unwrapped).__name__ if isinstance(unwrapped, BaseException) else NO_NAME
        with self._lock:
            if name in self._seen:
                return
            self._seen.add(name)

        self._dispatch(
            self._report(tag, unwrapped, name, get_extra_data), tag, "statsig-error-report"
        )

    def _dispatch(self, job: Coroutine[Any, Any, None], tag: str, thread_name: str) -> None:
        runner = job
        try:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

            if loop is not None:
                task = loop.create_task(job)
                with self._lock:
                    self._tasks.add(task)
                task.add_done_callback(self._forget_task)
                return

            runner = self._run_to_completion(job)
            thread = threading.Thread(
                target=asyncio.run,
                args=(runner,),
                daemon=True,
                name=thread_name,
            )
            with self._lock:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
            thread.start()
        except Exception as exc:
            runner.close()
            job.close()
            logger.debug("Failed to dispatch background job for {}: {}", tag, exc)

    def flush(self, timeout: Optional[float] = None) -> None:
        """
        Wait for reports and swallowed tasks dispatched on background threads.

        Parameters
        ----------
        timeout : float | None, optional
            Seconds to wait per thread, by default no limit.
        """
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            if thread.ident is not None:
                thread.join(timeout)

    async def aflush(self) -> None:
        """
        Wait for reports and swallowed tasks scheduled on the running loop.
        """
        loop = asyncio.get_running_loop()
        current = asyncio.current_task()
        while True:
            with self._lock:
                pending = [
                    t for t in self._tasks if t.get_loop() is loop and t is not current
                ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_to_completion(self, job: Coroutine[Any, Any, None]) -> None:
        # asyncio.run cancels leftover tasks, so drain reports started by job.
        await job
        await self.aflush()

    def _forget_task(self, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks.discard(task)

    async def _capture_async(
        self,
        tag: str,
        awaitable: Awaitable[T],
        recover: Callable[[], Any],
        get_extra_data: Optional[ExtraDataExtractor],
        marker_id: Optional[str],
    ) -> T:
        try:
            result = await awaitable
        except Exception as exc:
            self._end_marker(tag, False, marker_id)
            recovered = self._on_caught(tag, exc, recover, get_extra_data)
            if inspect.isawaitable(recovered):
                recovered = await recovered
            return recovered

        self._end_marker(tag, True, marker_id)
        return result

    @staticmethod
    async def _discard(awaitable: Awaitable[Any]) -> None:
        await awaitable

    def _on_caught(
        self,
        tag: str,
        error: Exception,
        recover: Callable[[], T],
        get_extra_data: Optional[ExtraDataExtractor],
    ) -> T:
        if isinstance(error, USAGE_ERRORS):
            raise error

        logger.opt(exception=error).error("[Statsig] An unexpected exception occurred.")

        self.log_error(tag, error, get_extra_data)

        return recover()

    async def _report(
        self,
        tag: str,
        error: Any,
        name: str,
        get_extra_data: Optional[ExtraDataExtractor],
    ) -> None:
        try:
            extra = None
            if callable(get_extra_data):
                extra = get_extra_data()
                if inspect.isawaitable(extra):
                    extra = await extra

            with self._lock:
                metadata = dict(self._statsig_metadata or {})

            if isinstance(error, BaseException):
                info = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )
            else:
                info = self._get_description(error)

            body = json.dumps(
                {
                    "tag": tag,
                    "exception": name,
                    "info": info,
                    "statsigMetadata": metadata,
                    "extra": dict(extra or {}),
                },
                default=str,
            ).encode("utf-8")

            headers = {
                "STATSIG-API-KEY": self._sdk_key,
                "Content-Type": "application/json",
                "Content-Length": str(len(body)),
            }
            if metadata.get("sdkType") is not None:
                headers["STATSIG-SDK-TYPE"] = str(metadata["sdkType"])
            if metadata.get("sdkVersion") is not None:
                headers["STATSIG-SDK-VERSION"] = str(metadata["sdkVersion"])

            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.policy.timeout_sec
            ) as client:
                await client.post(self.policy.endpoint, content=body, headers=headers)
        except Exception as exc:
            logger.debug("Error report for {} was not delivered: {}", tag, exc)

    @staticmethod
    def _get_description(obj: Any) -> str:
        try:
            return json.dumps(obj)
        except Exception:
            return UNSTRINGIFIABLE_ERROR

    def _begin_marker(self, tag: str) -> Optional[str]:
        try:
            marker = self._diagnostics.mark.error_boundary(tag)
            if marker is None:
                return None
            with self._diagnostics.lock:
                count = self._diagnostics.get_marker_count(ERROR_BOUNDARY)
                marker_id = f"{tag}_{count}"
                was_added = marker.start({"markerID": marker_id}, ERROR_BOUNDARY)
            return marker_id if was_added else None
        except Exception as exc:
            logger.debug("Diagnostics start failed for {}: {}", tag, exc)
            return None

    def _end_marker(self, tag: str, success: bool, marker_id: Optional[str]) -> None:
        if marker_id is None:
            return
        try:
            marker = self._diagnostics.mark.error_boundary(tag)
            if marker is None:
                return
            marker.end({"markerID": marker_id, "success": success}, ERROR_BOUNDARY)
        except Exception as exc:
            logger.debug("Diagnostics end failed for {}: {}", tag, exc)
