# sheetqueue/core/utils/loop_runner.py
from __future__ import annotations
import asyncio
import atexit
import threading
from typing import Any, Awaitable, Callable, TypeVar
from sheetqueue.core.logging import get_logger

T = TypeVar('T')

_JOIN_TIMEOUT_SECONDS = 2


class LoopRunnerError(RuntimeError):
    """The background loop could not run the requested coroutine."""


class LoopRunner:
    """
    A private event loop on a daemon thread, for synchronous callers.

    The inline worksheet pipeline uses it so blocking request handlers can
    run both stages to completion. Anything created on this loop stays on
    it: do not hand its JobHandles or queues to another loop.

    Once stopped, a runner stays stopped.
    """

    def __init__(self, thread_name: str = 'sheetqueue-loop') -> None:
        self.logger = get_logger('loop_runner')
        self.thread_name = thread_name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._started = False
        self._closed = False
        self._state_lock = threading.RLock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._state_lock:
            if self._closed:
                raise LoopRunnerError('loop runner is stopped and cannot be restarted')
            if self._loop is None:
                loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=loop.run_forever, name=self.thread_name, daemon=True
                )
                self._loop = loop
            return self._loop

    def start(self) -> None:
        with self._state_lock:
            if self._started:
                return
            self._ensure_loop()
            assert self._thread is not None
            try:
                self._thread.start()
            except RuntimeError as exc:
                self._loop = self._thread = None
                raise LoopRunnerError(f'failed to start loop thread: {exc}') from exc
            self._started = True
            self.logger.debug(f'Started {self.thread_name}')

    def stop(self) -> None:
        with self._state_lock:
            loop, thread = self._loop, self._thread
            if self._started and loop is not None:
                loop.call_soon_threadsafe(loop.stop)
                if thread is not None:
                    thread.join(timeout=_JOIN_TIMEOUT_SECONDS)
                    if thread.is_alive():
                        self.logger.warning(
                            f'{self.thread_name} did not stop within '
                            f'{_JOIN_TIMEOUT_SECONDS}s; leaving its loop open'
                        )
                        return
                loop.close()
                self._loop = self._thread = None
                self._started = False
            self._closed = True

    def call(self, coro_fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Block until coro_fn(*args, **kwargs) finishes on the loop thread."""
        self.start()
        with self._state_lock:
            loop = self._loop
            if loop is None or not self._started:
                raise LoopRunnerError('loop runner is not running')

        coro = coro_fn(*args, **kwargs)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)  # type: ignore[arg-type]
        except Exception as exc:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise LoopRunnerError(
                f'failed to schedule coroutine: {type(exc).__name__}: {exc}'
            ) from exc
        return future.result()


_shared_runner: LoopRunner | None = None
_shared_lock = threading.Lock()


def _shutdown_shared_runner() -> None:
    global _shared_runner
    with _shared_lock:
        runner, _shared_runner = _shared_runner, None
    if runner is not None:
        runner.stop()


def get_shared_runner() -> LoopRunner:
    """The process-wide runner, created on first use and stopped at exit."""
    global _shared_runner
    with _shared_lock:
        if _shared_runner is None:
            runner = LoopRunner()
            runner.start()
            atexit.register(_shutdown_shared_runner)
            _shared_runner = runner
        return _shared_runner
