"""A pool of worker threads that process jobs synchronously for their callers."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, Iterable, Optional

from .jobcontext import Context, LoomyError, PoolNotRunningError, background
from .worker import CallbackWorker, FuncWorker, Hooks, Worker, _Rendezvous, _WorkerWrapper


class AsyncResult:
    """The outcome of a job submitted with ``Pool.process_async``."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._result: Any = None
        self._error: Optional[BaseException] = None

    def wait(self) -> Any:
        """Block until the job is complete; return its result or raise its error."""
        self._event.wait()
        if self._error is not None:
            raise self._error
        return self._result

    def done(self) -> bool:
        """Whether the job has completed."""
        return self._event.is_set()

    def _settle(self, result: Any, error: Optional[BaseException]) -> None:
        self._result = result
        self._error = error
        self._event.set()


class Pool:
    """A resizable set of workers, each running on its own thread.

    ``factory`` is called once for every worker the pool creates.
    Timeouts are given in seconds.
    """

    def __init__(self, size: int, factory: Callable[[], Worker]) -> None:
        self._factory = factory
        self._rendezvous = _Rendezvous()
        self._workers: list[_WorkerWrapper] = []
        self._hooks: Optional[Hooks] = None
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._queued = 0
        self._queued_lock = threading.Lock()
        self.set_size(size)

    def __enter__(self) -> Pool:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def process(self, payload: Any) -> Any:
        """Process ``payload`` on a worker and return the result."""
        return self.process_ctx(background(), payload)

    def process_timed(self, payload: Any, timeout: float) -> Any:
        """Process ``payload``, giving up with ``DeadlineExceededError`` after ``timeout``."""
        ctx = background().with_timeout(timeout)
        try:
            return self.process_ctx(ctx, payload)
        finally:
            ctx.cancel()

    def process_ctx(self, ctx: Context, payload: Any) -> Any:
        """Process ``payload``, interrupting the worker if ``ctx`` ends first."""
        with self._queued_lock:
            self._queued += 1
        try:
            return self._rendezvous.run(ctx, payload)
        finally:
            with self._queued_lock:
                self._queued -= 1

    def process_async(self, payload: Any) -> AsyncResult:
        """Submit ``payload`` in the background and return a handle to its outcome."""
        outcome = AsyncResult()

        def run() -> None:
            try:
                result = self.process(payload)
            except LoomyError as exc:
                outcome._settle(None, exc)
            else:
                outcome._settle(result, None)

        threading.Thread(target=run, daemon=True).start()
        return outcome

    def process_batch(self, payloads: Iterable[Any]) -> tuple[list[Any], list[Optional[LoomyError]]]:
        """Process all payloads concurrently; return results and errors in input order."""
        return self.process_batch_ctx(background(), payloads)

    def process_batch_ctx(
        self, ctx: Context, payloads: Iterable[Any]
    ) -> tuple[list[Any], list[Optional[LoomyError]]]:
        """Like ``process_batch``, abandoning jobs once ``ctx`` ends.

        A failed job has ``None`` as its result; a successful one has ``None``
        as its error.
        """
        items = list(payloads)
        results: list[Any] = [None] * len(items)
        errors: list[Optional[LoomyError]] = [None] * len(items)

        def run(index: int, payload: Any) -> None:
            try:
                results[index] = self.process_ctx(ctx, payload)
            except LoomyError as exc:
                errors[index] = exc

        threads = [
            threading.Thread(target=run, args=(index, payload), daemon=True)
            for index, payload in enumerate(items)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def queue_length(self) -> int:
        """The number of jobs currently waiting for or being processed."""
        with self._queued_lock:
            return self._queued

    def set_size(self, n: int) -> None:
        """Grow or shrink the pool to ``n`` workers, waiting for removed ones to stop."""
        if n < 0:
            raise ValueError("pool size cannot be negative")
        with self._lock:
            current = len(self._workers)
            if n == current:
                return
            if n > current and self._rendezvous.closed:
                raise PoolNotRunningError()
            for _ in range(n - current):
                self._workers.append(
                    _WorkerWrapper(self._rendezvous, self._factory(), next(self._ids), self._hooks)
                )
            retiring = self._workers[n:]
            for wrapper in retiring:
                wrapper.stop()
            for wrapper in retiring:
                wrapper.join()
            del self._workers[n:]

    def size(self) -> int:
        """The current number of workers."""
        with self._lock:
            return len(self._workers)

    def set_hooks(self, hooks: Optional[Hooks]) -> None:
        """Install lifecycle hooks on the pool and all of its workers; None removes them."""
        with self._lock:
            self._hooks = hooks
            for wrapper in self._workers:
                wrapper.set_hooks(hooks)

    def close(self) -> None:
        """Stop every worker and refuse further jobs."""
        self.set_size(0)
        self._rendezvous.close()

    def shutdown(self, ctx: Context) -> None:
        """Wait for queued jobs to finish, then close.

        If ``ctx`` ends first the pool is closed at once and the context's
        error is raised.
        """
        while True:
            if ctx.wait(0.01):
                self.close()
                raise ctx.err()
            if self.queue_length() == 0:
                self.close()
                return


def new_func(n: int, func: Callable[[Context, Any], Any]) -> Pool:
    """A pool of ``n`` workers that each process jobs with ``func(ctx, payload)``."""
    return Pool(n, lambda: FuncWorker(func))


def new_callback(n: int) -> Pool:
    """A pool of ``n`` workers whose payloads are callables taking no arguments."""
    return Pool(n, CallbackWorker)