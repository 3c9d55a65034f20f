"""Worker interfaces, lifecycle hooks and the threads that drive workers."""

from __future__ import annotations

import abc
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .jobcontext import (
    Context,
    JobNotFuncError,
    LoomyError,
    PoolNotRunningError,
    WorkerClosedError,
    WorkerPanicError,
)


@dataclass
class Hooks:
    """Callbacks for observing pool activity; each one is optional.

    Pass callables for the events of interest, or subclass and override the
    methods. Durations are in seconds.
    """

    job_start: Optional[Callable[[Any], None]] = None
    job_complete: Optional[Callable[[Any, Any, float], None]] = None
    job_error: Optional[Callable[[Any, BaseException, float], None]] = None
    worker_start: Optional[Callable[[int], None]] = None
    worker_stop: Optional[Callable[[int], None]] = None

    def on_job_start(self, payload: Any) -> None:
        """Called when a job begins processing."""
        if self.job_start is not None:
            self.job_start(payload)

    def on_job_complete(self, payload: Any, result: Any, duration: float) -> None:
        """Called when a job finishes successfully."""
        if self.job_complete is not None:
            self.job_complete(payload, result, duration)

    def on_job_error(self, payload: Any, err: BaseException, duration: float) -> None:
        """Called when a job fails."""
        if self.job_error is not None:
            self.job_error(payload, err, duration)

    def on_worker_start(self, worker_id: int) -> None:
        """Called when a worker starts."""
        if self.worker_start is not None:
            self.worker_start(worker_id)

    def on_worker_stop(self, worker_id: int) -> None:
        """Called when a worker stops."""
        if self.worker_stop is not None:
            self.worker_stop(worker_id)


class Worker(abc.ABC):
    """An agent that processes jobs one at a time.

    Failures are reported by raising. Instances of ``LoomyError`` reach the
    caller unchanged; any other exception is reported as ``WorkerPanicError``
    chained to the original.
    """

    @abc.abstractmethod
    def process(self, ctx: Context, payload: Any) -> Any:
        """Perform one job and return its result."""

    def block_until_ready(self) -> None:
        """Block until the worker can take the next job.

        A terminated worker never becomes ready again.
        """
        if getattr(self, "_worker_terminated", False):
            raise WorkerClosedError()

    def interrupt(self) -> None:
        """Unblock a running ``process`` call whose job was abandoned."""
        self._worker_interrupts = getattr(self, "_worker_interrupts", 0) + 1

    def terminate(self) -> None:
        """Release resources when the worker leaves the pool."""
        self._worker_terminated = True


class FuncWorker(Worker):
    """A worker that runs a function of ``(ctx, payload)``."""

    def __init__(self, processor: Callable[[Context, Any], Any]) -> None:
        self._processor = processor

    def process(self, ctx: Context, payload: Any) -> Any:
        return self._processor(ctx, payload)


class CallbackWorker(Worker):
    """A worker whose payloads are callables taking no arguments."""

    def process(self, ctx: Context, payload: Any) -> None:
        if not callable(payload):
            raise JobNotFuncError()
        payload()
        return None


class _WorkRequest:
    """One worker's readiness to take a single job."""

    def __init__(self, wrapper: _WorkerWrapper) -> None:
        self.wrapper = wrapper
        self.taken = False
        self.payload: Any = None
        self.ctx: Optional[Context] = None
        self._lock = threading.Lock()
        self._delivered = threading.Event()
        self._wake = threading.Event()
        self._interrupted = False
        self._finished = False
        self._job_ctx: Optional[Context] = None
        self._result: Any = None
        self._error: Optional[BaseException] = None

    def submit(self, payload: Any, ctx: Context) -> None:
        self.payload = payload
        self.ctx = ctx
        self._delivered.set()

    def interrupt(self) -> None:
        """Abandon the job: cancel its context and interrupt the worker."""
        with self._lock:
            self._interrupted = True
            job_ctx = self._job_ctx
        self._delivered.set()
        if job_ctx is not None:
            job_ctx.cancel()
        self.wrapper.worker.interrupt()

    def result(self, ctx: Context) -> Any:
        """Wait for the job's outcome, interrupting it if ``ctx`` ends first."""
        unsubscribe = ctx._subscribe(self._wake.set)
        try:
            self._wake.wait()
        finally:
            unsubscribe()
        with self._lock:
            finished = self._finished
        if finished:
            if self._error is not None:
                raise self._error
            return self._result
        self.interrupt()
        raise ctx.err()

    def receive(self) -> Optional[Context]:
        """Worker side: wait for the job; None if it was abandoned first."""
        self._delivered.wait()
        with self._lock:
            if self._interrupted or self.ctx is None:
                return None
            self._job_ctx = self.ctx.with_cancel()
            return self._job_ctx

    def detach(self) -> None:
        with self._lock:
            self._job_ctx = None

    def complete(self, result: Any, error: Optional[BaseException]) -> None:
        with self._lock:
            self._result = result
            self._error = error
            self._finished = True
        self._wake.set()


class _Rendezvous:
    """Meeting point where ready workers wait for callers with jobs."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._offers: deque[_WorkRequest] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def offer(self, request: _WorkRequest, wrapper: _WorkerWrapper) -> bool:
        """Wait until a caller takes the request; False if the worker must stop."""
        with self._cond:
            if wrapper.stopping or self._closed:
                return False
            self._offers.append(request)
            self._cond.notify_all()
            while not request.taken and not (wrapper.stopping or self._closed):
                self._cond.wait()
            if request.taken:
                return True
            self._offers.remove(request)
            return False

    def take(self, ctx: Context) -> _WorkRequest:
        """Wait for a ready worker, or raise if ``ctx`` ends or the pool closes."""
        unsubscribe = ctx._subscribe(self.wake)
        try:
            with self._cond:
                while True:
                    if ctx.done():
                        raise ctx.err()
                    if self._offers:
                        request = self._offers.popleft()
                        request.taken = True
                        self._cond.notify_all()
                        return request
                    if self._closed:
                        raise PoolNotRunningError()
                    self._cond.wait()
        finally:
            unsubscribe()

    def run(self, ctx: Context, payload: Any) -> Any:
        """Hand ``payload`` to the next ready worker and return its result."""
        request = self.take(ctx)
        if ctx.done():
            request.interrupt()
            raise ctx.err()
        request.submit(payload, ctx)
        return request.result(ctx)


class _WorkerWrapper:
    """Runs one worker on its own thread and manages its lifetime."""

    def __init__(
        self,
        rendezvous: _Rendezvous,
        worker: Worker,
        worker_id: int,
        hooks: Optional[Hooks] = None,
    ) -> None:
        self.worker = worker
        self.worker_id = worker_id
        self.stopping = False
        self._rendezvous = rendezvous
        self._hooks = hooks
        self._hooks_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run, name=f"loomy-worker-{worker_id}", daemon=True
        )
        self._thread.start()

    def set_hooks(self, hooks: Optional[Hooks]) -> None:
        with self._hooks_lock:
            self._hooks = hooks

    def stop(self) -> None:
        """Ask the worker to stop once it is idle."""
        self.stopping = True
        self._rendezvous.wake()

    def join(self) -> None:
        self._thread.join()

    def _current_hooks(self) -> Optional[Hooks]:
        with self._hooks_lock:
            return self._hooks

    def _run(self) -> None:
        hooks = self._current_hooks()
        if hooks is not None:
            hooks.on_worker_start(self.worker_id)
        try:
            while True:
                self.worker.block_until_ready()
                request = _WorkRequest(self)
                if not self._rendezvous.offer(request, self):
                    return
                job_ctx = request.receive()
                if job_ctx is not None:
                    self._process(request, job_ctx)
        finally:
            self.worker.terminate()
            hooks = self._current_hooks()
            if hooks is not None:
                hooks.on_worker_stop(self.worker_id)

    def _process(self, request: _WorkRequest, job_ctx: Context) -> None:
        payload = request.payload
        hooks = self._current_hooks()
        if hooks is not None:
            hooks.on_job_start(payload)

        started = time.monotonic()
        result: Any = None
        error: Optional[BaseException] = None
        try:
            result = self.worker.process(job_ctx, payload)
        except LoomyError as exc:
            error = exc
        except Exception as exc:
            error = WorkerPanicError()
            error.__cause__ = exc
        request.detach()
        job_ctx.cancel()
        duration = time.monotonic() - started

        hooks = self._current_hooks()
        if hooks is not None:
            if error is not None:
                hooks.on_job_error(payload, error, duration)
            else:
                hooks.on_job_complete(payload, result, duration)

        request.complete(result, error)