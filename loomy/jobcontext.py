"""Errors raised by the pool and cancellable contexts that travel with jobs."""

from __future__ import annotations

import functools
import threading
from typing import Callable, Optional


class LoomyError(Exception):
    """Base class of every error the pool reports."""

    message = "loomy error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(self.message if message is None else message)


class PoolNotRunningError(LoomyError):
    """The pool has been closed and accepts no more jobs."""

    message = "the pool is not running"


class JobNotFuncError(LoomyError):
    """A callback worker was handed something that cannot be called."""

    message = "generic worker not given a func()"


class WorkerClosedError(LoomyError):
    """The worker went away before delivering a result."""

    message = "worker was closed"


class JobTimedOutError(LoomyError):
    """A job request ran past its time limit."""

    message = "job request timed out"


class WorkerPanicError(LoomyError):
    """A worker raised an unexpected exception while processing a job."""

    message = "worker panicked during job processing"


class ContextError(LoomyError):
    """Base class of the reasons a context can end."""

    message = "context done"


class DeadlineExceededError(ContextError, TimeoutError):
    """The context's deadline passed."""

    message = "context deadline exceeded"


class CanceledError(ContextError):
    """The context was cancelled explicitly."""

    message = "context canceled"


class Context:
    """A cancellation signal with an optional deadline.

    Cancelling a context cancels every context derived from it. A context
    derived from one that has already ended ends at once with the same error.
    Timeouts are given in seconds.
    """

    def __init__(self, parent: Optional[Context] = None, timeout: Optional[float] = None) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._error: Optional[type[ContextError]] = None
        self._children: set[Context] = set()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_key = 0
        self._parent = parent
        self._timer: Optional[threading.Timer] = None
        self._cancelable = True

        if parent is not None:
            parent._adopt(self)

        if timeout is not None and not self._event.is_set():
            if timeout <= 0:
                self._finish(DeadlineExceededError)
            else:
                timer = threading.Timer(timeout, self._finish, args=(DeadlineExceededError,))
                timer.daemon = True
                with self._lock:
                    if not self._event.is_set():
                        self._timer = timer
                        timer.start()

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    def cancel(self) -> None:
        """End this context and all contexts derived from it."""
        if self._cancelable:
            self._finish(CanceledError)

    def done(self) -> bool:
        """Whether the context has ended."""
        return self._event.is_set()

    def err(self) -> Optional[ContextError]:
        """The reason the context ended, or None while it is still live."""
        with self._lock:
            error = self._error
        return None if error is None else error()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the context ends or the timeout passes; True if it ended."""
        return self._event.wait(timeout)

    def with_timeout(self, timeout: float) -> Context:
        """A derived context that also ends after ``timeout`` seconds."""
        return Context(self, timeout)

    def with_cancel(self) -> Context:
        """A derived context that can be cancelled on its own."""
        return Context(self)

    def _adopt(self, child: Context) -> None:
        with self._lock:
            error = self._error
            if error is None and self._cancelable:
                self._children.add(child)
        if error is not None:
            child._finish(error)

    def _release(self, child: Context) -> None:
        with self._lock:
            self._children.discard(child)

    def _unsubscribe(self, key: int) -> None:
        with self._lock:
            self._callbacks.pop(key, None)

    def _subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` once the context ends; returns an unsubscriber."""
        with self._lock:
            key = self._next_key
            self._next_key += 1
            if not self._cancelable:
                return functools.partial(self._unsubscribe, key)
            if not self._event.is_set():
                self._callbacks[key] = callback
                return functools.partial(self._unsubscribe, key)
        callback()
        return functools.partial(self._unsubscribe, key)

    def _finish(self, error: type[ContextError]) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._error = error
            self._event.set()
            children = list(self._children)
            self._children.clear()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        for child in children:
            child._finish(error)
        for callback in callbacks:
            callback()
        if self._parent is not None:
            self._parent._release(self)


_BACKGROUND = Context()
_BACKGROUND._cancelable = False


def background() -> Context:
    """The root context: it never ends and cannot be cancelled."""
    return _BACKGROUND