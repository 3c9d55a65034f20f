# loomy

A pool of worker threads that run jobs synchronously for their callers. The
pool can be grown or shrunk at any time, jobs can carry a timeout or a
cancellation context, and hooks report job and worker lifecycle events.

The package has three modules:

- `loomy.jobcontext`: the error classes and `Context`, a cancellation signal
  with an optional deadline.
- `loomy.worker`: the `Worker` base class, `FuncWorker`, `CallbackWorker` and
  `Hooks`.
- `loomy.pool`: `Pool`, `AsyncResult`, `new_func` and `new_callback`.

## Installing

```
pip install .
```

## Running a function on a pool

```python
from loomy.pool import new_func

def double(ctx, n):
    return n * 2

with new_func(4, double) as pool:
    print(pool.process(21))                 # 42
    results, errors = pool.process_batch([1, 2, 3])
    print(results, errors)                  # [2, 4, 6] [None, None, None]
```

Leaving the `with` block closes the pool. The function receives a `Context`
as its first argument; a long-running job should watch it (`ctx.done()`,
`ctx.wait(seconds)`) and stop when it ends.

`process_batch` and `process_batch_ctx` run every payload concurrently and
return two lists in input order: results (`None` for a failed job) and errors
(`None` for a successful job).

## Contexts and timeouts

```python
from loomy.jobcontext import background, DeadlineExceededError

try:
    pool.process_timed(10, 0.05)            # timeout in seconds
except DeadlineExceededError:
    ...

with background().with_timeout(1.0) as ctx:
    pool.process_ctx(ctx, 10)
```

`background()` is the root context; it never ends. `with_timeout(seconds)`
and `with_cancel()` derive contexts that end when their parent ends, when
`cancel()` is called, or when their deadline passes. `err()` gives the reason
a context ended (`DeadlineExceededError` or `CanceledError`) or `None` while
it is live. Using a context as a context manager cancels it on exit.

When a job's context ends before the job finishes, the caller gets the
context's error, the worker's `interrupt()` is called and the context passed
to `process` is cancelled.

## Asynchronous submission

```python
handle = pool.process_async(5)
handle.done()          # False until the job has finished
value = handle.wait()  # blocks; returns the result or raises the job's error
```

## Custom workers

Subclass `loomy.worker.Worker` and implement `process(ctx, payload)`.
Optionally override `block_until_ready()` (called before each job; block
until the worker can take one), `interrupt()` (called when a running job is
abandoned) and `terminate()` (called when the worker leaves the pool). Pass a
factory to `loomy.pool.Pool(size, factory)`; it is called once for each
worker the pool creates.

`loomy.pool.new_callback(n)` builds a pool of `CallbackWorker`s whose jobs
are callables taking no arguments; the result is always `None`, and a payload
that is not callable raises `JobNotFuncError`.

## Sizing and shutdown

- `pool.set_size(n)` adds or removes workers, waiting for removed ones to
  stop; `pool.size()` reports the count. A negative size raises `ValueError`,
  and growing a closed pool raises `PoolNotRunningError`.
- `pool.queue_length()` is the number of jobs waiting or running.
- `pool.close()` stops every worker; later jobs raise `PoolNotRunningError`.
- `pool.shutdown(ctx)` waits until no jobs remain queued, then closes the
  pool. If `ctx` ends first, the pool is closed at once and the context's
  error is raised.

## Hooks

`loomy.worker.Hooks` takes optional callables `job_start(payload)`,
`job_complete(payload, result, duration)`, `job_error(payload, err, duration)`,
`worker_start(worker_id)` and `worker_stop(worker_id)`; durations are in
seconds. Alternatively subclass it and override `on_job_start`,
`on_job_complete`, `on_job_error`, `on_worker_start` and `on_worker_stop`.

```python
from loomy.worker import Hooks

pool.set_hooks(Hooks(job_error=lambda payload, err, duration: print(payload, err)))
```

`set_hooks` applies to the pool and all its current workers; `None` removes
them. Worker ids are numbered from 1 in order of creation.

## Errors

All errors derive from `loomy.jobcontext.LoomyError`: `PoolNotRunningError`,
`JobNotFuncError`, `WorkerClosedError`, `JobTimedOutError`, `WorkerPanicError`
and `ContextError` with its subclasses `DeadlineExceededError` (also a
`TimeoutError`) and `CanceledError`.

A `LoomyError` raised inside a job reaches the caller unchanged. Any other
exception is reported as `WorkerPanicError`, chained to the original, and the
worker keeps serving jobs.

## What it does not do

Workers are threads in the current process; there is no process-based or
distributed execution, no persistent job queue and no command-line tool.

## Running the tests

```
pip install .[test]
pytest
```