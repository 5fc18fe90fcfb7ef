"""Parallel execution utilities for fold-level estimation loops."""

from __future__ import annotations

import contextvars
import os
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

_POLL_INTERVAL = 0.05


def parallel_map(func, args_list, n_jobs=1, timeout=None, return_exceptions=False):
    """Execute func(*args) for each args in args_list, optionally in parallel.

    Uses threads rather than processes because the per-fold computation is
    dominated by NumPy/scipy/statsmodels C extensions that release the GIL.
    Threads avoid the large serialization overhead of pickling the panel to
    subprocesses.

    ``ContextVar`` values are propagated to each worker thread via
    :func:`contextvars.copy_context`.

    Parameters
    ----------
    func : callable
        Function to call for each set of arguments.
    args_list : list of tuples
        Arguments for each call.
    n_jobs : int
        1 = sequential (default), -1 = all cores, >1 = that many workers.
    timeout : float, optional
        Maximum number of seconds a single call may run, measured from the
        moment a worker starts it. A call that exceeds it is reported as a
        :class:`TimeoutError` and its slot goes to the next queued call, so at
        most ``n_jobs`` calls are ever counted as running. Python threads
        cannot be interrupted, so the expired call keeps its thread in the
        background and its eventual result is discarded.
    return_exceptions : bool, default=False
        If True, exceptions raised by a call (and timeouts) are placed in the
        result list instead of being raised.

    Returns
    -------
    list
        Results in the same order as args_list.
    """
    if n_jobs == 1 and timeout is None:
        return [_call(func, args, return_exceptions) for args in args_list]

    n_slots = os.cpu_count() if n_jobs == -1 else n_jobs
    results = [None] * len(args_list)
    started = {}

    # Each task gets its own snapshot so Context.run() is never called
    # concurrently on the same object (which would raise RuntimeError).
    contexts = [contextvars.copy_context() for _ in args_list]

    def _timed(idx, ctx, args):
        started[idx] = time.monotonic()
        return ctx.run(func, *args)

    # Expired tasks hold on to their threads, so the pool may need one thread per task.
    max_threads = max(len(args_list), 1) if timeout is not None else n_slots
    executor = ThreadPoolExecutor(max_workers=max_threads)
    future_to_idx = {}
    pending = set()
    next_idx = 0
    try:
        while next_idx < len(args_list) or pending:
            while next_idx < len(args_list) and len(pending) < n_slots:
                future = executor.submit(_timed, next_idx, contexts[next_idx], args_list[next_idx])
                future_to_idx[future] = next_idx
                pending.add(future)
                next_idx += 1

            done, pending = wait(
                pending,
                timeout=_POLL_INTERVAL if timeout is not None else None,
                return_when=FIRST_COMPLETED,
            )
            for future in done:
                idx = future_to_idx[future]
                exc = future.exception()
                if exc is None:
                    results[idx] = future.result()
                elif return_exceptions and isinstance(exc, Exception):
                    results[idx] = exc
                else:
                    raise exc

            if timeout is None:
                continue

            now = time.monotonic()
            expired = {
                future
                for future in pending
                if future_to_idx[future] in started and now - started[future_to_idx[future]] > timeout
            }
            for future in expired:
                idx = future_to_idx[future]
                exc = TimeoutError(f"Task {idx} did not finish within {timeout} seconds.")
                if not return_exceptions:
                    raise exc
                results[idx] = exc
            pending -= expired
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return results


def _call(func, args, return_exceptions):
    """Run one call sequentially, optionally capturing its exception."""
    if not return_exceptions:
        return func(*args)
    try:
        return func(*args)
    except Exception as exc:  # noqa: BLE001
        return exc
