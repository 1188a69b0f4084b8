from __future__ import annotations

from contextlib import contextmanager

from threadpoolctl import threadpool_limits


@contextmanager
def cpu_guard(n_threads: int | None = 1):
    """Limit BLAS/OpenMP thread usage within the context.

    ``None`` leaves the native thread pools untouched.
    """
    if n_threads is None:
        yield
        return
    with threadpool_limits(limits=int(n_threads)):
        yield
