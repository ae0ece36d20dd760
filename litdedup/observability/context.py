"""Run id tracking for log correlation.

A run is one unit of work worth grouping in the logs: a batch import job
(whose run id is the job id) or a single scan/merge invocation. The id lives
in a ContextVar, so every asyncio task spawned inside a run inherits it.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_run_id: ContextVar[Optional[str]] = ContextVar("litdedup_run_id", default=None)


def new_run_id(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def current_run_id() -> Optional[str]:
    return _run_id.get()


@contextmanager
def run_context(run_id: Optional[str] = None) -> Iterator[str]:
    """Scope ``run_id`` (or a fresh one) to the enclosed block.

    The enclosing run id, if any, is restored on exit, including when the
    block raises.
    """
    run_id = run_id or new_run_id()
    token = _run_id.set(run_id)
    try:
        yield run_id
    finally:
        _run_id.reset(token)
