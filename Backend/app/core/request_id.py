# Backend/app/core/request_id.py
from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)


def set_run_id(run_id: Optional[str]) -> None:
    _run_id_ctx.set(run_id)


def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()


@contextmanager
def with_run_id(run_id: Optional[str] = None) -> Iterator[str]:
    """
    Use in workers:
        with with_run_id():
            ... run the pipeline ...
    """
    previous = _run_id_ctx.get()
    rid = run_id or uuid.uuid4().hex
    set_run_id(rid)
    try:
        yield rid
    finally:
        # restore previous value (may be None)
        set_run_id(previous)
