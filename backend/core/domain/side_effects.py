"""
core.domain.side_effects — Best-effort work deferred until commit.

Notifications and emails must never block or undo the state change that
triggered them.  Services hand such work to ``enqueue_side_effect``:

* The callable runs only after the surrounding transaction commits, so a
  rejected or rolled-back mutation never notifies anybody.
* Any exception raised by the callable is logged with its traceback and
  then dropped.  The caller's response is already decided at that point.

Outside an atomic block Django runs ``on_commit`` callbacks immediately,
which keeps the helper usable from management commands.

Usage::

    from core.domain.side_effects import enqueue_side_effect

    enqueue_side_effect(
        send_complaint_update_email,
        complaint.pk,
        action="resolved",
        label="status-email",
    )
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from django.db import transaction

logger = logging.getLogger(__name__)


def _run_safely(label: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.exception("Side effect %r failed; primary change kept.", label)


def enqueue_side_effect(
    fn: Callable[..., Any],
    *args: Any,
    label: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Schedule ``fn(*args, **kwargs)`` to run after the current transaction
    commits, swallowing (and logging) any exception it raises.

    Args:
        fn:     The side-effect callable.
        *args:  Positional arguments forwarded to ``fn``.
        label:  Short name used in log lines.  Defaults to ``fn.__name__``.
        **kwargs: Keyword arguments forwarded to ``fn``.
    """
    label = label or getattr(fn, "__name__", "side-effect")
    transaction.on_commit(
        functools.partial(_run_safely, label, fn, args, kwargs)
    )
