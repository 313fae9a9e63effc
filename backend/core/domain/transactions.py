"""
core.domain.transactions — Helpers for safe read-modify-write.

Every state-changing service re-reads its target row with
``select_for_update`` inside ``transaction.atomic`` immediately before
validating the actor against it.  On PostgreSQL this serialises concurrent
writers on the same row; SQLite ignores the lock clause and keeps its
database-level write lock.

Usage::

    from core.domain.transactions import lock_for_update

    with transaction.atomic():
        complaint = lock_for_update(Complaint, pk, queryset=visible_qs)
        ...
"""

from __future__ import annotations

from typing import Any, TypeVar

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import QuerySet

from core.domain.exceptions import NotFound

M = TypeVar("M", bound=models.Model)


def lock_for_update(
    model_class: type[M],
    pk: Any,
    *,
    queryset: QuerySet | None = None,
) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        queryset:    Optional pre-scoped queryset.  Rows outside it are
                     reported as missing, so visibility rules also apply
                     to writes.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no (visible) row with that PK exists.
    """
    base = queryset if queryset is not None else model_class.objects.all()
    try:
        return base.select_for_update().get(pk=pk)
    except (model_class.DoesNotExist, ValidationError, ValueError):
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
