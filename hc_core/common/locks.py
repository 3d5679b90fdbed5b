# hc_core/common/locks.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from django.db import IntegrityError, transaction
from django.utils import timezone

from hc_core.common.models import JobLock

logger = logging.getLogger(__name__)


class JobAlreadyRunning(Exception):
    def __init__(self, name: str):
        super().__init__(f"Job {name!r} is already running.")
        self.name = name


def _try_acquire(name: str, holder: str) -> JobLock | None:
    try:
        with transaction.atomic():
            return JobLock.objects.create(name=name, holder=holder)
    except IntegrityError:
        return None


@contextmanager
def job_lock(name: str, *, holder: str = "", stale_after: timedelta | None = None) -> Iterator[JobLock]:
    """
    Single in-flight run of a named job across processes.

    If `stale_after` is given, a lock older than that is treated as abandoned
    (crashed run) and taken over.
    """
    lock = _try_acquire(name, holder)

    if lock is None and stale_after is not None:
        cutoff = timezone.now() - stale_after
        removed, _ = JobLock.objects.filter(name=name, created_at__lt=cutoff).delete()
        if removed:
            logger.warning("Took over stale lock %s", name)
            lock = _try_acquire(name, holder)

    if lock is None:
        raise JobAlreadyRunning(name)

    try:
        yield lock
    finally:
        JobLock.objects.filter(pk=lock.pk).delete()
