# hc_core/common/sequences.py
"""
Human-readable sequential identifiers (patient codes, prescription numbers).

Optimistic allocation, no counter row and no lock:
    read current max -> propose max+1 -> insert-if-absent -> on conflict re-read and retry.

The insert-if-absent primitive is whatever the caller passes as `insert`:
normally a `Model.objects.create(...)` guarded by a unique constraint on the
identifier field. It runs inside a savepoint so a conflicting insert doesn't
poison an enclosing transaction.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, TypeVar

from django.conf import settings
from django.db import IntegrityError, models, transaction

from hc_core.common.errors import AllocationExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 10

PATIENT_CODE_PREFIX = "PAT"
PATIENT_CODE_WIDTH = 4
PRESCRIPTION_PREFIX = "RX"
PRESCRIPTION_SEQ_WIDTH = 3


def format_identifier(prefix: str, number: int, pad_width: int) -> str:
    return f"{prefix}{number:0{pad_width}d}"


def parse_suffix(identifier: str, prefix: str) -> int:
    """
    "PAT0006" -> 6. Raises ValueError if the identifier doesn't carry the prefix
    or the suffix isn't numeric.
    """
    if not identifier.startswith(prefix):
        raise ValueError(f"{identifier!r} does not start with {prefix!r}")
    suffix = identifier[len(prefix):]
    if not suffix.isdigit():
        raise ValueError(f"{identifier!r} has a non-numeric suffix")
    return int(suffix)


@dataclass(frozen=True)
class SequenceScope:
    """
    A partition of the counter space: every identifier of `model.field` that
    looks like <prefix><pad_width digits>.
    """
    model: type[models.Model]
    field: str
    prefix: str
    pad_width: int

    @property
    def pattern(self) -> str:
        return rf"^{re.escape(self.prefix)}[0-9]{{{self.pad_width}}}$"

    @property
    def capacity(self) -> int:
        return 10 ** self.pad_width - 1

    def _matching(self):
        return self.model._default_manager.filter(**{f"{self.field}__regex": self.pattern})

    def current_max(self) -> int:
        # Fixed width => lexicographic order == numeric order.
        latest = (
            self._matching()
            .order_by(f"-{self.field}")
            .values_list(self.field, flat=True)
            .first()
        )
        if not latest:
            return 0
        return parse_suffix(latest, self.prefix)

    def exists(self, identifier: str) -> bool:
        return self.model._default_manager.filter(**{self.field: identifier}).exists()


def patient_code_scope() -> SequenceScope:
    from hc_core.patients.models import Patient

    return SequenceScope(
        model=Patient,
        field="patient_code",
        prefix=PATIENT_CODE_PREFIX,
        pad_width=PATIENT_CODE_WIDTH,
    )


def prescription_number_scope(day: date) -> SequenceScope:
    from hc_core.prescriptions.models import Prescription

    return SequenceScope(
        model=Prescription,
        field="prescription_number",
        prefix=f"{PRESCRIPTION_PREFIX}{day:%Y%m%d}",
        pad_width=PRESCRIPTION_SEQ_WIDTH,
    )


def _max_attempts() -> int:
    return int(getattr(settings, "SEQUENCE_ALLOCATOR_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))


class SequenceAllocator:
    @staticmethod
    def allocate(
        scope: SequenceScope,
        insert: Callable[[str], T],
        *,
        max_attempts: int | None = None,
    ) -> T:
        """
        Allocate the next identifier in `scope` and return whatever `insert`
        returned for it.

        Only an IntegrityError caused by the proposed identifier already existing
        counts as a lost race; any other IntegrityError is re-raised untouched.
        """
        attempts = max_attempts or _max_attempts()

        for attempt in range(1, attempts + 1):
            proposed = scope.current_max() + 1
            if proposed > scope.capacity:
                raise AllocationExhausted(
                    f"Identifier space {scope.prefix} is full.",
                    details={"prefix": scope.prefix, "pad_width": scope.pad_width},
                )

            identifier = format_identifier(scope.prefix, proposed, scope.pad_width)
            try:
                with transaction.atomic():
                    return insert(identifier)
            except IntegrityError:
                if not scope.exists(identifier):
                    raise
                logger.info(
                    "Identifier %s lost to a concurrent writer (attempt %s/%s)",
                    identifier,
                    attempt,
                    attempts,
                )

        logger.warning("Allocation exhausted for prefix %s after %s attempts", scope.prefix, attempts)
        raise AllocationExhausted(details={"prefix": scope.prefix, "attempts": attempts})
