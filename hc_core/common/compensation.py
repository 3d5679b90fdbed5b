# hc_core/common/compensation.py
"""
Compensating-action stack for multi-step writes that are not covered by a
single database transaction.

Each forward step pushes its inverse. If anything raises inside the `with`
block, the inverses run newest-first and the original exception propagates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Compensation:
    label: str
    fn: Callable[..., Any]
    args: tuple
    kwargs: dict


class CompensationStack:
    def __init__(self, name: str):
        self.name = name
        self._actions: list[Compensation] = []

    def __len__(self) -> int:
        return len(self._actions)

    def push(self, label: str, fn: Callable[..., Any], *args, **kwargs) -> None:
        self._actions.append(Compensation(label=label, fn=fn, args=args, kwargs=kwargs))

    def unwind(self) -> list[str]:
        """
        Run every pending compensation in reverse order.
        A failing compensation is logged and the rest still run.
        Returns the labels that failed.
        """
        failed: list[str] = []
        while self._actions:
            action = self._actions.pop()
            try:
                action.fn(*action.args, **action.kwargs)
            except Exception:
                logger.exception("%s: compensation %r failed", self.name, action.label)
                failed.append(action.label)
        return failed

    def discard(self) -> None:
        """Forget pending compensations once the unit of work has succeeded."""
        self._actions.clear()

    def __enter__(self) -> "CompensationStack":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.discard()
            return False

        pending = len(self._actions)
        failed = self.unwind()
        logger.warning(
            "%s failed (%s); rolled back %s step(s)%s",
            self.name,
            exc_type.__name__,
            pending,
            f", {len(failed)} compensation(s) failed: {failed}" if failed else "",
        )
        return False
