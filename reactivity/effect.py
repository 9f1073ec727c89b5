"""
Effects are re-runnable computations. Every field of an observable
datastructure that is read while an effect runs becomes a dependency of
that effect, and changing such a field will run the effect again.
"""

from __future__ import annotations

import logging
from itertools import count
from typing import Any, Callable, Generic, Optional, TypeVar

from .dep import Dep, active_effect, untracked

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Every Effect gets a unique ID which is used to
# keep track of the order in which jobs are flushed
_ids = count()


class Effect(Generic[T]):
    __slots__ = (
        "__weakref__",
        "_deps",
        "active",
        "fn",
        "id",
        "lazy",
        "scheduler",
    )

    def __init__(
        self,
        fn: Callable[[], T],
        lazy: bool = False,
        scheduler: Optional[Callable[[Effect[T]], None]] = None,
    ) -> None:
        """
        lazy: Don't run fn on creation
        scheduler: Called with the effect instead of running it when
            one of its dependencies changes
        """
        self.id = next(_ids)
        self.fn = fn
        self.lazy = lazy
        self.scheduler = scheduler
        self.active = True
        # Every dep that has this effect as subscriber
        self._deps: list[Dep] = []
        if not lazy:
            self.run()

    def run(self) -> T:
        if not self.active:
            with untracked():
                return self.fn()

        # Unsubscribe before running so that fields that are not read
        # anymore will not trigger this effect again
        self.cleanup()
        token = active_effect.set(self)
        try:
            return self.fn()
        finally:
            active_effect.reset(token)

    __call__ = run

    def add_dep(self, dep: Dep) -> None:
        if self not in dep:
            dep.add_sub(self)
            self._deps.append(dep)

    def cleanup(self) -> None:
        for dep in self._deps:
            dep.remove_sub(self)
        self._deps.clear()

    def stop(self) -> None:
        """Unsubscribe from all deps; the effect won't be triggered anymore."""
        if self.active:
            self.cleanup()
            self.active = False
            logger.debug("Stopped effect %s", self.fn_fqn)

    @property
    def fn_fqn(self) -> str:
        module = getattr(self.fn, "__module__", None)
        name = getattr(self.fn, "__qualname__", repr(self.fn))
        return f"{module}.{name}" if module else name

    def __repr__(self) -> str:
        state = "active" if self.active else "stopped"
        return f"<Effect {self.id} {self.fn_fqn} ({state})>"


def effect(
    _fn: Callable[[], Any] | None = None,
    *,
    lazy: bool = False,
    scheduler: Optional[Callable[[Effect], None]] = None,
) -> Effect | Callable[[Callable[[], Any]], Effect]:
    """
    Wrap fn in an Effect. Unless lazy, fn runs right away. The returned
    effect can be called to run fn again with fresh dependency tracking.

    Can be used as a plain function, or as a decorator with or without
    keyword arguments.
    """

    def decorator_effect(fn: Callable[[], Any]) -> Effect:
        return Effect(fn, lazy=lazy, scheduler=scheduler)

    if _fn is None:
        return decorator_effect
    return decorator_effect(_fn)
