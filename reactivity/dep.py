"""
Deps implement the classic observable pattern: each one is the set of
effects that read a single field of an observable datastructure.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .effect import Effect


logger = logging.getLogger(__name__)

# Top of the active effect stack. Every effect run sets this and resets it
# with the returned token when done, which restores the previous effect.
active_effect: ContextVar[Optional["Effect"]] = ContextVar(
    "active_effect", default=None
)


class _Iterate:
    __slots__ = ()

    def __repr__(self):
        return "ITERATE"


# Key under which reads of the set of keys of a target are tracked
ITERATE = _Iterate()


class TriggerOp(Enum):
    ADD = "add"
    SET = "set"
    DELETE = "delete"


@contextmanager
def untracked():
    """
    Run the enclosed block without an active effect, so that nothing
    that is read inside of it is tracked.
    """
    token = active_effect.set(None)
    try:
        yield
    finally:
        active_effect.reset(token)


class Dep:
    __slots__ = ("__weakref__", "_subs")

    def __init__(self) -> None:
        # dict used as an insertion ordered set
        self._subs: dict[Effect, None] | None = None

    def __contains__(self, sub: "Effect") -> bool:
        return self._subs is not None and sub in self._subs

    def __len__(self) -> int:
        return len(self._subs) if self._subs else 0

    def add_sub(self, sub: "Effect") -> None:
        if self._subs is None:
            self._subs = {}
        self._subs[sub] = None

    def remove_sub(self, sub: "Effect") -> None:
        if self._subs:
            self._subs.pop(sub, None)

    def depend(self) -> None:
        effect = active_effect.get()
        if effect is not None:
            effect.add_dep(self)

    def notify(self) -> None:
        trigger_effects(self)


def trigger_effects(*deps: Dep | None) -> None:
    """
    Run (or schedule) every effect subscribed to one of the given deps.

    Subscribers are copied before any of them runs because running an
    effect resubscribes it. The currently active effect is skipped so that
    an effect can write to a field it reads. An error in one effect does not
    prevent the others from running: the first error is raised once all
    effects had their turn.
    """
    effects = {}
    for dep in deps:
        if dep is not None and dep._subs:
            effects.update(dep._subs)
    if not effects:
        return

    current = active_effect.get()
    errors = []
    for effect in effects:
        # an effect may have been stopped by one that ran before it
        if effect is current or not effect.active:
            continue
        try:
            if effect.scheduler is not None:
                effect.scheduler(effect)
            else:
                effect.run()
        except Exception as e:
            errors.append(e)

    if errors:
        for error in errors[1:]:
            logger.error("Error in effect during trigger", exc_info=error)
        raise errors[0]
