"""
A Store keeps application state together with its history. The state is
readonly from the outside; only methods decorated with `mutation` can
change it, and every change they make can be undone and redone.
"""

from contextlib import contextmanager
from functools import partial, wraps
from typing import Callable, Generic, NamedTuple, TypeVar

import patchdiff

from .proxy import reactive, readonly, shallow_reactive, to_raw
from .watcher import Computed

T = TypeVar("T", bound=Callable)
S = TypeVar("S")


class Change(NamedTuple):
    """Patches (json patch operations) that apply and revert a mutation"""

    ops: list
    reverse_ops: list


def mutation(fn: T) -> T:
    """
    Decorated store methods can modify the state. The change that they
    make is recorded so that it can be undone.
    """

    @wraps(fn)
    def inner(self, *args, **kwargs):
        before = to_raw(self._present)
        with self._writable():
            fn(self, *args, **kwargs)
        self._record(Change(*patchdiff.diff(before, to_raw(self._present))))

    return inner


def computed(_fn=None, *, deep=False):
    """
    Decorated store methods are available as cached properties on the store
    """

    def decorator_computed(fn: T) -> T:
        fn.deep = deep
        fn.decorator = "computed"
        return fn

    if _fn is None:
        return decorator_computed
    return decorator_computed(_fn)


class Store(Generic[S]):
    def __init__(self, state: S, strict=True):
        """
        strict: raise a RuntimeError when a mutation does not change
            the state. Otherwise such a mutation is not recorded.
        """
        self._strict = strict
        self._present = reactive(state)
        self._past = shallow_reactive([])
        self._future = shallow_reactive([])
        self.state = readonly(state)
        self._computed_props = {
            name: Computed(partial(fn, self), deep=fn.deep)
            # looked up on the type: _computed_props does not exist yet
            for name, fn in type(self)._computed_methods()
        }

    @classmethod
    def _computed_methods(cls):
        for name in dir(cls):
            fn = getattr(cls, name, None)
            if getattr(fn, "decorator", None) == "computed":
                yield name, fn

    def __getattribute__(self, name):
        super_getattribute = super().__getattribute__
        prop = super_getattribute("_computed_props").get(name)
        if prop is not None:
            # Computed methods behave like properties
            return prop.value
        return super_getattribute(name)

    @contextmanager
    def _writable(self):
        readonly_state = self.state
        self.state = self._present
        try:
            yield
        finally:
            self.state = readonly_state

    def _record(self, change: Change):
        if not (change.ops or change.reverse_ops):
            if self._strict:
                raise RuntimeError(
                    "Calling mutation didn't result in any change to state"
                )
            return
        self._past.append(change)
        self._future.clear()

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    def undo(self):
        """Reverts the last recorded mutation, if any"""
        if not self.can_undo:
            return
        change = self._past.pop()
        patchdiff.iapply(self._present, change.reverse_ops)
        self._future.append(change)

    def redo(self):
        """Applies the last undone mutation again, if any"""
        if not self.can_redo:
            return
        change = self._future.pop()
        patchdiff.iapply(self._present, change.ops)
        self._past.append(change)
