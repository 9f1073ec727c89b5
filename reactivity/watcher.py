"""
watchers perform dependency tracking via functions acting on
observable datastructures, and optionally trigger callback when
a change is detected.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Generic, Literal, Optional, TypeVar, Union

from .dep import Dep, untracked
from .dict_proxy import DictProxyBase
from .effect import Effect
from .list_proxy import ListProxyBase
from .object_proxy import ObjectProxyBase
from .object_utils import has_changed
from .proxy import Proxy, proxy
from .scheduler import scheduler, sync_scheduler
from .set_proxy import SetProxyBase

T = TypeVar("T")
Watchable = Union[Callable[[], T], T]
InvalidateCallback = Callable[[Callable[[], Any]], None]
WatchCallback = Union[
    Callable[[], Any],
    Callable[[T], Any],
    Callable[[T, T], Any],
    Callable[[T, T, InvalidateCallback], Any],
]
Flush = Literal["sync", "post"]


def watch(
    fn: Watchable[T],
    callback: WatchCallback[T],
    *,
    immediate: bool = False,
    flush: Flush = "sync",
    deep: bool | None = None,
) -> Watcher[T]:
    return Watcher(fn, callback, flush=flush, deep=deep, immediate=immediate)


def watch_effect(fn: Callable[[], Any], *, flush: Flush = "sync") -> Watcher:
    return Watcher(fn, flush=flush)


def computed(
    _fn: Callable[[], T] | None = None, *, deep: bool = False
) -> Computed[T] | Callable[[Callable[[], T]], Computed[T]]:
    def decorator_computed(fn: Callable[[], T]) -> Computed[T]:
        """
        Create a cached value for an expression.
        Note: make sure fn doesn't need any arguments to run
        and that no reactive state is changed within the expression
        """
        return Computed(fn, deep=deep)

    if _fn is None:
        return decorator_computed
    return decorator_computed(_fn)


def traverse(obj, seen=None):
    """
    Recursively traverse the whole tree to make sure
    that all values have been 'get'
    """
    # track which objects we have already seen to support(!) full traversal
    # of datastructures with cycles
    if seen is None:
        seen = set()

    if isinstance(obj, tuple):
        val_iter = iter(obj)
    elif isinstance(obj, Proxy):
        target_id = id(obj.__target__)
        if target_id in seen:
            return
        seen.add(target_id)
        if isinstance(obj, DictProxyBase):
            val_iter = obj.values()
        elif isinstance(obj, (ListProxyBase, SetProxyBase)):
            val_iter = iter(obj)
        elif isinstance(obj, ObjectProxyBase):
            val_iter = (getattr(obj, attr) for attr in vars(obj))
        else:
            return
    else:
        # only proxies can be tracked, so we can just exit
        return

    for v in val_iter:
        traverse(v, seen=seen)


def get_scheduler(flush: Flush):
    if flush == "sync":
        return sync_scheduler
    if flush == "post":
        return scheduler
    raise ValueError(f"Unknown flush mode: {flush!r}")


class WrongNumberOfArgumentsError(TypeError):
    """
    Error that is used to signal that the wrong number of arguments is
    used for the callback
    """

    pass


def callback_arity(callback: Callable) -> int:
    """
    Returns with how many of (new, old, on_invalidate) the callback
    should be called, based on its required positional parameters.
    """
    try:
        parameters = inspect.signature(callback).parameters.values()
    except (TypeError, ValueError):
        # No signature available (some builtins)
        return 2

    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    required = 0
    for param in parameters:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 3
        if param.kind in positional and param.default is inspect.Parameter.empty:
            required += 1

    if required > 3:
        raise WrongNumberOfArgumentsError(
            "Please use 0, 1, 2 or 3 arguments for callbacks"
        )
    return required


class Computed(Generic[T]):
    """
    Cached value of an expression. The expression is only evaluated when
    the value is requested after one of its dependencies changed.
    """

    __slots__ = ("__weakref__", "_dep", "_value", "deep", "dirty", "effect", "fn")

    def __init__(self, fn: Callable[[], T], deep: bool = False) -> None:
        self.fn = fn
        self.deep = deep
        self.dirty = True
        self._value: Optional[T] = None
        # Effects that use this computed value subscribe to this dep
        self._dep = Dep()
        self.effect = Effect(self.get, lazy=True, scheduler=self.invalidate)

    def get(self) -> T:
        value = self.fn()
        if self.deep:
            traverse(value)
        return value

    def invalidate(self, effect: Effect) -> None:
        if not self.dirty:
            self.dirty = True
            self._dep.notify()

    @property
    def value(self) -> T:
        if self.dirty:
            self._value = self.effect.run()
            self.dirty = False
        self._dep.depend()
        return self._value

    def __call__(self) -> T:
        return self.value

    def __repr__(self) -> str:
        state = "dirty" if self.dirty else repr(self._value)
        name = getattr(self.fn, "__qualname__", repr(self.fn))
        return f"<Computed {name}: {state}>"


class Watcher(Generic[T]):
    __slots__ = (
        "__weakref__",
        "_arity",
        "_cleanup",
        "_tasks",
        "callback",
        "deep",
        "effect",
        "fn",
        "id",
        "scheduler",
        "value",
    )

    def __init__(
        self,
        fn: Watchable[T],
        callback: WatchCallback[T] | None = None,
        flush: Flush = "sync",
        deep: bool | None = None,
        immediate: bool = False,
    ) -> None:
        """
        callback: Method to call when value has changed
        flush: Run the callback right away ("sync") or queue it
            on the scheduler ("post")
        deep: Deep watch the watched value
        immediate: Run the callback right away for the current value
        """
        if callable(fn) and not isinstance(fn, Proxy):
            self.fn = fn
        else:
            source = proxy(fn)
            self.fn = lambda: source
            # Default to deep watching when watching a proxy
            # or a list of proxies
            if deep is None:
                deep = True
        self.deep = bool(deep)
        self.scheduler = get_scheduler(flush)
        self.callback = callback
        self._arity = callback_arity(callback) if callback is not None else 0
        self._cleanup: Optional[Callable[[], Any]] = None
        self._tasks: set[asyncio.Task] = set()
        self.value: Optional[T] = None

        self.effect = Effect(self.get, lazy=True, scheduler=self.update)
        # Jobs are flushed in the order in which the watchers were created
        self.id = self.effect.id
        if immediate:
            self.run(force=True)
        else:
            self.value = self.effect.run()

    @property
    def active(self) -> bool:
        return self.effect.active

    def get(self) -> T:
        value = self.fn()
        if self.deep:
            traverse(value)
        return value

    def update(self, effect: Effect) -> None:
        self.scheduler.schedule(self)

    def run(self, force: bool = False) -> None:
        """Called by the scheduler"""
        if not self.effect.active:
            return
        value = self.effect.run()
        if self.callback is None:
            return
        if not (force or self.deep or has_changed(self.value, value)):
            return

        old_value = self.value
        self.invalidate()
        try:
            self.run_callback(value, old_value)
        finally:
            self.value = value

    def run_callback(self, new: T, old: T | None) -> None:
        args = (new, old, self.on_invalidate)[: self._arity]
        # The callback is not part of the watched expression
        with untracked():
            maybe_coro = self.callback(*args)
            if inspect.iscoroutine(maybe_coro):
                self.run_coroutine(maybe_coro)

    def run_coroutine(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return
        task = loop.create_task(coro)
        # Keep a reference until the task is done
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def on_invalidate(self, fn: Callable[[], Any]) -> None:
        """
        Register fn to be called before the next time the callback runs
        or when this watcher is stopped, whichever comes first.
        """
        self._cleanup = fn

    def invalidate(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()

    def stop(self) -> None:
        self.effect.stop()
        self.invalidate()

    __call__ = stop

    def __repr__(self) -> str:
        name = getattr(self.fn, "__qualname__", repr(self.fn))
        return f"<Watcher {self.id} {name}>"
