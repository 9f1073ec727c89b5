from __future__ import annotations

from functools import partial
from typing import Generic, TypedDict, TypeVar, cast

from .proxy_db import proxy_db

T = TypeVar("T")


class Proxy(Generic[T]):
    """
    Observable handle for a single target object. Reads through the handle
    are tracked and writes trigger the effects that depend on them.

    Every handle registers itself in the proxy_db on creation and
    unregisters when it is destroyed. Use `proxy` (or `reactive`,
    `readonly`, ...) to get a handle: it reuses the cached handle for
    the target when there is one, which keeps the db consistent.
    """

    __hash__ = None
    # The names of the slots are reserved: they are never forwarded to
    # the target, so they have to be unlikely to clash with attributes
    # of proxied objects
    __slots__ = ("__readonly__", "__shallow__", "__target__", "__weakref__")

    def __init__(self, target: T, readonly=False, shallow=False):
        self.__target__ = target
        self.__readonly__ = readonly
        self.__shallow__ = shallow
        proxy_db.reference(self)

    def __del__(self):
        proxy_db.dereference(self)


# Maps a test function for a kind of target (dict, list, set, object)
# to the writable and readonly proxy type for that kind. Filled in by
# the modules that define the proxy types.
TYPE_LOOKUP = {}


def proxy_type(target, readonly=False):
    for type_test, (writable_type, readonly_type) in TYPE_LOOKUP.items():
        if type_test(target):
            return readonly_type if readonly else writable_type
    return None


def proxy(target: T, readonly=False, shallow=False) -> T:
    """
    Returns the handle for target with the given configuration, creating
    it when there is none yet. Values that can't be observed (numbers,
    strings, functions, classes, ...) are returned as-is and tuples
    become a tuple of handles.
    """
    if isinstance(target, Proxy):
        if readonly == target.__readonly__ and shallow == target.__shallow__:
            return target
        # A handle with another configuration was passed in
        target = target.__target__

    existing = proxy_db.get_proxy(target, readonly=readonly, shallow=shallow)
    if existing is not None:
        return existing

    new_type = proxy_type(target, readonly=readonly)
    if new_type is not None:
        return new_type(target, readonly=readonly, shallow=shallow)

    if isinstance(target, tuple):
        return cast(
            T, tuple(proxy(x, readonly=readonly, shallow=shallow) for x in target)
        )

    return cast(T, target)


class Ref(TypedDict, Generic[T]):
    value: T


def ref(target: T) -> Ref[T]:
    """Returns a reactive container for a single value under the "value" key"""
    return proxy(Ref(value=target))


reactive = proxy
readonly = partial(proxy, readonly=True)
shallow_reactive = partial(proxy, shallow=True)
shallow_readonly = partial(proxy, shallow=True, readonly=True)


def unwrap(value: Proxy[T] | T) -> T:
    """
    Returns the object that is wrapped by the given proxy, or the value
    itself when it is not a proxy.
    """
    if isinstance(value, Proxy):
        return value.__target__
    return value


def to_raw(target: Proxy[T] | T) -> T:
    """
    Returns a plain copy of target in which every handle, at any depth,
    is replaced by a copy of the object it wraps.
    """
    target = unwrap(target)

    if isinstance(target, dict):
        return cast(T, {key: to_raw(value) for key, value in target.items()})

    for container_type in (list, tuple, set):
        if isinstance(target, container_type):
            return cast(T, container_type(to_raw(item) for item in target))

    return target
