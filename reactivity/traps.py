from functools import partial, wraps

from .dep import ITERATE, TriggerOp, active_effect
from .object_utils import has_changed
from .proxy import proxy, unwrap
from .proxy_db import proxy_db


class ReadonlyError(Exception):
    """
    Raised when a readonly proxy is modified.
    """

    pass


# Method groups that the builtin containers have in common
COMPARISONS = {"__eq__", "__ge__", "__gt__", "__le__", "__lt__", "__ne__"}
FORMATTERS = {"__format__", "__repr__", "__sizeof__", "__str__"}


def track_contents(target):
    """
    Track the keys of target, and for dicts also the value of each key
    """
    if active_effect.get() is None:
        return
    proxy_db.track(target, ITERATE)
    if isinstance(target, dict):
        for key in target:
            proxy_db.track(target, key)


def trigger_changes(target, old):
    """
    Trigger the keys that differ between the target and a copy of
    its previous contents
    """
    if isinstance(target, dict):
        changes = [(key, TriggerOp.DELETE) for key in old.keys() - target.keys()]
        for key, value in target.items():
            if key not in old:
                changes.append((key, TriggerOp.ADD))
            elif has_changed(old[key], value):
                changes.append((key, TriggerOp.SET))
    elif isinstance(target, set):
        changes = [(item, TriggerOp.DELETE) for item in old - target]
        changes.extend((item, TriggerOp.ADD) for item in target - old)
    else:
        changes = []
        if len(target) > len(old):
            changes.append((ITERATE, TriggerOp.ADD))
        elif len(target) < len(old):
            changes.append((ITERATE, TriggerOp.DELETE))
        elif any(has_changed(a, b) for a, b in zip(old, target)):
            changes.append((ITERATE, TriggerOp.SET))

    for key, op in changes:
        proxy_db.trigger(target, key, op)


def read_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        target = self.__target__
        track_contents(target)
        value = fn(target, *map(unwrap, args), **kwargs)
        if self.__shallow__:
            return value
        return proxy(value, readonly=self.__readonly__)

    return trap


def iterate_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        target = self.__target__
        track_contents(target)
        iterator = fn(target, *args, **kwargs)
        if self.__shallow__:
            return iterator
        if method == "items":
            return (
                (key, proxy(value, readonly=self.__readonly__))
                for key, value in iterator
            )
        proxied = partial(proxy, readonly=self.__readonly__)
        return map(proxied, iterator)

    return trap


def keys_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        target = self.__target__
        proxy_db.track(target, ITERATE)
        return fn(target, *args, **kwargs)

    return trap


def read_key_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, key, *args, **kwargs):
        target = self.__target__
        key = unwrap(key)
        proxy_db.track(target, key)
        value = fn(target, key, *args, **kwargs)
        if self.__shallow__:
            return value
        return proxy(value, readonly=self.__readonly__)

    return trap


def write_trap(method, obj_cls):
    fn = getattr(obj_cls, method)
    in_place = method.startswith("__i")
    # Methods that hand out an item that was removed from the target
    returns_item = method in ("pop", "popitem")

    @wraps(fn)
    def trap(self, *args, **kwargs):
        target = self.__target__
        old = target.copy()
        retval = fn(target, *map(unwrap, args), **kwargs)
        trigger_changes(target, old)
        if in_place:
            # Make sure `proxy += value` keeps the name bound to the proxy
            return self
        if returns_item and not self.__shallow__:
            return proxy(retval)
        return retval

    return trap


def write_key_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, key, *args, **kwargs):
        target = self.__target__
        if method == "setdefault":
            proxy_db.track(target, key)
        had_key = key in target
        old_value = target.get(key)
        retval = fn(target, key, *map(unwrap, args), **kwargs)
        if not had_key:
            proxy_db.trigger(target, key, TriggerOp.ADD)
        elif has_changed(old_value, target[key]):
            proxy_db.trigger(target, key, TriggerOp.SET)
        if method == "setdefault" and not self.__shallow__:
            return proxy(retval)
        return retval

    return trap


def delete_key_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, key, *args, **kwargs):
        target = self.__target__
        had_key = key in target
        retval = fn(target, key, *args, **kwargs)
        if had_key:
            proxy_db.trigger(target, key, TriggerOp.DELETE)
        if self.__shallow__:
            return retval
        return proxy(retval)

    return trap


def write_member_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, item):
        target = self.__target__
        item = unwrap(item)
        was_member = item in target
        retval = fn(target, item)
        if was_member != (item in target):
            op = TriggerOp.DELETE if was_member else TriggerOp.ADD
            proxy_db.trigger(target, item, op)
        return retval

    return trap


trap_map = {
    "READERS": read_trap,
    "KEYREADERS": read_key_trap,
    "KEYS": keys_trap,
    "ITERATORS": iterate_trap,
    "WRITERS": write_trap,
    "KEYWRITERS": write_key_trap,
    "KEYDELETERS": delete_key_trap,
    "MEMBERWRITERS": write_member_trap,
}


def readonly_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        raise ReadonlyError()

    return trap


trap_map_readonly = {
    "READERS": read_trap,
    "KEYREADERS": read_key_trap,
    "KEYS": keys_trap,
    "ITERATORS": iterate_trap,
    "WRITERS": readonly_trap,
    "KEYWRITERS": readonly_trap,
    "KEYDELETERS": readonly_trap,
    "MEMBERWRITERS": readonly_trap,
}


def construct_methods_traps_dict(obj_cls, traps, trap_map):
    return {
        method: trap_map[trap_type](method, obj_cls)
        for trap_type, methods in traps.items()
        for method in methods
    }
