import inspect
from enum import Enum

from .dep import ITERATE, TriggerOp, active_effect
from .object_utils import get_class_attr, get_object_attrs, has_changed
from .proxy import TYPE_LOOKUP, Proxy, proxy, unwrap
from .proxy_db import proxy_db
from .traps import ReadonlyError


def track_attrs(target):
    if active_effect.get() is None:
        return
    proxy_db.track(target, ITERATE)
    for name in get_object_attrs(target):
        proxy_db.track(target, name)


class ObjectProxyBase(Proxy):
    def __getattribute__(self, name):
        if name in Proxy.__slots__:
            return super().__getattribute__(name)

        target = self.__target__
        if name == "__dict__":
            track_attrs(target)
            return {attr: getattr(target, attr) for attr in get_object_attrs(target)}

        if name not in get_object_attrs(target):
            class_attr = get_class_attr(target, name)
            if isinstance(class_attr, property) or inspect.isfunction(class_attr):
                # Bind getters and methods to the proxy so that
                # the attributes they use are tracked as well
                return class_attr.__get__(self, type(target))
            if class_attr is None:
                # The attribute might be added later on
                proxy_db.track(target, name)
            return getattr(target, name)

        proxy_db.track(target, name)
        value = getattr(target, name)
        if self.__shallow__:
            return value
        return proxy(value, readonly=self.__readonly__)

    def __setattr__(self, name, value):
        if name in Proxy.__slots__:
            return super().__setattr__(name, value)

        if self.__readonly__:
            raise ReadonlyError()

        target = self.__target__
        class_attr = get_class_attr(target, name)
        if isinstance(class_attr, property):
            # The setter writes through the proxy
            return class_attr.__set__(self, value)

        had_attr = name in get_object_attrs(target)
        old_value = getattr(target, name, None) if had_attr else None
        setattr(target, name, unwrap(value))

        if name not in get_object_attrs(target):
            # the set attr is not stateful (e.g. handled by a descriptor)
            # so no need to track this modification
            return

        if not had_attr:
            proxy_db.trigger(target, name, TriggerOp.ADD)
        elif has_changed(old_value, getattr(target, name)):
            proxy_db.trigger(target, name, TriggerOp.SET)

    def __delattr__(self, name):
        if name in Proxy.__slots__:
            return super().__delattr__(name)

        if self.__readonly__:
            raise ReadonlyError()

        target = self.__target__
        had_attr = name in get_object_attrs(target)
        delattr(target, name)
        if had_attr:
            proxy_db.trigger(target, name, TriggerOp.DELETE)

    def __dir__(self):
        target = self.__target__
        proxy_db.track(target, ITERATE)
        return dir(target)

    def __bool__(self):
        return bool(self.__target__)


def passthrough(method):
    in_place = method.startswith("__i") and method[3:-2] in _binary_operators

    def trap(self, *args, **kwargs):
        target = self.__target__
        fn = getattr(target, method, None)
        if fn is None:
            # not cached, the class of the target might get the method later on
            raise TypeError(f"object of type '{type(self)}' has no {method}")
        result = fn(*args, **kwargs)
        if in_place and result is target:
            # Make sure `proxy += value` keeps the name bound to the proxy
            return self
        return result

    trap.__name__ = method
    return trap


_binary_operators = (
    "add",
    "and",
    "divmod",
    "floordiv",
    "lshift",
    "matmul",
    "mod",
    "mul",
    "or",
    "pow",
    "rshift",
    "sub",
    "truediv",
    "xor",
)

# Special methods are looked up on the type, so they have to be
# defined on the proxy type in order to reach the target.
# These are not tracked.
magic_methods = [
    *(f"__{op}__" for op in _binary_operators),
    *(f"__r{op}__" for op in _binary_operators),
    *(f"__i{op}__" for op in _binary_operators if op != "divmod"),
    # unary operators and conversions
    "__abs__",
    "__bytes__",
    "__ceil__",
    "__complex__",
    "__float__",
    "__floor__",
    "__index__",
    "__int__",
    "__invert__",
    "__neg__",
    "__pos__",
    "__round__",
    "__trunc__",
    # containers and iteration
    "__contains__",
    "__delitem__",
    "__getitem__",
    "__iter__",
    "__len__",
    "__length_hint__",
    "__next__",
    "__reversed__",
    "__setitem__",
    # context managers and async
    "__aenter__",
    "__aexit__",
    "__aiter__",
    "__anext__",
    "__await__",
    "__enter__",
    "__exit__",
    # comparison, hashing and the rest
    "__call__",
    "__eq__",
    "__format__",
    "__ge__",
    "__gt__",
    "__hash__",
    "__le__",
    "__lt__",
    "__ne__",
    "__repr__",
    "__str__",
]


ObjectProxy = type(
    "ObjectProxy",
    (ObjectProxyBase,),
    {method: passthrough(method) for method in magic_methods},
)


class ReadonlyObjectProxy(ObjectProxy):
    def __init__(self, target, shallow=False, **kwargs):
        super().__init__(target, shallow=shallow, **{**kwargs, "readonly": True})


def type_test(target):
    # exclude builtin objects
    # exclude objects for which we have better proxies available
    # exclude classes, enum members and ndarrays
    return not isinstance(target, (list, set, dict, tuple, type, Enum)) and type(
        target
    ).__module__ not in (object.__module__, "numpy")


TYPE_LOOKUP[type_test] = (ObjectProxy, ReadonlyObjectProxy)
