from .proxy import TYPE_LOOKUP, Proxy
from .traps import (
    COMPARISONS,
    FORMATTERS,
    construct_methods_traps_dict,
    trap_map,
    trap_map_readonly,
)

_operators = ("and", "or", "sub", "xor")

# Membership tests depend on the tested member only, so adding or
# removing some other member won't trigger them
set_traps = {
    "READERS": {
        "copy",
        "difference",
        "intersection",
        "isdisjoint",
        "issubset",
        "issuperset",
        "symmetric_difference",
        "union",
        *(f"__{op}__" for op in _operators),
        *(f"__r{op}__" for op in _operators),
        *COMPARISONS,
        *FORMATTERS,
    },
    "KEYREADERS": {"__contains__"},
    "KEYS": {"__len__"},
    "ITERATORS": {"__iter__"},
    "MEMBERWRITERS": {"add", "discard", "remove"},
    "WRITERS": {
        "clear",
        "difference_update",
        "intersection_update",
        "pop",
        "symmetric_difference_update",
        "update",
        *(f"__i{op}__" for op in _operators),
    },
}


class SetProxyBase(Proxy[set]):
    pass


def readonly_set_proxy_init(self, target, shallow=False, **kwargs):
    super(ReadonlySetProxy, self).__init__(
        target, shallow=shallow, **{**kwargs, "readonly": True}
    )


SetProxy = type(
    "SetProxy", (SetProxyBase,), construct_methods_traps_dict(set, set_traps, trap_map)
)
ReadonlySetProxy = type(
    "ReadonlySetProxy",
    (SetProxyBase,),
    {
        "__init__": readonly_set_proxy_init,
        **construct_methods_traps_dict(set, set_traps, trap_map_readonly),
    },
)


def type_test(target):
    return isinstance(target, set)


TYPE_LOOKUP[type_test] = (SetProxy, ReadonlySetProxy)
