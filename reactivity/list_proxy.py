from .proxy import TYPE_LOOKUP, Proxy
from .traps import (
    COMPARISONS,
    FORMATTERS,
    construct_methods_traps_dict,
    trap_map,
    trap_map_readonly,
)

# Lists are tracked as a whole: every read depends on ITERATE
# and every change of the contents triggers it
list_traps = {
    "READERS": {
        "count",
        "index",
        "copy",
        "__add__",
        "__contains__",
        "__getitem__",
        "__mul__",
        "__rmul__",
        *COMPARISONS,
        *FORMATTERS,
    },
    "KEYS": {"__len__"},
    "ITERATORS": {"__iter__", "__reversed__"},
    "WRITERS": {
        "append",
        "clear",
        "extend",
        "insert",
        "pop",
        "remove",
        "reverse",
        "sort",
        "__delitem__",
        "__iadd__",
        "__imul__",
        "__setitem__",
    },
}


class ListProxyBase(Proxy[list]):
    pass


def readonly_list_proxy_init(self, target, shallow=False, **kwargs):
    super(ReadonlyListProxy, self).__init__(
        target, shallow=shallow, **{**kwargs, "readonly": True}
    )


ListProxy = type(
    "ListProxy",
    (ListProxyBase,),
    construct_methods_traps_dict(list, list_traps, trap_map),
)
ReadonlyListProxy = type(
    "ReadonlyListProxy",
    (ListProxyBase,),
    {
        "__init__": readonly_list_proxy_init,
        **construct_methods_traps_dict(list, list_traps, trap_map_readonly),
    },
)


def type_test(target):
    return isinstance(target, list)


TYPE_LOOKUP[type_test] = (ListProxy, ReadonlyListProxy)
