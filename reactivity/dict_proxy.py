from .proxy import TYPE_LOOKUP, Proxy
from .traps import (
    COMPARISONS,
    FORMATTERS,
    construct_methods_traps_dict,
    trap_map,
    trap_map_readonly,
)

dict_traps = {
    "READERS": {"copy", "__or__", "__ror__", *COMPARISONS, *FORMATTERS},
    "KEYREADERS": {"get", "__contains__", "__getitem__"},
    # Only depend on which keys there are, not on their values
    "KEYS": {"keys", "__iter__", "__len__", "__reversed__"},
    "ITERATORS": {"items", "values"},
    "WRITERS": {"clear", "popitem", "update", "__ior__"},
    "KEYWRITERS": {"setdefault", "__setitem__"},
    "KEYDELETERS": {"pop", "__delitem__"},
}


class DictProxyBase(Proxy[dict]):
    pass


def readonly_dict_proxy_init(self, target, shallow=False, **kwargs):
    super(ReadonlyDictProxy, self).__init__(
        target, shallow=shallow, **{**kwargs, "readonly": True}
    )


DictProxy = type(
    "DictProxy",
    (DictProxyBase,),
    construct_methods_traps_dict(dict, dict_traps, trap_map),
)
ReadonlyDictProxy = type(
    "ReadonlyDictProxy",
    (DictProxyBase,),
    {
        "__init__": readonly_dict_proxy_init,
        **construct_methods_traps_dict(dict, dict_traps, trap_map_readonly),
    },
)


def type_test(target):
    return isinstance(target, dict)


TYPE_LOOKUP[type_test] = (DictProxy, ReadonlyDictProxy)
