from functools import cache
from itertools import chain
from math import isnan


@cache
def get_class_slots(cls):
    """utility to collect all __slots__ entries for a given type and its supertypes"""
    # collect via iterables for performance
    # deduplicate via set
    slots = chain.from_iterable(
        (s,) if isinstance(s := getattr(c, "__slots__", ()), str) else s
        for c in cls.__mro__
    )
    return {slot for slot in slots if slot not in ("__dict__", "__weakref__")}


def get_object_attrs(obj):
    """utility to collect all stateful attributes of an object"""
    # __slots__ from full class ancestry
    attrs = {attr for attr in get_class_slots(type(obj)) if hasattr(obj, attr)}
    try:
        # all __dict__ entries
        obj_keys = vars(obj).keys()
        if obj_keys:
            attrs.update(obj_keys)
    except TypeError:
        pass
    return attrs


def get_class_attr(obj, name):
    """utility to look up an attribute on the class of obj without binding it"""
    for cls in type(obj).__mro__:
        if name in cls.__dict__:
            return cls.__dict__[name]
    return None


def has_changed(old, new) -> bool:
    """
    Whether replacing old with new is a change that should be reported.
    Containers and other objects are compared by identity, plain values
    by type and equality. NaN is never changed into NaN.
    """
    if old is new:
        return False
    if type(old) is not type(new):
        return True
    if isinstance(new, float):
        return not (old == new or (isnan(old) and isnan(new)))
    if isinstance(new, (bool, int, complex, str, bytes, type(None))):
        return old != new
    return True
