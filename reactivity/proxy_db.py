import gc
import logging
import sys
from weakref import WeakValueDictionary

from .dep import ITERATE, Dep, TriggerOp, active_effect, trigger_effects

logger = logging.getLogger(__name__)


class ProxyDb:
    """
    Dependency store: for every observed object, keyed on its id, the deps
    per tracked key and the cached proxies per configuration.

    An entry holds a strong reference to its target so that the id can't
    be reused by another object while the entry exists. Entries are
    released explicitly:

    * when the last proxy for a target is destroyed and nothing outside
      of the db refers to the target anymore
    * after each garbage collection run, for targets that are only
      referred to by the db
    """

    __slots__ = ("db",)

    def __init__(self):
        self.db = {}
        gc.callbacks.append(self.cleanup)

    def cleanup(self, phase, info):
        """
        Garbage collector callback that releases the entries of targets
        that are only referenced by the db itself
        """
        if phase != "stop":
            return

        # 2 references: the db entry and the getrefcount argument
        unreferenced = [
            key
            for key, entry in self.db.items()
            if sys.getrefcount(entry["target"]) <= 2
        ]
        for key in unreferenced:
            del self.db[key]
        if unreferenced:
            logger.debug("Released %d unreferenced targets", len(unreferenced))

    def _entry(self, target) -> dict:
        obj_id = id(target)
        entry = self.db.get(obj_id)
        if entry is None:
            entry = self.db[obj_id] = {
                "target": target,
                # keyed on dict key, attribute name, set member or ITERATE
                "deps": {},
                # keyed on (readonly, shallow)
                "proxies": WeakValueDictionary(),
            }
        return entry

    def reference(self, proxy):
        """
        Registers a newly created proxy for its target
        """
        proxies = self._entry(proxy.__target__)["proxies"]
        config = (proxy.__readonly__, proxy.__shallow__)
        # `proxy` takes care of reusing cached proxies, so the slot
        # for this configuration must still be empty
        if proxies.setdefault(config, proxy) is not proxy:
            raise RuntimeError("Proxy with existing configuration already in db")

    def dereference(self, proxy):
        """
        Called when a proxy is destroyed: releases the entry of its target
        when this was the last proxy and the target is not used elsewhere
        """
        entry = self.db.get(id(proxy.__target__))
        if entry is None:
            # The db was reset while the proxy was alive (see the
            # reset_proxy_db fixture in the tests)
            return

        # The dying proxy itself is still in the proxies dict
        if len(entry["proxies"]) > 1:
            return
        # 3 references: the db entry, proxy.__target__ and the
        # getrefcount argument
        if sys.getrefcount(entry["target"]) <= 3:
            del self.db[id(proxy.__target__)]

    def deps(self, target) -> dict:
        """
        Returns the deps for the given target, keyed on the tracked key
        """
        entry = self.db.get(id(target))
        return entry["deps"] if entry is not None else {}

    def get_proxy(self, target, readonly=False, shallow=False):
        """
        Returns the cached proxy for target with the given configuration,
        or None.
        """
        entry = self.db.get(id(target))
        if entry is None:
            return None
        return entry["proxies"].get((readonly, shallow))

    def track(self, target, key):
        """
        Subscribes the active effect to changes of key on target
        """
        if active_effect.get() is None:
            return
        deps = self._entry(target)["deps"]
        dep = deps.get(key)
        if dep is None:
            dep = deps[key] = Dep()
        dep.depend()

    def trigger(self, target, key, op: TriggerOp):
        """
        Runs the effects that depend on key of target. Adding or removing
        a key changes what iterating over target gives, so then also
        the effects that depend on ITERATE are run.
        """
        entry = self.db.get(id(target))
        if entry is None:
            return
        deps = entry["deps"]
        iterate_dep = None
        if op is not TriggerOp.SET and key is not ITERATE:
            iterate_dep = deps.get(ITERATE)
        trigger_effects(deps.get(key), iterate_dep)


# The global dependency store
proxy_db = ProxyDb()
