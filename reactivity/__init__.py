from importlib.metadata import version

__version__ = version("reactivity")


from .dep import untracked
from .effect import Effect, effect
from .init import init, loop_factory
from .proxy import (
    reactive,
    readonly,
    ref,
    shallow_reactive,
    shallow_readonly,
    to_raw,
    unwrap,
)
from .scheduler import scheduler
from .traps import ReadonlyError
from .watcher import Computed, Watcher, computed, watch, watch_effect
