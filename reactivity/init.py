import asyncio

from .scheduler import scheduler


def init(mode="asyncio"):
    """
    Register the host event loop that flushes the scheduler
    """
    if mode == "qt":
        scheduler.register_qt()
    elif mode == "asyncio":
        scheduler.register_asyncio()
    else:
        raise ValueError(f"Unknown mode: {mode!r}")


def loop_factory():
    loop = asyncio.new_event_loop()
    if hasattr(asyncio, "eager_task_factory"):
        loop.set_task_factory(asyncio.eager_task_factory)
    return loop
