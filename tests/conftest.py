import gc

import pytest

from reactivity import scheduler
from reactivity.proxy_db import proxy_db


def noop():
    pass


@pytest.fixture
def noop_request_flush():
    old_callback = scheduler.request_flush
    scheduler.register_request_flush(noop)
    try:
        yield
    finally:
        scheduler.register_request_flush(old_callback)


@pytest.fixture(autouse=True)
def clear():
    try:
        yield
    finally:
        scheduler.clear()


@pytest.fixture(autouse=True)
def reset_proxy_db():
    # Running gc at the beginning should clear the proxy_db,
    # but this apparently only works when tests are not failing,
    # so the db needs to be cleared like this.
    gc.collect()
    proxy_db.db = {}
