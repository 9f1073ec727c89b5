import pytest

from reactivity import Effect, effect, reactive, untracked
from reactivity.dep import active_effect


def test_effect_runs_immediately():
    state = reactive({"foo": 1})
    values = []

    effect(lambda: values.append(state["foo"]))

    assert values == [1]
    state["foo"] = 2
    assert values == [1, 2]


def test_effect_lazy():
    state = reactive({"foo": 1})
    calls = 0

    def fn():
        nonlocal calls
        calls += 1
        return state["foo"] * 2

    runner = effect(fn, lazy=True)
    assert calls == 0

    # Nothing was tracked yet
    state["foo"] = 2
    assert calls == 0

    assert runner() == 4
    assert calls == 1

    state["foo"] = 3
    assert calls == 2


def test_effect_decorator():
    state = reactive({"foo": 1})
    values = []

    @effect
    def log():
        values.append(state["foo"])

    assert isinstance(log, Effect)
    state["foo"] = 5
    assert values == [1, 5]

    @effect(lazy=True)
    def lazy_log():
        values.append(state["foo"])

    assert values == [1, 5]
    lazy_log()
    assert values == [1, 5, 5]


def test_effect_run_returns_result():
    state = reactive({"foo": 3})
    runner = effect(lambda: state["foo"] + 1)
    assert runner.run() == 4
    assert runner() == 4


def test_write_to_unread_field_does_not_run_effect():
    state = reactive({"foo": 1, "bar": 2})
    calls = 0

    @effect
    def fn():
        nonlocal calls
        calls += 1
        state["foo"]

    state["bar"] = 10
    state["baz"] = 10
    assert calls == 1


def test_read_outside_effect_is_untracked():
    state = reactive({"foo": 1})
    assert state["foo"] == 1
    state["foo"] = 2
    assert active_effect.get() is None


def test_stale_dependencies_are_cleaned_up():
    state = reactive({"toggle": True, "a": 1, "b": 2})
    calls = 0

    @effect
    def fn():
        nonlocal calls
        calls += 1
        if state["toggle"]:
            state["a"]
        else:
            state["b"]

    assert calls == 1
    state["b"] = 3
    assert calls == 1

    state["toggle"] = False
    assert calls == 2
    # a is not read anymore
    state["a"] = 5
    assert calls == 2
    state["b"] = 4
    assert calls == 3


def test_membership_is_symmetric():
    state = reactive({"a": 1, "b": 2})

    runner = effect(lambda: state["a"] + state["b"])

    assert len(runner._deps) == 2
    for dep in runner._deps:
        assert runner in dep

    runner.stop()
    assert runner._deps == []


def test_self_mutation_runs_once():
    state = reactive({"count": 0})
    calls = 0

    @effect
    def bump():
        nonlocal calls
        calls += 1
        state["count"] = state["count"] + 1

    assert calls == 1
    assert state["count"] == 1

    bump()
    assert calls == 2
    assert state["count"] == 2


def test_nested_effects_attribution():
    state = reactive({"outer": 1, "inner": 1})
    outer_calls = 0
    inner_calls = 0

    @effect
    def outer():
        nonlocal outer_calls
        outer_calls += 1

        @effect
        def inner():
            nonlocal inner_calls
            inner_calls += 1
            state["inner"]

        state["outer"]

    assert (outer_calls, inner_calls) == (1, 1)

    # Only the inner effect (the one created last) depends on inner
    state["inner"] = 2
    assert (outer_calls, inner_calls) == (1, 2)

    # Reads after the inner effect are still attributed to the outer one
    state["outer"] = 2
    assert (outer_calls, inner_calls) == (2, 3)


def test_error_restores_active_effect():
    state = reactive({"foo": 1})

    def fn():
        if state["foo"] > 1:
            raise ValueError("too big")

    runner = effect(fn)
    assert active_effect.get() is None

    with pytest.raises(ValueError, match="too big"):
        state["foo"] = 2
    assert active_effect.get() is None

    # The failed run still tracked its dependencies
    state["foo"] = 0
    assert runner.active


def test_failing_effect_does_not_block_others():
    state = reactive({"foo": 1})
    seen = []

    def failing():
        if state["foo"] > 1:
            raise RuntimeError("first")

    effect(failing)
    effect(lambda: seen.append(state["foo"]))

    with pytest.raises(RuntimeError, match="first"):
        state["foo"] = 2

    assert seen == [1, 2]


def test_scheduler_option():
    state = reactive({"foo": 1})
    scheduled = []
    calls = 0

    def fn():
        nonlocal calls
        calls += 1
        state["foo"]

    runner = effect(fn, scheduler=scheduled.append)
    assert calls == 1

    state["foo"] = 2
    assert scheduled == [runner]
    assert calls == 1

    scheduled.pop()()
    assert calls == 2


def test_stop():
    state = reactive({"foo": 1})
    calls = 0

    @effect
    def fn():
        nonlocal calls
        calls += 1
        return state["foo"]

    fn.stop()
    state["foo"] = 2
    assert calls == 1

    # A stopped effect can still be run, but won't track anything
    assert fn() == 2
    state["foo"] = 3
    assert calls == 2


def test_stopped_effect_inside_effect():
    state = reactive({"foo": 1, "bar": 1})
    outer_calls = 0

    inner = effect(lambda: state["bar"])
    inner.stop()

    @effect
    def outer():
        nonlocal outer_calls
        outer_calls += 1
        state["foo"]
        return inner()

    assert outer_calls == 1
    # The reads of the stopped effect are not attributed to outer
    state["bar"] = 2
    assert outer_calls == 1
    assert outer() == 2

    state["foo"] = 2
    assert outer_calls == 3


def test_untracked():
    state = reactive({"foo": 1, "bar": 1})
    calls = 0

    @effect
    def fn():
        nonlocal calls
        calls += 1
        state["foo"]
        with untracked():
            state["bar"]

    state["bar"] = 2
    assert calls == 1
    state["foo"] = 2
    assert calls == 2
