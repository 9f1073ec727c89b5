from unittest.mock import Mock

import pytest

from reactivity import ReadonlyError, effect, watch
from reactivity.store import Change, Store, computed, mutation


class TodoStore(Store):
    @mutation
    def add_todo(self, title):
        self.state["todos"].append({"title": title, "done": False})

    @mutation
    def complete(self, index):
        self.state["todos"][index]["done"] = True

    @mutation
    def rename(self, name):
        self.state["name"] = name

    @computed
    def remaining(self):
        return sum(not todo["done"] for todo in self.state["todos"])


def make_store(**kwargs):
    return TodoStore({"name": "groceries", "todos": []}, **kwargs)


def test_mutations_are_recorded_as_changes():
    store = make_store()
    assert not store.can_undo

    store.rename("chores")
    (change,) = store._past
    assert isinstance(change, Change)
    assert [op["op"] for op in change.ops] == ["replace"]
    assert change.ops[0]["value"] == "chores"
    assert change.reverse_ops[0]["value"] == "groceries"

    store.add_todo("dishes")
    assert [op["op"] for op in store._past[-1].ops] == ["add"]
    assert [op["op"] for op in store._past[-1].reverse_ops] == ["remove"]


def test_undo_and_redo_walk_the_history():
    store = make_store()
    store.add_todo("dishes")
    store.add_todo("laundry")
    store.complete(0)

    store.undo()
    assert store.state["todos"][0]["done"] is False
    store.undo()
    assert [todo["title"] for todo in store.state["todos"]] == ["dishes"]
    assert store.can_undo
    assert store.can_redo

    store.redo()
    store.redo()
    assert store.state["todos"][0]["done"] is True
    assert len(store.state["todos"]) == 2
    assert not store.can_redo


def test_new_mutation_clears_redo_history():
    store = make_store()
    store.rename("chores")
    store.undo()
    assert store.can_redo

    store.rename("errands")
    assert not store.can_redo
    assert len(store._past) == 1

    store.undo()
    assert store.state["name"] == "groceries"


def test_undo_redo_with_empty_history_does_nothing():
    store = make_store()
    store.undo()
    store.redo()
    assert store.state["name"] == "groceries"
    assert not (store.can_undo or store.can_redo)


def test_state_is_readonly_outside_mutations():
    store = make_store()
    store.add_todo("dishes")

    with pytest.raises(ReadonlyError):
        store.state["name"] = "chores"
    with pytest.raises(ReadonlyError):
        store.state["todos"].append({})
    with pytest.raises(ReadonlyError):
        store.state["todos"][0]["done"] = True

    # A failing mutation hands the readonly state back as well
    with pytest.raises(IndexError):
        store.complete(5)
    with pytest.raises(ReadonlyError):
        store.state["name"] = "chores"


def test_computed_methods_read_like_properties():
    store = make_store()
    assert store.remaining == 0

    store.add_todo("dishes")
    store.add_todo("laundry")
    assert store.remaining == 2

    store.complete(1)
    assert store.remaining == 1

    store.undo()
    assert store.remaining == 2


def test_history_changes_trigger_effects():
    store = make_store()
    names = []
    effect(lambda: names.append(store.state["name"]))

    store.rename("chores")
    store.undo()
    store.redo()
    assert names == ["groceries", "chores", "groceries", "chores"]


def test_history_flags_are_reactive():
    store = make_store()
    flags = []
    effect(lambda: flags.append((store.can_undo, store.can_redo)))

    store.rename("chores")
    store.undo()
    assert flags[-1] == (False, True)
    assert (True, False) in flags


def test_unrelated_change_does_not_trigger_watcher():
    store = make_store()
    watcher = watch(lambda: store.state["todos"], Mock())

    store.rename("chores")
    store.undo()
    watcher.callback.assert_not_called()


def test_deep_computed_method():
    class DeepStore(TodoStore):
        @computed(deep=True)
        def todos(self):
            return self.state["todos"]

    store = DeepStore({"name": "groceries", "todos": [{"done": False}]})
    runs = []
    effect(lambda: runs.append(store.todos))

    # A nested change invalidates the deep computed
    store.complete(0)
    assert len(runs) == 2


def test_all_container_types():
    class TagStore(Store):
        @mutation
        def tag(self, tag):
            self.state["tags"].add(tag)

        @mutation
        def label(self, key, value):
            self.state["labels"][key] = value

    store = TagStore({"tags": {"red"}, "labels": {}})

    store.tag("blue")
    store.label("size", "large")
    assert store.state["tags"] == {"red", "blue"}
    assert store.state["labels"] == {"size": "large"}

    store.undo()
    assert store.state["labels"] == {}
    store.undo()
    assert store.state["tags"] == {"red"}


def test_strict_store_rejects_empty_mutation():
    store = make_store()
    with pytest.raises(RuntimeError):
        store.rename("groceries")
    assert not store.can_undo


def test_lenient_store_skips_empty_mutation():
    store = make_store(strict=False)
    store.rename("groceries")
    assert not store.can_undo

    store.rename("chores")
    assert store.can_undo
