# tests/test_key_assigner.py

import pytest

from keydeck.action import Action
from keydeck.items import Category
from keydeck.key_assigner import assign_keys, resolve_key


def _actions(*labels):
    return [Action(label) for label in labels]


def _keys_by_label(keymap):
    return {item.meta.label: key for key, item in keymap.items()}


def test_first_letter_is_lowercased():
    keymap = assign_keys(_actions("Build", "Test"))
    assert _keys_by_label(keymap) == {"Build": "b", "Test": "t"}


def test_explicit_key_wins_over_earlier_label_key():
    build, bundle = _actions("Build", "Bundle")
    bundle.key("b")
    keymap = assign_keys([build, bundle])
    assert keymap["b"] is bundle
    assert _keys_by_label(keymap)["Build"] == "u"


def test_duplicate_labels_get_distinct_keys():
    first, second = _actions("Build", "Build")
    keymap = assign_keys([first, second])
    assert keymap["b"] is first
    assert keymap["u"] is second


def test_explicit_alternative_key_is_tried_first():
    first, second = _actions("Deploy", "Destroy")
    second.alternative_key("x")
    keymap = assign_keys([first, second])
    assert keymap["x"] is second


def test_taken_alternative_key_falls_back_to_label_scan():
    first, second, third = _actions("Deploy", "Xenon", "Destroy")
    third.alternative_key("x")
    keymap = assign_keys([first, second, third])
    assert keymap["x"] is second
    assert keymap["e"] is third


def test_disabled_alternative_key_leaves_item_unassigned():
    first, second = _actions("Deploy", "Destroy")
    second.alternative_key(False)
    keymap = assign_keys([first, second])
    assert list(keymap.values()) == [first]


def test_alphabet_fallback_when_label_is_exhausted():
    first, second = _actions("a", "a")
    keymap = assign_keys([first, second])
    assert keymap["a"] is first
    assert keymap["b"] is second


def test_label_scan_skips_whitespace_and_reserved_keys():
    first, second = _actions("Bb", "B ?/z")
    keymap = assign_keys([first, second])
    assert keymap["z"] is second


def test_label_scan_compares_case_insensitively_and_preserves_case():
    first, second, third = _actions("Go", "GG", "bUild")
    keymap = assign_keys([first, second, Action("Build"), third])
    # "GG": its second 'G' collides with 'g', so the alphabet is used.
    assert keymap["a"] is second
    assert keymap["U"] is third


def test_items_beyond_the_alphabet_are_unreachable():
    items = _actions(*["a"] * 27)
    keymap = assign_keys(items)
    assert len(keymap) == 26
    assert items[-1] not in keymap.values()


def test_reserved_explicit_key_is_not_assigned():
    item = Action("Help me").key("?")
    keymap = assign_keys([item])
    assert "?" not in keymap
    assert keymap["e"] is item


@pytest.mark.parametrize("labels", [
    ["Build", "Build", "Build"],
    ["alpha", "Alpha", "ALPHA", "beta"],
    ["x", "xx", "xxx", "xy", "yx"],
    ["Run tests", "Run linter", "Release", "Rebase"],
])
def test_assignment_is_one_to_one_and_idempotent(labels):
    items = _actions(*labels)
    first = assign_keys(items)
    second = assign_keys(items)
    assert [(k, id(v)) for k, v in first.items()] == [(k, id(v)) for k, v in second.items()]
    assert len({id(item) for item in first.values()}) == len(first)
    assert len({key.lower() for key in first}) == len(first)


def test_categories_and_actions_share_the_keyspace():
    category = Category("Lists")
    action = Action("Logs")
    keymap = assign_keys([category, action])
    assert keymap["l"] is category
    assert keymap["o"] is action


def test_resolve_key_ignores_case():
    first, second = _actions("Build", "BUild")
    keymap = assign_keys([first, second])
    assert resolve_key(keymap, "u") is second
    assert resolve_key(keymap, "B") is first
    assert resolve_key(keymap, "q") is None
    assert resolve_key(keymap, "") is None
