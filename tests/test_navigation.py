# tests/test_navigation.py

from unittest.mock import MagicMock

from keydeck.menu_node import MenuNode
from keydeck.navigation import NavigationStack


def _text(fragments):
    return ''.join(fragment[1] for fragment in fragments)


def test_push_copies_persistent_items_except_the_trigger():
    root = MenuNode("Root")
    tools = root.category("Tools", persist=True)
    shared = root.action("Shared", persist=True)
    root.action("Local")
    nav = NavigationStack(root)

    child = nav.push("Tools", "", exclude=tools)

    assert nav.current is child
    assert child.persistent_items == [shared]
    assert child.items == []
    assert nav.ancestors == [root]


def test_pop_returns_to_parent_and_is_a_noop_at_root():
    root = MenuNode("Root")
    nav = NavigationStack(root)
    nav.push("Child")

    assert nav.pop() is root
    assert nav.pop() is root
    assert nav.current is root
    assert nav.depth == 0


def test_child_sees_later_parent_option_changes_when_inheriting():
    root = MenuNode("Root")
    nav = NavigationStack(root)
    child = nav.push("Child")

    root.options(use_current_shell=True)

    assert child.effective_options["use_current_shell"] is True


def test_child_override_does_not_leak_to_parent():
    root = MenuNode("Root")
    nav = NavigationStack(root)
    child = nav.push("Child")

    child.options(colors={"keys": {"matching": "ansicyan"}})

    assert child.colors["keys"]["matching"] == "ansicyan"
    assert root.colors["keys"]["matching"] == "ansigreen"
    # Untouched nested values are still inherited.
    assert child.colors["keys"]["not_matching"] == "ansired"


def test_child_uses_defaults_when_parent_disables_inheritance():
    root = MenuNode("Root").options(inherit_options=False, use_current_shell=True)
    nav = NavigationStack(root)
    child = nav.push("Child")

    assert child.effective_options["use_current_shell"] is False


def test_working_directory_is_inherited_at_push_time():
    root = MenuNode("Root").cwd("/srv/app")
    nav = NavigationStack(root)
    child = nav.push("Child")
    root.cwd("/elsewhere")

    assert child.working_directory == "/srv/app"


def test_templates_are_shared_across_the_tree():
    root = MenuNode("Root")
    root.template("deploy").shell("./deploy.sh")
    nav = NavigationStack(root)
    child = nav.push("Child")

    assert child.get_template("deploy") is root.get_template("deploy")


def test_injected_node_factory_builds_children():
    root = MenuNode("Root")
    built = MenuNode("Built")
    factory = MagicMock(return_value=built)
    nav = NavigationStack(root, node_factory=factory)

    assert nav.push("Child", "desc") is built
    factory.assert_called_once_with("Child", "desc", root)


def test_breadcrumb_lists_ancestors_then_current():
    root = MenuNode("Root")
    nav = NavigationStack(root)
    nav.push("Lists")
    nav.push("Files", "All the files")

    assert _text(nav.breadcrumb()) == "Root > Lists > Files: All the files"
    assert nav.depth == 2
