# tests/test_menu_loop.py

from types import SimpleNamespace

import pytest

from keydeck.key_input import KeyEvent
from keydeck.menu_loop import HELP, NORMAL, SEARCH, MenuLoop
from keydeck.menu_node import MenuNode
from keydeck.process_registry import CircularBuffer
from keydeck.special_commands import BACKGROUND_NODE_ID


class ScriptedKeySource:
    def __init__(self, events):
        self.events = list(events)

    async def read_key(self):
        if not self.events:
            raise AssertionError("Key read with no scripted key left")
        return self.events.pop(0)


def key(char):
    return KeyEvent(char, char)


CTRL_C = KeyEvent('c', '\x03', ctrl=True)
RETURN = KeyEvent('return', '\r')
ESCAPE = KeyEvent('escape', '\x1b')
BACKSPACE = KeyEvent('backspace', '\x7f')
TAB = KeyEvent('tab', '\t')
SPACE = KeyEvent('space', ' ')


@pytest.fixture
def root():
    menu = MenuNode("Root").cwd("/project")
    menu.action("Build").shell("make").help("Compiles everything.\nUses the Makefile.")
    menu.action("Test unit").shell("pytest unit")
    menu.action("Test all").shell("pytest")
    menu.category("Lists").content(lambda node: node.action("All files").shell("ls -la"))
    return menu


@pytest.fixture
def session(root, printer, scripted_reader):
    return MenuLoop(root, printer, prompt_reader=scripted_reader)


@pytest.mark.asyncio
async def test_keys_navigate_and_run_until_ctrl_c(root, printer, fake_shell):
    loop = MenuLoop(root, printer, key_source=ScriptedKeySource([key('l'), key('a'), CTRL_C]))

    await loop.run()

    assert fake_shell.commands == ["ls -la"]
    assert fake_shell.calls[0][1]["cwd"] == "/project"
    assert loop.navigation.current.label == "Lists"
    assert "    Root > Lists" in printer.lines
    assert "All files >> exited with code [0] " in printer.lines


@pytest.mark.asyncio
async def test_render_lists_items_builtins_and_cwd(session, printer):
    session.render()

    assert "     b - Build : make" in printer.lines
    assert "     l - Lists >> " in printer.lines
    assert any(line.endswith("ctrl-c: exit.") and "backspace" not in line for line in printer.lines)
    assert "    cwd: /project" in printer.lines


@pytest.mark.asyncio
async def test_favorites_are_listed_first(printer):
    menu = MenuNode("Root")
    menu.action("Alpha").shell("a")
    menu.action("Zulu").shell("z").favorite()
    MenuLoop(menu, printer).render()

    item_lines = [line for line in printer.lines if " - " in line]
    assert item_lines[0] == "     z - ★ Zulu : z"
    assert item_lines[1] == "     a - Alpha : a"


@pytest.mark.asyncio
@pytest.mark.parametrize("count, message", [
    (1, "1 background process was killed."),
    (3, "3 background processes were killed."),
])
async def test_ctrl_c_kills_background_processes(session, printer, mocker, count, message):
    mocker.patch.object(session.registry, "kill_all", return_value=count)
    assert await session.handle_key(CTRL_C) is False
    assert message in printer.lines


@pytest.mark.asyncio
async def test_ctrl_c_without_background_processes(session, printer):
    assert await session.handle_key(CTRL_C) is False
    assert not any("killed" in line for line in printer.lines)


@pytest.mark.asyncio
async def test_backspace_closes_category_only_below_root(session):
    await session.handle_key(BACKSPACE)
    assert session.navigation.depth == 0

    await session.handle_key(key('l'))
    assert session.navigation.depth == 1
    await session.handle_key(BACKSPACE)
    assert session.navigation.current.label == "Root"


@pytest.mark.asyncio
async def test_unmapped_key_is_ignored(session, fake_shell):
    assert await session.handle_key(key('q')) is True
    assert fake_shell.commands == []


@pytest.mark.asyncio
async def test_search_filters_and_return_runs_first_match(session, fake_shell):
    await session.handle_key(key('/'))
    assert session.mode == SEARCH

    await session.handle_key(key('t'))
    await session.handle_key(key('e'))
    assert [item.meta.label for item in session.current_keymap().values()] == ["Test unit", "Test all"]

    await session.handle_key(RETURN)

    assert fake_shell.commands == ["pytest"]
    assert session.mode == NORMAL


@pytest.mark.asyncio
async def test_search_escape_and_backspace(session):
    await session.handle_key(key('/'))
    await session.handle_key(key('x'))
    await session.handle_key(BACKSPACE)
    assert session.search_query == ""
    assert session.mode == SEARCH

    await session.handle_key(BACKSPACE)
    assert session.mode == NORMAL

    await session.handle_key(key('/'))
    await session.handle_key(ESCAPE)
    assert session.mode == NORMAL


@pytest.mark.asyncio
async def test_search_with_no_match_stays_in_search(session, fake_shell):
    await session.handle_key(key('/'))
    await session.handle_key(key('z'))
    await session.handle_key(RETURN)
    assert session.mode == SEARCH
    assert fake_shell.commands == []


@pytest.mark.asyncio
async def test_help_mode_shows_item_help(session, printer, fake_shell):
    await session.handle_key(key('?'))
    assert session.mode == HELP

    await session.handle_key(key('b'))

    assert session.mode == NORMAL
    assert "  Help: Build" in printer.lines
    assert "  Uses the Makefile." in printer.lines
    assert fake_shell.commands == []


@pytest.mark.asyncio
async def test_help_for_item_without_text(session, printer):
    await session.handle_key(key('?'))
    await session.handle_key(key('l'))
    assert "  No help available for: Lists" in printer.lines
    assert session.navigation.depth == 0


@pytest.mark.asyncio
async def test_help_mode_escape(session, printer):
    await session.handle_key(key('?'))
    await session.handle_key(ESCAPE)
    assert session.mode == NORMAL
    assert not any("Help:" in line for line in printer.lines)


@pytest.mark.asyncio
async def test_tab_shows_history(session, printer, fake_shell):
    await session.handle_key(TAB)
    assert "No commands executed yet." in printer.lines

    await session.handle_key(key('b'))
    await session.handle_key(TAB)
    assert "Recent commands (newest first):" in printer.lines
    assert any("Build" in line and "make" in line for line in printer.lines)


@pytest.mark.asyncio
async def test_space_launches_a_shell(session, fake_shell, monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/zsh")
    await session.handle_key(SPACE)
    assert fake_shell.commands == ["/bin/zsh"]
    assert session.history.entries()[0].label == "Shell"


@pytest.mark.asyncio
async def test_errors_in_items_are_reported(printer):
    menu = MenuNode("Root")
    menu.category("Broken").content(lambda node: 1 / 0)
    loop = MenuLoop(menu, printer)

    assert await loop.handle_key(key('b')) is True
    assert "❌ Error in 'Broken': division by zero" in printer.lines


@pytest.mark.asyncio
async def test_hidden_items_have_no_key(printer):
    menu = MenuNode("Root")
    menu.action("Visible").shell("true")
    menu.action("Hidden").shell("true").condition(lambda: False)
    assert [item.meta.label for item in MenuLoop(menu, printer).current_keymap().values()] == ["Visible"]


@pytest.mark.asyncio
async def test_return_without_processes_prints_logs(session, printer):
    await session.handle_key(RETURN)
    assert "No background logs yet!" in printer.lines


@pytest.mark.asyncio
async def test_return_lists_running_processes_and_kills_one(session, monkeypatch):
    entry = SimpleNamespace(label="Serve", command="npm start", pid=4321)
    session.registry._running[entry.pid] = entry
    killed = []
    monkeypatch.setattr(session.registry, "kill", killed.append)

    await session.handle_key(RETURN)

    node = session.navigation.current
    assert node.id == BACKGROUND_NODE_ID
    assert [item.meta.label for item in node.items] == ["Serve"]

    await session.handle_key(key('s'))
    assert killed == [entry]


@pytest.mark.asyncio
async def test_background_exit_records_history_and_prints_summary(session, printer):
    buffer = CircularBuffer(5)
    buffer.push("listening on :3000\n")
    entry = SimpleNamespace(label="Serve", command="npm start", buffer=buffer)
    background = session.navigation.push("Background")
    background.id = BACKGROUND_NODE_ID

    await session._on_background_exit(entry, 0)

    assert session.navigation.depth == 0
    history = session.history.entries()[0]
    assert (history.kind, history.command, history.exit_code) == ("async", "npm start", 0)
    assert "listening on :3000" in printer.lines
    assert "Serve &> exited with code [0] " in printer.lines
