# tests/conftest.py
#
# Project-wide fixtures: a printer that records lines, a scripted prompt
# reader and a fake subprocess launcher.

import sys
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the project root to the Python path so 'keydeck' and 'main' import
# without installing the package.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


class RecordingPrinter:
    """Printer double: keeps plain text of every line and tracks clearable lines."""

    def __init__(self):
        self.lines = []
        self.persistent = []
        self.clearable_count = 0
        self.clear_calls = 0

    def line(self, text='', clearable=True, style_class='default'):
        plain = text if isinstance(text, str) else ''.join(fragment[1] for fragment in text)
        self.lines.append(plain)
        if clearable:
            self.clearable_count += 1
        else:
            self.persistent.append(plain)
        return self

    def multiline(self, lines, clearable=True):
        for text in lines:
            self.line(text, clearable)
        return self

    def clear(self):
        self.clearable_count = 0
        self.clear_calls += 1
        return self

    def is_displayed(self):
        return self.clearable_count > 0

    @property
    def text(self):
        return '\n'.join(self.lines)


class ScriptedReader:
    """Async prompt reader returning queued answers in order."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.messages = []
        self.password_flags = []

    async def __call__(self, message, is_password=False):
        self.messages.append(''.join(fragment[1] for fragment in message))
        self.password_flags.append(is_password)
        if not self.answers:
            raise AssertionError("Prompt read with no scripted answer left")
        return self.answers.pop(0)


class FakeShell:
    """Replacement for asyncio.create_subprocess_shell recording each command."""

    def __init__(self, codes=None, outputs=None):
        self.codes = codes or {}
        self.outputs = outputs or {}
        self.calls = []

    async def __call__(self, command, **kwargs):
        self.calls.append((command, kwargs))
        process = MagicMock()
        process.pid = 4242 + len(self.calls)
        process.returncode = self.codes.get(command, 0)
        process.communicate = AsyncMock(return_value=(self.outputs.get(command, '').encode(), b''))
        process.wait = AsyncMock(return_value=process.returncode)
        return process

    @property
    def commands(self):
        return [command for command, _ in self.calls]


@pytest.fixture
def printer():
    return RecordingPrinter()


@pytest.fixture
def scripted_reader():
    return ScriptedReader()


@pytest.fixture
def fake_shell(mocker):
    shell = FakeShell()
    mocker.patch('keydeck.action_executor.asyncio.create_subprocess_shell', side_effect=shell.__call__)
    return shell
