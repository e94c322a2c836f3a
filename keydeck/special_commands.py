# keydeck/special_commands.py
#
# Built-in keys available in every menu, next to the configured items.

import functools
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

BACKGROUND_NODE_ID = 'background-processes'
HISTORY_DISPLAY_LIMIT = 10


@dataclass
class SpecialCommand:
    key: str
    label: str
    text: Callable[[object], list]
    action: Callable[[object], Awaitable[None]]
    conditional: Optional[Callable[[object], bool]] = None

    def is_available(self, session) -> bool:
        return self.conditional is None or bool(self.conditional(session))

    def matches(self, event) -> bool:
        return self.key in (event.name, event.sequence)


def _shows_logs(session) -> bool:
    return len(session.registry) < 1 or session.navigation.current.id == BACKGROUND_NODE_ID


async def close_category(session):
    session.navigation.pop()


async def launch_shell(session):
    shell = os.environ.get('SHELL') or '/bin/sh'
    executable = shell if session.navigation.current.effective_options.get('use_current_shell') else None
    await session.executor.run_command('Shell', shell, executable=executable)


async def show_background(session):
    if _shows_logs(session):
        lines = session.registry.log_buffer.get()

        def _print_logs(printer):
            if lines:
                printer.line('\n'.join(lines), False)
            else:
                printer.line('No background logs yet!', style_class='muted')

        session.refresh(_print_logs)
        return

    node = session.navigation.push('Background', 'Kill running background processes.')
    node.id = BACKGROUND_NODE_ID
    for entry in session.registry.running():
        node.action(entry.label).description(entry.command).callback(
            functools.partial(session.registry.kill, entry)
        )


async def enter_help_mode(session):
    session.enter_mode('help')


async def enter_search_mode(session):
    session.enter_mode('search')


async def show_history(session):
    entries = session.history.entries(HISTORY_DISPLAY_LIMIT)

    def _print_history(printer):
        if not entries:
            printer.line('No commands executed yet.', False, style_class='muted')
            printer.line('', False)
            return
        printer.line('Recent commands (newest first):', False, style_class='info')
        for entry in entries:
            status_style = 'success' if entry.succeeded else 'error'
            printer.line([
                ('', '  '),
                (f'class:{status_style}', f"[{'' if entry.exit_code is None else entry.exit_code}]".ljust(6)),
                ('bold', entry.label),
                ('class:muted', f'  {entry.command}'),
            ], False)
        printer.line('', False)

    _print_history(session.printer)


def _extra(name: str, text: str):
    return lambda session: [(session.navigation.current.colors.get('extra_commands', 'ansiyellow'), name), ('', f': {text}')]


SPECIAL_COMMANDS: List[SpecialCommand] = [
    SpecialCommand('backspace', 'close category', _extra('backspace', 'close category'), close_category,
                   conditional=lambda session: session.navigation.depth > 0),
    SpecialCommand('space', 'launch shell', _extra('spacebar', 'launch shell'), launch_shell),
    SpecialCommand(
        'return', 'background',
        lambda session: _extra('return', 'show background logs' if _shows_logs(session)
                               else 'show running background processes')(session),
        show_background,
    ),
    SpecialCommand('tab', 'history', _extra('tab', 'history'), show_history),
    SpecialCommand('?', 'help', _extra('?', 'help'), enter_help_mode),
    SpecialCommand('/', 'search', _extra('/', 'search'), enter_search_mode),
]


def find_special_command(event, session) -> Optional[SpecialCommand]:
    for command in SPECIAL_COMMANDS:
        if command.matches(event) and command.is_available(session):
            return command
    return None
