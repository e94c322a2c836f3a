# --- API DOCUMENTATION for keydeck/printer.py ---
#
# **Purpose:** Every line keydeck shows goes through a Printer. Lines are
# either clearable (the menu screen, erased by the next `clear()`) or
# persistent (command output and result lines).
#
# **Public Classes:**
#
# class Printer(Protocol):
#     def line(self, text='', clearable=True, style_class='default') -> Printer
#     def multiline(self, lines, clearable=True) -> Printer
#     def clear(self) -> Printer
#     def is_displayed(self) -> bool
#
# class TTYPrinter:
#     """Writes with prompt_toolkit's print_formatted_text and erases the
#     clearable lines with cursor movement."""
#
# **Public Functions:**
#   print_screen(printer, navigation, keymap, extra_commands)
#   refresh_screen(printer, render_screen, print_before=None)
#   print_command_result(printer, label, returncode, error_message=None, separator='>>')
#   print_callback_result(printer, label, value=None, error=None)
#
# --- END API DOCUMENTATION ---

import logging
import os
import signal
import textwrap
from typing import Callable, Dict, List, Optional, Protocol, Union

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText, fragment_list_to_text
from prompt_toolkit.output import create_output
from prompt_toolkit.styles import Style

logger = logging.getLogger(__name__)

Text = Union[str, list]

PRINTER_STYLE = Style.from_dict({
    'info': 'ansicyan',
    'success': 'ansigreen',
    'error': 'ansired',
    'warning': 'ansiyellow',
    'executing': 'bold ansiblue',
    'muted': 'ansibrightblack',
    'favorite': 'bold ansiyellow',
    'help-title': 'bold ansicyan',
    'result-ok': 'bold ansigreen',
    'result-failed': 'bold ansired',
})

FAVORITE_MARKER = '★ '


class Printer(Protocol):
    def line(self, text: Text = '', clearable: bool = True, style_class: str = 'default'): ...

    def multiline(self, lines: List[str], clearable: bool = True): ...

    def clear(self): ...

    def is_displayed(self) -> bool: ...


def to_fragments(text: Text, style_class: str = 'default') -> list:
    if isinstance(text, str):
        return [('' if style_class == 'default' else f'class:{style_class}', text)]
    return list(text)


def dedent_lines(lines: List[str]) -> List[str]:
    return textwrap.dedent('\n'.join(lines)).strip('\n').split('\n')


class TTYPrinter:
    def __init__(self, output=None, style: Optional[Style] = None):
        self.output = output or create_output()
        self.style = style or PRINTER_STYLE
        self.line_counter = 0

    def is_displayed(self) -> bool:
        return self.line_counter > 0

    def line(self, text: Text = '', clearable: bool = True, style_class: str = 'default'):
        fragments = to_fragments(text, style_class)
        print_formatted_text(FormattedText(fragments), style=self.style, output=self.output)
        if clearable:
            self.line_counter += fragment_list_to_text(fragments).count('\n') + 1
        return self

    def multiline(self, lines: List[str], clearable: bool = True):
        for text in dedent_lines(lines):
            self.line(text, clearable)
        return self

    def clear(self):
        if self.line_counter:
            self.output.cursor_up(self.line_counter)
            self.output.erase_down()
            self.output.flush()
        self.line_counter = 0
        return self


def _sorted_by_label(entries):
    return sorted(entries, key=lambda entry: entry[1].meta.label.lower())


def _item_line(key: str, item, colors: dict) -> list:
    keys = colors.get('keys', {})
    matches_label = key.lower() == item.meta.label[:1].lower()
    key_color = keys.get('matching', 'ansigreen') if matches_label else keys.get('not_matching', 'ansired')
    fragments = [('', '    '), (f'bold {key_color}', f' {key} '), ('', '- ')]
    if item.is_favorite:
        fragments.append(('class:favorite', FAVORITE_MARKER))
    return fragments + item.to_formatted(key, colors)


def print_screen(printer, navigation, keymap: Dict[str, object], extra_commands: List[list]):
    """Renders the breadcrumb, the keyed items in three sections, the built-in keys and the cwd."""
    node = navigation.current
    colors = node.colors

    printer.line()
    printer.line([('', '    ')] + navigation.breadcrumb())
    printer.line()

    entries = list(keymap.items())
    favorites = _sorted_by_label([e for e in entries if e[1].is_favorite and not e[1].meta.persistent])
    regular = _sorted_by_label([e for e in entries if not e[1].is_favorite and not e[1].meta.persistent])
    persistent = _sorted_by_label([e for e in entries if e[1].meta.persistent])

    if favorites:
        for key, item in favorites:
            printer.line(_item_line(key, item, colors))
        printer.line()
    for key, item in regular:
        printer.line(_item_line(key, item, colors))
    if persistent:
        printer.line()
        for key, item in persistent:
            printer.line(_item_line(key, item, colors))

    extra_style = colors.get('extra_commands', 'ansiyellow')
    commands_line = [('', '    ')]
    for fragments in extra_commands:
        commands_line.extend(fragments)
        commands_line.append(('', ', '))
    commands_line.extend([(extra_style, 'ctrl-c'), ('', ': exit.')])
    printer.line()
    printer.line(commands_line)
    printer.line([('', '    '), ('ansimagenta', 'cwd: '), ('', node.working_directory or os.getcwd())])
    printer.line()


def refresh_screen(printer, render_screen: Callable[[], None], print_before: Optional[Callable] = None):
    """Clears the menu (if shown), prints persistent output, then redraws the menu."""
    was_displayed = printer.is_displayed()
    if was_displayed:
        printer.clear()
    if print_before:
        print_before(printer)
    if was_displayed:
        render_screen()


def describe_returncode(returncode: Optional[int]) -> str:
    if returncode is not None and returncode < 0:
        try:
            return signal.Signals(-returncode).name
        except ValueError:
            return f"signal {-returncode}"
    return str(returncode)


def print_command_result(printer, label: str, returncode: Optional[int], error_message: Optional[str] = None,
                         separator: str = '>>'):
    if returncode is not None and returncode < 0:
        fragments = [
            ('class:result-failed', f'{label} {separator}'),
            ('', ' exited when receiving signal ['),
            ('class:result-failed', describe_returncode(returncode)),
            ('', '] '),
        ]
    elif returncode:
        fragments = [
            ('class:result-failed', f'{label} {separator}'),
            ('', ' exited with code ['),
            ('class:result-failed', str(returncode)),
            ('', '] '),
        ]
    else:
        fragments = [
            ('class:result-ok', f'{label} {separator}'),
            ('', ' exited with code ['),
            ('class:result-ok', '0'),
            ('', '] '),
        ]
    if returncode and error_message:
        fragments.extend([('', '- '), ('class:result-failed', error_message)])
    printer.line(fragments, False)
    printer.line('', False)


def print_callback_result(printer, label: str, value=None, error: Optional[BaseException] = None):
    if error is not None:
        fragments = [
            ('class:result-failed', f'{label} >>'),
            ('', ' exited with error ['),
            ('class:result-failed', str(error) or type(error).__name__),
            ('', '] '),
        ]
    else:
        fragments = [
            ('class:result-ok', f'{label} >>'),
            ('', ' exited and returned value ['),
            ('class:result-ok', '' if value is None else str(value)),
            ('', '] '),
        ]
    printer.line(fragments, False)
    printer.line('', False)
