# --- API DOCUMENTATION for keydeck/menu_loop.py ---
#
# **Purpose:** The interactive session. Owns the navigation stack, the
# process registry, the history and the executor; reads keys, renders the
# menu and dispatches each key to an item or a built-in command.
#
# **Public Classes:**
#
# class MenuLoop:
#     async def run(self) -> None
#         """Reads keys until ctrl-c. SIGINT during a running command is
#         forwarded to the executor (which stops watch mode) and otherwise
#         ignored."""
#
#     async def handle_key(self, event: KeyEvent) -> bool
#         """Dispatches one key. Returns False when the session must end."""
#
#     def render(self) / refresh(print_before=None)
#
# --- END API DOCUMENTATION ---

import asyncio
import logging
import signal
from typing import Callable, Optional

from keydeck.action_executor import ActionExecutor
from keydeck.config_handler import get_setting
from keydeck.history import HistoryLog, MAX_HISTORY_SIZE
from keydeck.key_assigner import resolve_key
from keydeck.navigation import NavigationStack
from keydeck.printer import print_command_result, print_screen, refresh_screen
from keydeck.process_registry import ProcessRegistry
from keydeck.prompt_engine import PromptEngine
from keydeck.special_commands import BACKGROUND_NODE_ID, SPECIAL_COMMANDS, find_special_command, show_background

logger = logging.getLogger(__name__)

NORMAL = 'normal'
HELP = 'help'
SEARCH = 'search'


class MenuLoop:
    def __init__(self, root, printer, key_source=None, prompt_reader=None, settings: Optional[dict] = None,
                 node_factory: Optional[Callable] = None):
        settings = settings or {}
        self.printer = printer
        self.key_source = key_source
        self.navigation = NavigationStack(root, node_factory)
        self.history = HistoryLog(get_setting(settings, 'history.max_entries', MAX_HISTORY_SIZE))
        self.registry = ProcessRegistry(
            log_buffer_lines=get_setting(settings, 'background.log_buffer_lines', 100),
            summary_buffer_lines=get_setting(settings, 'background.summary_buffer_lines', 10),
            on_process_exit=self._on_background_exit,
        )
        self.prompts = PromptEngine(printer, reader=prompt_reader)
        self.executor = ActionExecutor(self.navigation, printer, self.prompts, self.registry, self.history, settings)
        self.mode = NORMAL
        self.search_query = ''
        self._dirty = True

    # --- Rendering ---

    def current_keymap(self):
        query = self.search_query if self.mode == SEARCH else None
        return self.navigation.current.keymap(query)

    def render(self):
        keymap = self.current_keymap()
        extra_commands = [command.text(self) for command in SPECIAL_COMMANDS if command.is_available(self)]
        print_screen(self.printer, self.navigation, keymap, extra_commands)
        if self.mode == SEARCH:
            self.printer.line([('class:info', '    Search: '), ('bold', self.search_query), ('class:muted', '_  (escape to cancel, return runs the first match)')])
        elif self.mode == HELP:
            self.printer.line([('class:info', '    Help: '), ('', 'press an item key to read its help (escape to cancel)')])

    def refresh(self, print_before=None):
        refresh_screen(self.printer, self.render, print_before)

    def enter_mode(self, mode: str):
        self.mode = mode
        self.search_query = ''
        logger.debug(f"Menu mode: {mode}")

    # --- Dispatch ---

    async def handle_key(self, event) -> bool:
        if event.ctrl and event.name == 'c':
            self.printer.clear()
            killed = self.registry.kill_all()
            if killed > 0:
                noun = 'processes were' if killed > 1 else 'process was'
                self.printer.line(f"{killed} background {noun} killed.", False)
                self.printer.line('', False)
            logger.info("Session ended by ctrl-c.")
            return False

        keymap = self.current_keymap()
        if self.mode == HELP:
            self._handle_help_key(event, keymap)
            return True
        if self.mode == SEARCH:
            item = self._handle_search_key(event, keymap)
            if item is not None:
                await self._execute(item)
            return True

        command = find_special_command(event, self)
        if command is not None:
            self.printer.clear()
            self._dirty = True
            logger.info(f"Built-in command: {command.label}")
            await command.action(self)
            return True

        item = resolve_key(keymap, event.sequence) if event.is_printable else None
        if item is not None:
            await self._execute(item)
        return True

    def _handle_help_key(self, event, keymap):
        self.mode = NORMAL
        self.printer.clear()
        self._dirty = True
        if event.name == 'escape':
            return
        item = resolve_key(keymap, event.sequence) if event.is_printable else None
        if item is None:
            return
        if item.meta.help_text:
            self.printer.line('', False)
            self.printer.line(f"  Help: {item.meta.label}", False, style_class='help-title')
            self.printer.line('', False)
            for text in item.meta.help_text.strip('\n').split('\n'):
                self.printer.line(f"  {text}", False)
            self.printer.line('', False)
        else:
            self.printer.line(f"  No help available for: {item.meta.label}", False, style_class='warning')
            self.printer.line('', False)

    def _handle_search_key(self, event, keymap):
        if event.name == 'escape':
            self.enter_mode(NORMAL)
        elif event.name == 'backspace':
            if not self.search_query:
                self.enter_mode(NORMAL)
            self.search_query = self.search_query[:-1]
        elif event.name == 'return':
            matches = sorted(keymap.values(), key=lambda item: item.meta.label.lower())
            if not matches:
                return None
            self.enter_mode(NORMAL)
            return matches[0]
        elif event.is_printable:
            self.search_query += event.sequence
        else:
            return None
        self.printer.clear()
        self._dirty = True
        return None

    async def _execute(self, item):
        self.printer.clear()
        self._dirty = True
        try:
            await item.execute(self)
        except Exception as e:
            logger.exception(f"Error while running '{item.meta.label}': {e}")
            self.printer.line(f"❌ Error in '{item.meta.label}': {e}", False, style_class='error')
            self.printer.line('', False)

    # --- Background processes ---

    async def _on_background_exit(self, entry, returncode):
        self.history.add(entry.label, entry.command, 'async', returncode)
        if self.navigation.current.id == BACKGROUND_NODE_ID:
            self.navigation.pop()
            if len(self.registry) > 0:
                await show_background(self)
        tail = entry.buffer.get()

        def _print_summary(printer):
            if tail:
                printer.line('\n'.join(tail), False)
            print_command_result(printer, entry.label, returncode, separator='&>')

        self.refresh(_print_summary)

    # --- Main loop ---

    def _on_sigint(self):
        if not self.executor.interrupt():
            logger.debug("SIGINT ignored while a foreground command runs.")

    async def run(self):
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self._on_sigint)
        try:
            while True:
                if self._dirty:
                    self.render()
                    self._dirty = False
                event = await self.key_source.read_key()
                if not await self.handle_key(event):
                    break
        finally:
            loop.remove_signal_handler(signal.SIGINT)
