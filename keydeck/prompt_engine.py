# keydeck/prompt_engine.py

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText

logger = logging.getLogger(__name__)

TEXT = 'text'
PASSWORD = 'password'
SELECT = 'select'
CONFIRM = 'confirm'
PROMPT_KINDS = (TEXT, PASSWORD, SELECT, CONFIRM)

YES_ANSWERS = ('y', 'yes')
NO_ANSWERS = ('n', 'no')

# (message_fragments, is_password) -> the submitted line
PromptReader = Callable[[list, bool], Awaitable[str]]


@dataclass
class PromptDefinition:
    name: str
    message: str
    type: str = TEXT
    options: List[str] = field(default_factory=list)
    default: Optional[object] = None

    def __post_init__(self):
        if self.type not in PROMPT_KINDS:
            raise ValueError(f"Unknown prompt type '{self.type}'. Expected one of: {', '.join(PROMPT_KINDS)}")
        if self.type == SELECT and not self.options:
            raise ValueError(f"Select prompt '{self.name}' needs at least one option.")

    @classmethod
    def from_dict(cls, data: dict) -> 'PromptDefinition':
        return cls(
            name=data['name'],
            message=data.get('message', data['name']),
            type=data.get('type', TEXT),
            options=list(data.get('options', [])),
            default=data.get('default'),
        )


@dataclass
class WizardStep:
    prompts: List[PromptDefinition]
    when: Optional[Callable[[Dict[str, str]], bool]] = None

    def applies(self, values: Dict[str, str]) -> bool:
        if self.when is None:
            return True
        return bool(self.when(values))


def format_confirm(value: bool) -> str:
    return 'true' if value else 'false'


class PromptEngine:
    """
    Resolves prompt definitions into a name -> value mapping.

    Prompts are read one at a time through `reader`. The default reader is a
    prompt_toolkit PromptSession; tests inject a scripted coroutine instead.
    """

    def __init__(self, printer, reader: Optional[PromptReader] = None):
        self.printer = printer
        self._reader = reader or self._read_with_prompt_toolkit
        self._session: Optional[PromptSession] = None

    async def _read_with_prompt_toolkit(self, message: list, is_password: bool = False) -> str:
        if self._session is None:
            self._session = PromptSession()
        return await self._session.prompt_async(FormattedText(message), is_password=is_password)

    async def _read(self, message: str, hint: str = '', is_password: bool = False) -> str:
        fragments = [('ansicyan', '? '), ('', message)]
        if hint:
            fragments.append(('ansibrightblack', f' {hint}'))
        fragments.append(('ansibrightblack', ' › '))
        answer = await self._reader(fragments, is_password)
        return (answer or '').strip()

    async def ask_text(self, definition: PromptDefinition) -> str:
        answer = await self._read(definition.message)
        if not answer and definition.default is not None:
            return str(definition.default)
        return answer

    async def ask_password(self, definition: PromptDefinition) -> str:
        return await self._read(definition.message, is_password=True)

    async def ask_select(self, definition: PromptDefinition) -> str:
        self.printer.line([('ansicyan', '? '), ('', definition.message)], False)
        for index, option in enumerate(definition.options, start=1):
            self.printer.line(f"  {index}) {option}", False)
        while True:
            answer = await self._read('Select an option', hint=f'(1-{len(definition.options)})')
            if answer.isdigit() and 1 <= int(answer) <= len(definition.options):
                return definition.options[int(answer) - 1]
            self.printer.line(f"⚠️ Please enter a number between 1 and {len(definition.options)}.", False, style_class='warning')

    async def ask_confirm(self, message: str, default: bool = False) -> bool:
        answer = (await self._read(message, hint='(Y/n)' if default else '(y/N)')).lower()
        if answer in YES_ANSWERS:
            return True
        if answer in NO_ANSWERS:
            return False
        return default

    async def ask(self, definition: PromptDefinition) -> str:
        if definition.type == PASSWORD:
            return await self.ask_password(definition)
        if definition.type == SELECT:
            return await self.ask_select(definition)
        if definition.type == CONFIRM:
            confirmed = await self.ask_confirm(definition.message, bool(definition.default))
            return format_confirm(confirmed)
        return await self.ask_text(definition)

    async def resolve(self, definitions: List[PromptDefinition], values: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        resolved = dict(values or {})
        for definition in definitions:
            resolved[definition.name] = await self.ask(definition)
            logger.debug(f"Prompt '{definition.name}' resolved ({definition.type}).")
        return resolved

    async def resolve_wizard(self, steps: List[WizardStep]) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for number, step in enumerate(steps, start=1):
            if not step.applies(values):
                logger.debug(f"Wizard step {number} skipped.")
                continue
            values = await self.resolve(step.prompts, values)
        return values
