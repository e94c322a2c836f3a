# --- API DOCUMENTATION for keydeck/action.py ---
#
# **Purpose:** The fluent builder for runnable menu entries. Every builder
# method records configuration in `Action.pipeline` (an ActionPipeline) and
# returns the action, so configurations read as one chained expression:
#
#     menu.action('Deploy') \
#         .select('env', 'Target environment', ['staging', 'prod']) \
#         .require_confirmation('Deploy now?') \
#         .shell('./deploy.sh {{env}}') \
#         .then('echo deployed') \
#         .on_error('echo deploy failed')
#
# Execution is delegated to keydeck/action_executor.py.
#
# --- END API DOCUMENTATION ---

import copy
import logging
from typing import Callable, Dict, List, Optional, Union

from keydeck import conditions
from keydeck.items import (
    ActionPipeline, ChainLink, Item, Task, WatchOptions,
)
from keydeck.prompt_engine import (
    CONFIRM, PASSWORD, SELECT, PromptDefinition, WizardStep,
)

logger = logging.getLogger(__name__)

SHELL_OPTION_KEYS = ('executable', 'env', 'cwd', 'async_')


def normalize_shell_options(options: dict) -> dict:
    """Accepts `async` as an alias of `async_` (data configs cannot use the latter)."""
    normalized = dict(options or {})
    if 'async' in normalized:
        normalized['async_'] = normalized.pop('async')
    if 'shell' in normalized:
        normalized['executable'] = normalized.pop('shell')
    unknown = [key for key in normalized if key not in SHELL_OPTION_KEYS]
    if unknown:
        raise ValueError(f"Unknown shell option(s): {', '.join(sorted(unknown))}")
    return normalized


class Action(Item):
    def __init__(self, label: str, description: str = '', owner=None):
        super().__init__(label, description)
        self.pipeline = ActionPipeline()
        self.owner = owner
        self._unnamed_prompts = 0

    @property
    def is_favorite(self) -> bool:
        return self.pipeline.favorite

    def detail_text(self) -> str:
        return self.meta.description or self.pipeline.shell or ''

    async def execute(self, session):
        await session.executor.run(self)

    # --- Primary execution mode ---

    def shell(self, command: str, **options):
        self.pipeline.shell = command
        self.pipeline.shell_options.update(normalize_shell_options(options))
        return self

    def shell_options(self, **options):
        self.pipeline.shell_options.update(normalize_shell_options(options))
        return self

    def callback(self, fn: Callable):
        if not callable(fn):
            raise TypeError(f"callback() expects a callable, got {type(fn).__name__}")
        self.pipeline.callback = fn
        return self

    def parallel(self, tasks: list):
        self.pipeline.parallel = [Task.from_value(task) for task in tasks]
        return self

    # --- Prompts ---

    def prompt(self, name_or_message: str, message: Optional[str] = None):
        if message is not None:
            self.pipeline.prompts.append(PromptDefinition(name_or_message, message))
            return self
        self._unnamed_prompts += 1
        name = 'input' if self._unnamed_prompts == 1 else f'input{self._unnamed_prompts}'
        self.pipeline.prompts.append(PromptDefinition(name, name_or_message))
        return self

    def prompts(self, definitions: list):
        for definition in definitions:
            if isinstance(definition, dict):
                definition = PromptDefinition.from_dict(definition)
            self.pipeline.prompts.append(definition)
        return self

    def select(self, name: str, message: str, options: List[str]):
        self.pipeline.prompts.append(PromptDefinition(name, message, type=SELECT, options=list(options)))
        return self

    def password(self, name: str, message: str):
        self.pipeline.prompts.append(PromptDefinition(name, message, type=PASSWORD))
        return self

    def confirm(self, name: str, message: str, default: bool = False):
        self.pipeline.prompts.append(PromptDefinition(name, message, type=CONFIRM, default=default))
        return self

    def wizard(self, steps: list):
        built = []
        for step in steps:
            if isinstance(step, dict):
                when = step.get('when')
                if isinstance(when, dict):
                    when = conditions.values_match(when)
                definitions = [
                    PromptDefinition.from_dict(p) if isinstance(p, dict) else p
                    for p in step.get('prompts', [])
                ]
                step = WizardStep(prompts=definitions, when=when)
            built.append(step)
        self.pipeline.wizard = built
        return self

    def require_confirmation(self, message: str = 'Are you sure?', default: bool = False):
        self.pipeline.confirm_message = message
        self.pipeline.confirm_default = default
        return self

    # --- Hooks and chaining ---

    def before(self, value: Union[str, Callable], **options):
        self.pipeline.before.append(Task.from_value(value, **normalize_shell_options(options)))
        return self

    def after(self, value: Union[str, Callable], **options):
        self.pipeline.after.append(Task.from_value(value, **normalize_shell_options(options)))
        return self

    def then(self, value: Union[str, Callable], **options):
        self.pipeline.chain.append(ChainLink(Task.from_value(value, **normalize_shell_options(options))))
        return self

    def on_error(self, value: Union[str, Callable], **options):
        self.pipeline.chain.append(ChainLink(Task.from_value(value, **normalize_shell_options(options)), run_on_error=True))
        return self

    # --- Environment and output ---

    def env(self, name_or_mapping: Union[str, Dict[str, str]], value: Optional[str] = None):
        if isinstance(name_or_mapping, dict):
            self.pipeline.env.update({k: str(v) for k, v in name_or_mapping.items()})
        else:
            if value is None:
                raise ValueError(f"env('{name_or_mapping}') needs a value.")
            self.pipeline.env[name_or_mapping] = str(value)
        return self

    def in_directory(self, path: str):
        self.pipeline.working_directory = path
        return self

    def capture(self):
        self.pipeline.capture = True
        return self

    def silent(self):
        self.pipeline.silent = True
        return self

    def notify(self, message: str):
        self.pipeline.notify = message
        return self

    def favorite(self):
        self.pipeline.favorite = True
        return self

    def timeout(self, seconds: float):
        if seconds is None or seconds <= 0:
            raise ValueError("timeout() expects a positive number of seconds.")
        self.pipeline.timeout = float(seconds)
        return self

    def watch(self, interval: Optional[float] = None):
        self.pipeline.watch = WatchOptions(interval=interval)
        return self

    def watch_files(self, paths: List[str]):
        if isinstance(paths, str):
            paths = [paths]
        self.pipeline.watch = WatchOptions(files=list(paths))
        return self

    # --- Templates ---

    def from_template(self, template):
        """
        Copies configuration from a template action into this one.

        `template` can be an Action, a template name registered on the menu
        node, or a callable that receives this action and configures it.
        """
        if isinstance(template, str):
            if self.owner is None:
                raise LookupError(f"Action '{self.meta.label}' is not attached to a menu; cannot resolve template '{template}'.")
            name = template
            template = self.owner.get_template(name)
            if template is None:
                raise LookupError(f"Unknown template '{name}'.")
        if not isinstance(template, Action) and callable(template):
            template(self)
            return self

        source = template.pipeline
        target = self.pipeline

        target.shell_options = {**source.shell_options, **target.shell_options}
        target.prompts = copy.copy(source.prompts) + target.prompts
        target.before = copy.copy(source.before) + target.before
        target.after = target.after + copy.copy(source.after)
        target.chain = target.chain + copy.copy(source.chain)
        for name, value in source.env.items():
            target.env.setdefault(name, value)

        for attribute in ('working_directory', 'notify', 'timeout', 'shell', 'callback', 'watch'):
            if getattr(target, attribute) is None:
                setattr(target, attribute, getattr(source, attribute))
        if not target.parallel:
            target.parallel = list(source.parallel)
        if not target.wizard:
            target.wizard = list(source.wizard)
        if target.confirm_message is None and source.confirm_message is not None:
            target.confirm_message = source.confirm_message
            target.confirm_default = source.confirm_default
        if self.meta.condition is None:
            self.meta.condition = template.meta.condition

        target.capture = target.capture or source.capture
        target.silent = target.silent or source.silent
        target.favorite = target.favorite or source.favorite
        return self
