# --- API DOCUMENTATION for keydeck/action_executor.py ---
#
# **Purpose:** Runs one Action through its full pipeline:
#
#   1. prompt / wizard resolution      7. before hooks
#   2. command materialization         8. primary execution (parallel, async,
#   3. working-directory scoping          synchronous shell or callback)
#   4. environment binding             9. chaining (then / on_error)
#   5. confirmation gate              10. after hooks
#   6. watch mode                     11. notification
#                                     12. working-directory restore (always)
#
# Failures of commands and callbacks are reported through the printer and
# recorded in the history; they never propagate out of `run()`.
#
# **Public Classes:**
#
# class ActionExecutor:
#     async def run(self, action) -> Optional[CommandResult]
#     def interrupt(self) -> bool
#         """Called by the SIGINT handler. Stops a running watch; returns
#         False when nothing interruptible is in flight."""
#
# --- END API DOCUMENTATION ---

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from keydeck import watcher
from keydeck.items import CALLBACK, SHELL, Task
from keydeck.placeholders import substitute, substitute_mapping
from keydeck.printer import print_callback_result, print_command_result

logger = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL = 1.0
DEFAULT_WATCH_DEBOUNCE = 0.3
TERMINATE_GRACE_SECONDS = 5.0
PARALLEL_MODE = "parallel execution"


@dataclass
class CommandResult:
    returncode: Optional[int]
    output: str = ''
    error_message: Optional[str] = None
    value: Any = None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


@dataclass
class ExecutionContext:
    """Per-invocation state shared by every step of one pipeline run."""
    label: str
    values: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    executable: Optional[str] = None


def _call_with_optional_args(fn: Callable, *args):
    """Calls `fn` with `args` if its signature accepts them, otherwise with none."""
    try:
        inspect.signature(fn).bind(*args)
    except TypeError:
        return fn()
    except ValueError:
        # Builtins without an introspectable signature.
        return fn(*args)
    return fn(*args)


class ActionExecutor:
    def __init__(self, navigation, printer, prompts, registry, history, settings: Optional[dict] = None):
        self.navigation = navigation
        self.printer = printer
        self.prompts = prompts
        self.registry = registry
        self.history = history
        watch_settings = (settings or {}).get('watch', {})
        self.watch_interval = watch_settings.get('default_interval_seconds', DEFAULT_WATCH_INTERVAL)
        self.watch_debounce = watch_settings.get('debounce_seconds', DEFAULT_WATCH_DEBOUNCE)
        self._interrupt_hook: Optional[Callable[[], None]] = None

    # --- Interrupt handling ---

    def interrupt(self) -> bool:
        if self._interrupt_hook is None:
            logger.debug("Interrupt ignored: no interruptible operation in flight.")
            return False
        logger.info("Interrupt received; stopping current operation.")
        self._interrupt_hook()
        return True

    async def run_command(self, label: str, command: str, executable: Optional[str] = None) -> CommandResult:
        """Runs a plain foreground command in the current node's directory and records it."""
        context = ExecutionContext(label=label, cwd=self.navigation.current.working_directory, executable=executable)
        result = await self._run_shell(command, context, label)
        self.history.add(label, command, SHELL, result.returncode)
        return result

    # --- Pipeline ---

    async def run(self, action) -> Optional[CommandResult]:
        node = self.navigation.current
        saved_directory = node.working_directory
        try:
            return await self._run_pipeline(action, node)
        finally:
            node.working_directory = saved_directory

    async def _run_pipeline(self, action, node) -> Optional[CommandResult]:
        pipeline = action.pipeline
        label = action.meta.label
        logger.info(f"Running action '{label}'")

        # 1. Prompts
        try:
            values = await self._resolve_prompts(pipeline)
        except (KeyboardInterrupt, EOFError):
            self.printer.line('✖ Input cancelled.', False, style_class='warning')
            logger.info(f"Prompt input for '{label}' cancelled by the user.")
            return None

        # 2. Command
        command = substitute(pipeline.shell, values) if pipeline.shell else None

        # 3. Working directory
        if pipeline.working_directory:
            node.working_directory = node.resolve_path(substitute(pipeline.working_directory, values))

        # 4. Environment
        context = ExecutionContext(
            label=label,
            values=values,
            cwd=node.working_directory,
            env=self._build_env(pipeline.shell_options.get('env'), pipeline.env, values),
            executable=pipeline.shell_options.get('executable'),
        )

        # 5. Confirmation
        if pipeline.confirm_message:
            try:
                confirmed = await self.prompts.ask_confirm(substitute(pipeline.confirm_message, values),
                                                           pipeline.confirm_default)
            except (KeyboardInterrupt, EOFError):
                confirmed = False
            if not confirmed:
                self.printer.line('✖ Cancelled.', False, style_class='warning')
                self.printer.line('', False)
                logger.info(f"Action '{label}' cancelled at confirmation.")
                return None

        # 6. Watch
        if pipeline.watch is not None:
            self._warn_inert(action, 'watch mode')
            await self._run_watch(action, command, context)
            return None

        # 7. Before hooks
        for task in pipeline.before:
            await self._run_task(task, context, f'{label} (before)')

        # 8. Primary execution
        if pipeline.parallel:
            self._warn_inert(action, PARALLEL_MODE)
            result = await self._run_parallel(pipeline.parallel, context)
            self._notify(pipeline, context, result)
            return result
        if command and pipeline.is_async:
            self._warn_inert(action, 'background execution')
            await self._spawn_background(command, context)
            return None
        if command:
            result = await self._run_shell(command, context, label, capture=pipeline.capture,
                                           silent=pipeline.silent, timeout=pipeline.timeout)
            self.history.add(label, command, SHELL, result.returncode)
        elif pipeline.callback:
            result = await self._run_callback(pipeline.callback, context, label, values)
            name = getattr(pipeline.callback, '__name__', 'callback')
            self.history.add(label, name, CALLBACK, result.returncode)
        else:
            logger.warning(f"Action '{label}' has no shell command or callback to run.")
            self.printer.line(f"⚠️ '{label}' has nothing to run.", False, style_class='warning')
            result = CommandResult(returncode=0)

        chain_values = dict(values)
        if result.output:
            chain_values['output'] = result.output
        context.values = chain_values

        # 9. Chaining
        status = result.returncode
        for link in pipeline.chain:
            if link.run_on_error:
                if status != 0:
                    await self._run_task(link.task, context, f'{label} (on error)')
            elif status == 0:
                link_result = await self._run_task(link.task, context, f'{label} (then)')
                status = link_result.returncode

        # 10. After hooks
        for task in pipeline.after:
            await self._run_task(task, context, f'{label} (after)', status)

        # 11. Notification
        self._notify(pipeline, context, result)
        return CommandResult(status, result.output, result.error_message, result.value)

    async def _resolve_prompts(self, pipeline) -> Dict[str, str]:
        if pipeline.wizard:
            self.printer.line('', False)
            values = await self.prompts.resolve_wizard(pipeline.wizard)
            self.printer.line('', False)
            return values
        if pipeline.prompts:
            self.printer.line('', False)
            values = await self.prompts.resolve(pipeline.prompts)
            self.printer.line('', False)
            return values
        return {}

    @staticmethod
    def _build_env(option_env: Optional[dict], templates: Dict[str, str], values: Dict[str, str]) -> Optional[Dict[str, str]]:
        if not option_env and not templates:
            return None
        env = dict(os.environ)
        if option_env:
            env.update({k: str(v) for k, v in option_env.items()})
        env.update(substitute_mapping(templates, values))
        return env

    def _warn_inert(self, action, mode: str):
        pipeline = action.pipeline
        ignored = []
        if pipeline.chain:
            ignored.append('then/on_error')
        if pipeline.after:
            ignored.append('after hooks')
        if pipeline.notify and mode != PARALLEL_MODE:
            ignored.append('notify')
        if ignored:
            message = f"'{action.meta.label}' uses {mode}; {' and '.join(ignored)} will not run."
            logger.warning(message)
            self.printer.line(f"⚠️ {message}", False, style_class='warning')

    def _notify(self, pipeline, context: ExecutionContext, result: CommandResult):
        if not pipeline.notify:
            return
        values = dict(context.values)
        values.setdefault('output', result.output)
        self.printer.line(f"🔔 {substitute(pipeline.notify, values)}", False, style_class='info')
        self.printer.line('', False)

    # --- Execution primitives ---

    async def _run_task(self, task: Task, context: ExecutionContext, label: str, *callback_args) -> CommandResult:
        if task.kind == CALLBACK:
            return await self._run_callback(task.payload, context, label, *callback_args)
        command = substitute(task.payload, context.values)
        env = context.env
        if task.options.get('env'):
            env = {**(env or os.environ), **{k: str(v) for k, v in task.options['env'].items()}}
        cwd = context.cwd
        if task.options.get('cwd'):
            cwd = os.path.join(cwd or os.getcwd(), os.path.expanduser(task.options['cwd']))
        return await self._run_shell(
            command, ExecutionContext(context.label, context.values, cwd, env,
                                      task.options.get('executable', context.executable)),
            label,
        )

    async def _run_shell(self, command: str, context: ExecutionContext, label: str, capture: bool = False,
                         silent: bool = False, timeout: Optional[float] = None) -> CommandResult:
        if not silent:
            self.printer.line(f"> {command}", False, style_class='executing')
        logger.info(f"Executing '{command}' in '{context.cwd or os.getcwd()}'")

        stdout = asyncio.subprocess.PIPE if capture else (asyncio.subprocess.DEVNULL if silent else None)
        stderr = asyncio.subprocess.PIPE if (capture or silent) else None
        try:
            process = await asyncio.create_subprocess_shell(
                command, stdout=stdout, stderr=stderr,
                cwd=context.cwd, env=context.env, executable=context.executable,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            logger.error(f"Could not start '{command}': {e}")
            self.printer.line(f"❌ Could not start command: {e}", False, style_class='error')
            result = CommandResult(returncode=127, error_message=str(e))
            print_command_result(self.printer, label, result.returncode, result.error_message)
            return result

        error_message = None
        try:
            out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            error_message = f"timed out after {timeout:g}s"
            logger.warning(f"Command '{command}' {error_message}; terminating.")
            await self._terminate(process)
            out, err = b'', b''

        output = (out or b'').decode(errors='replace').rstrip('\n')
        if capture and output and not silent:
            self.printer.line(output, False)
        if err and error_message is None:
            lines = err.decode(errors='replace').strip().splitlines()
            error_message = lines[-1] if lines else None

        returncode = process.returncode
        if returncode != 0:
            logger.warning(f"Command '{command}' exited with code {returncode}")
        if not silent:
            self.printer.line('', False)
        print_command_result(self.printer, label, returncode, error_message)
        return CommandResult(returncode, output.strip(), error_message)

    @staticmethod
    async def _terminate(process):
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def _run_callback(self, fn: Callable, context: ExecutionContext, label: str, *args) -> CommandResult:
        self.printer.line(f"> {label}", False, style_class='executing')
        self.printer.line('', False)
        if not args:
            args = (context.values,)
        try:
            value = _call_with_optional_args(fn, *args)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(f"Callback for '{label}' raised: {e}", exc_info=True)
            print_callback_result(self.printer, label, error=e)
            return CommandResult(returncode=1, error_message=str(e))
        print_callback_result(self.printer, label, value=value)
        return CommandResult(returncode=0, output='' if value is None else str(value), value=value)

    async def _run_parallel(self, tasks, context: ExecutionContext) -> CommandResult:
        label = context.label
        self.printer.line(f"⇉ Running {len(tasks)} task(s) in parallel", False, style_class='executing')

        async def _one(task: Task) -> CommandResult:
            if task.kind == CALLBACK:
                try:
                    value = _call_with_optional_args(task.payload, context.values)
                    if inspect.isawaitable(value):
                        value = await value
                    return CommandResult(0, value=value)
                except Exception as e:
                    logger.error(f"Parallel callback in '{label}' raised: {e}", exc_info=True)
                    return CommandResult(1, error_message=str(e))
            command = substitute(task.payload, context.values)
            process = await asyncio.create_subprocess_shell(
                command, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
                cwd=context.cwd, env=context.env, executable=context.executable,
            )
            out, err = await process.communicate()
            lines = err.decode(errors='replace').strip().splitlines()
            return CommandResult(process.returncode, out.decode(errors='replace').strip(),
                                 lines[-1] if lines else None)

        results = await asyncio.gather(*[_one(task) for task in tasks], return_exceptions=True)
        failures = 0
        for task, result in zip(tasks, results):
            if isinstance(result, BaseException):
                result = CommandResult(127, error_message=str(result))
            if result.succeeded:
                self.printer.line(f"  ✔ {task.describe()}", False, style_class='success')
            else:
                failures += 1
                detail = f" - {result.error_message}" if result.error_message else ''
                self.printer.line(f"  ✖ {task.describe()} [{result.returncode}]{detail}", False, style_class='error')
        self.printer.line('', False)

        returncode = 0 if failures == 0 else 1
        summary = f"{len(tasks) - failures}/{len(tasks)} task(s) succeeded"
        print_command_result(self.printer, label, returncode, summary if failures else None, separator='⇉')
        self.history.add(label, ' & '.join(task.describe() for task in tasks), 'parallel', returncode)
        return CommandResult(returncode)

    async def _spawn_background(self, command: str, context: ExecutionContext):
        self.printer.line(f"&> {command}", False, style_class='executing')
        try:
            await self.registry.spawn(context.label, command, cwd=context.cwd, env=context.env,
                                      executable=context.executable)
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            logger.error(f"Unable to launch background process '{command}': {e}")
            self.printer.line(f"❌ Unable to launch background process: {e}", False, style_class='error')
        self.printer.line('', False)

    async def _run_watch(self, action, command: Optional[str], context: ExecutionContext):
        pipeline = action.pipeline
        label = action.meta.label

        async def _run_once():
            if command:
                result = await self._run_shell(command, context, label, capture=pipeline.capture,
                                               silent=pipeline.silent, timeout=pipeline.timeout)
            elif pipeline.callback:
                result = await self._run_callback(pipeline.callback, context, label, context.values)
            else:
                return None
            return result.returncode

        stop_event = asyncio.Event()
        self._interrupt_hook = stop_event.set
        options = pipeline.watch
        try:
            if options.files:
                self.printer.line(f"👀 Watching {', '.join(options.files)} for changes. Press ctrl-c to stop.",
                                  False, style_class='info')
                paths = [os.path.join(context.cwd or os.getcwd(), os.path.expanduser(p)) for p in options.files]
                await watcher.watch_files(_run_once, paths, stop_event, debounce=self.watch_debounce)
            else:
                interval = options.interval or self.watch_interval
                self.printer.line(f"👀 Running every {interval:g}s. Press ctrl-c to stop.", False, style_class='info')
                await watcher.watch_interval(_run_once, interval, stop_event)
        finally:
            self._interrupt_hook = None
        self.printer.line('ℹ️ Watch stopped.', False, style_class='info')
        self.printer.line('', False)
