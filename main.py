# main.py

import argparse
import asyncio
import datetime
import inspect
import logging
import os
import shutil
import sys
from typing import List, Optional

import keydeck
from keydeck import config_handler
from keydeck.config_loader import ConfigurationError, get_init_config
from keydeck.key_input import TerminalKeySource
from keydeck.menu_loop import MenuLoop
from keydeck.menu_node import DEFAULT_MENU_OPTIONS, MenuNode
from keydeck.printer import TTYPrinter

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(keydeck.__file__)), "templates")
INIT_TEMPLATES = {
    "python": ".keydeck.py",
    "json": ".keydeck.json",
    "yaml": ".keydeck.yaml",
}
DEFAULT_LOG_FILE = os.path.join("~", ".keydeck", "logs", "keydeck.log")

EXIT_OK = 0
EXIT_NO_CONFIG = 1
EXIT_INIT_EXISTS = 2

logger = logging.getLogger(__name__)


def setup_logging(settings: dict) -> str:
    """ Sends all log records to the configured file; the terminal belongs to the menu. """
    log_file = os.path.expanduser(config_handler.get_setting(settings, "logging.file", DEFAULT_LOG_FILE))
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    level_name = str(config_handler.get_setting(settings, "logging.level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        handlers=[logging.FileHandler(log_file)]
    )
    return log_file


def init_config(file_format: str, directory: Optional[str] = None) -> int:
    """ Copies the starter template for `file_format` into `directory`. """
    filename = INIT_TEMPLATES[file_format]
    target = os.path.join(directory or os.getcwd(), filename)
    if os.path.exists(target):
        print(f"❌ Error: {target} already exists.", file=sys.stderr)
        logger.warning(f"--init refused: {target} already exists.")
        return EXIT_INIT_EXISTS
    shutil.copyfile(os.path.join(TEMPLATES_DIR, filename), target)
    print(f"✅ Created {target}")
    logger.info(f"Starter configuration written to {target}")
    return EXIT_OK


def init_settings(path: str = config_handler.USER_SETTINGS_PATH) -> int:
    """ Writes the bundled default settings to the user settings file for editing. """
    if os.path.exists(path):
        print(f"❌ Error: {path} already exists.", file=sys.stderr)
        logger.warning(f"--init-settings refused: {path} already exists.")
        return EXIT_INIT_EXISTS
    defaults = config_handler.load_jsonc_file(config_handler.DEFAULT_SETTINGS_PATH) or {}
    if not config_handler.save_json_file(path, defaults):
        return EXIT_NO_CONFIG
    print(f"✅ Created {path}")
    return EXIT_OK


def build_root(settings: dict) -> MenuNode:
    menu_settings = dict(config_handler.get_setting(settings, "menu", {}))
    title = menu_settings.pop("title", " keydeck ")
    subtitle = menu_settings.pop("subtitle", "")
    defaults = config_handler.merge_configs(DEFAULT_MENU_OPTIONS, menu_settings)
    return MenuNode(title, subtitle, defaults=defaults)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="keydeck",
        description="Run commands, callbacks and sub-menus with a single key press.",
    )
    parser.add_argument(
        '-v', '--version',
        action='version',
        version=f"keydeck {keydeck.__version__}",
    )
    parser.add_argument(
        '-i', '--init',
        nargs='?',
        const='python',
        choices=sorted(INIT_TEMPLATES),
        metavar='FORMAT',
        help=f"Create a starter config in the current directory ({', '.join(sorted(INIT_TEMPLATES))}; default: python).",
    )
    parser.add_argument(
        '--init-settings',
        action='store_true',
        help=f"Write the default application settings to {config_handler.USER_SETTINGS_PATH} for editing.",
    )
    parser.add_argument(
        '-f', '--file',
        help="Use this configuration file instead of searching for one.",
    )
    return parser.parse_args(argv)


async def main_async_runner(root: MenuNode, configure, settings: dict):
    """ Builds the root menu from the configuration and runs the interactive loop. """
    result = configure(root)
    if inspect.isawaitable(result):
        await result
    session = MenuLoop(root, TTYPrinter(), key_source=TerminalKeySource(), settings=settings)
    logger.info("keydeck menu loop starting.")
    await session.run()
    logger.info("keydeck menu loop finished.")


def main(argv: Optional[List[str]] = None) -> int:
    """ Main entry point to run keydeck. """
    args = parse_args(argv)
    settings = config_handler.load_settings()
    log_file = setup_logging(settings)

    if args.init:
        return init_config(args.init)
    if args.init_settings:
        return init_settings()

    logger.info("=" * 80)
    logger.info("  keydeck Session Started")
    logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)

    root = build_root(settings)
    try:
        configure = get_init_config(args.file)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        logger.critical(f"Menu configuration could not be loaded: {e}")
        return EXIT_NO_CONFIG

    if configure is None:
        if args.file:
            print(f"❌ The file {args.file} does not seem to be a suitable .keydeck.py/json/yaml or package.json file!", file=sys.stderr)
        else:
            print("❌ Unable to find a .keydeck.py/json/yaml or package.json file in the current directory or your home directory!", file=sys.stderr)
        print("Please run keydeck --help.", file=sys.stderr)
        logger.error("No menu configuration found.")
        return EXIT_NO_CONFIG

    if args.file:
        root.cwd(os.path.dirname(os.path.abspath(os.path.expanduser(args.file))))

    try:
        asyncio.run(main_async_runner(root, configure, settings))
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        logger.critical(f"Menu configuration could not be applied: {e}")
        return EXIT_NO_CONFIG
    except (EOFError, KeyboardInterrupt):
        logger.info("Exiting due to EOF or KeyboardInterrupt.")
    except Exception as e:
        print(f"\nUnexpected critical error: {e}. Check logs at {log_file}", file=sys.stderr)
        logger.critical("Critical error in main_async_runner", exc_info=True)
        return EXIT_NO_CONFIG
    finally:
        logger.info("=" * 80)
        logger.info("  keydeck Session Ended")
        logger.info("=" * 80)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
