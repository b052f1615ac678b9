import asyncio
import importlib
import inspect
import logging
import pkgutil
import sys
from typing import List, Type

from core.utils.commands.command import Command

logger = logging.getLogger(__name__)


class ScriptRunner:
    """Finds the Command subclass in ``<commands_folder>/<name>.py`` and runs it."""

    def __init__(self, commands_folder: str = "scripts"):
        self.commands_folder = commands_folder

    def available(self) -> List[str]:
        package = importlib.import_module(self.commands_folder)
        return sorted(
            name for _, name, is_pkg in pkgutil.iter_modules(package.__path__) if not is_pkg
        )

    def load(self, command_name: str) -> Type[Command]:
        module_path = f"{self.commands_folder}.{command_name}"
        try:
            module = importlib.import_module(module_path)
        except ModuleNotFoundError as e:
            if e.name != module_path:
                raise
            raise SystemExit(f"Unknown command: {command_name}")

        for _, obj in inspect.getmembers(module, inspect.isclass):
            if issubclass(obj, Command) and obj is not Command and obj.__module__ == module.__name__:
                return obj
        raise SystemExit(f"No Command subclass found in {module_path}")

    def run(self, command_name: str, argv: List[str]):
        command = self.load(command_name)()
        options = command.parse(f"{sys.argv[0]} {command_name}", argv)
        logger.info(f"Running command {command_name} with {options}")
        return asyncio.run(command.handle(**options))
