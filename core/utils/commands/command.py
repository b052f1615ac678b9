import argparse
from typing import List, Optional


class Command:
    """
    Base class for ``python scripts.py <name>`` management commands.

    Subclasses set ``help``, declare options in :meth:`add_arguments` and do
    their work in the async :meth:`handle`.
    """

    help: str = ""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        pass

    async def handle(self, **options):
        raise NotImplementedError("Commands must implement handle()")

    def create_parser(self, prog: str) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog=prog, description=self.help)
        self.add_arguments(parser)
        return parser

    def parse(self, prog: str, argv: Optional[List[str]] = None) -> dict:
        return vars(self.create_parser(prog).parse_args(argv or []))
