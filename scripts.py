# scripts.py
import logging
import sys

from core.utils.commands.script_runner import ScriptRunner

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    runner = ScriptRunner(commands_folder="scripts")
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command_name> [options]")
        print("Commands: " + ", ".join(runner.available()))
        sys.exit(1)

    runner.run(sys.argv[1], sys.argv[2:])
