"""Command-line entry point: ``haikuagent run [CONFIG]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from haikuagent.config import DEFAULT_CONFIG_PATH
from haikuagent.config import load_config
from haikuagent.errors import ConfigError
from haikuagent.runner import run_agent
from haikuagent.secrets import Secrets

logger = logging.getLogger("haikuagent")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d :: %(message)s"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="haikuagent")
    subcommands = parser.add_subparsers(dest="command", required=True)
    run = subcommands.add_parser("run", help="Run the agent")
    run.add_argument(
        "config_file_path",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help="Path to the configuration file",
    )
    run.add_argument("--env-file", default=None, help="Path to a .env file")
    return parser.parse_args(argv)


def configure_logging() -> None:
    level = os.getenv("HAIKU_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    logging.getLogger("haikuagent").setLevel(level)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()

    if args.command == "run":
        try:
            config = load_config(args.config_file_path)
            secrets = Secrets.from_env(args.env_file)
            asyncio.run(run_agent(config, secrets))
        except ConfigError as exc:
            logger.error("Failed to initialize services: %s", exc)
            return 1
        except KeyboardInterrupt:
            logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
