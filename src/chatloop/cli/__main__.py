"""Entry point for running the CLI as a module."""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import BaseModel

from chatloop.configs.config import AppConfig, get_app_config
from chatloop.core.deps import open_session
from chatloop.engine.base import EngineError
from chatloop.infra.logging import setup_logging

from .chat_cli import ChatLoopCLI

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Options left unset fall back to the loaded configuration.
    """
    parser = argparse.ArgumentParser(
        prog="chatloop",
        description="Interactive chat with a local GGUF model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--model",
        type=Path,
        default=None,
        help="Path to the GGUF model file",
    )
    parser.add_argument(
        "--context-size",
        type=int,
        default=None,
        help="Context window in tokens (default: from config, 2048)",
    )
    parser.add_argument(
        "--min-p",
        type=float,
        default=None,
        help="Min-p sampling cutoff (default: from config)",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=None,
        help="Sampling temperature (default: from config)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Sampling seed (default: random)",
    )
    parser.add_argument(
        "--system-prompt",
        type=str,
        default=None,
        help="System message placed at the start of the conversation",
    )
    parser.add_argument(
        "--max-pieces",
        type=int,
        default=None,
        help="Cut each reply after this many generated pieces",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows the formatted prompt)",
    )

    return parser.parse_args(argv)


def _merged(section: BaseModel, updates: dict) -> BaseModel:
    return type(section).model_validate({**section.model_dump(), **updates})


def build_config(args: argparse.Namespace, base: AppConfig | None = None) -> AppConfig:
    """Overlay command-line options onto the loaded configuration."""
    config = base if base is not None else get_app_config()

    engine_updates: dict = {}
    if args.model is not None:
        engine_updates["model_path"] = args.model
    if args.context_size is not None:
        engine_updates["context_size"] = args.context_size

    sampling_updates: dict = {}
    if args.min_p is not None:
        sampling_updates["min_p"] = args.min_p
    if args.temperature is not None:
        sampling_updates["temperature"] = args.temperature
    if args.seed is not None:
        sampling_updates["seed"] = args.seed

    chat_updates: dict = {}
    if args.system_prompt is not None:
        chat_updates["system_prompt"] = args.system_prompt
    if args.max_pieces is not None:
        chat_updates["max_response_pieces"] = args.max_pieces

    logging_updates: dict = {"level": "DEBUG"} if args.debug else {}

    # Re-validate so bad CLI values fail like bad config values.
    return config.model_copy(
        update={
            "engine": _merged(config.engine, engine_updates),
            "sampling": _merged(config.sampling, sampling_updates),
            "chat": _merged(config.chat, chat_updates),
            "logging": _merged(config.logging, logging_updates),
        }
    )


def cli_entry(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    config = build_config(args)
    setup_logging(config.logging)

    try:
        session = open_session(config)
    except EngineError as exc:
        logger.error("Could not start session: %s", exc)
        sys.exit(1)

    with session:
        cli = ChatLoopCLI(session, max_pieces=config.chat.max_response_pieces)
        try:
            cli.run()
        except EngineError:
            logger.exception("Generation failed")
            sys.exit(1)


if __name__ == "__main__":
    cli_entry()
