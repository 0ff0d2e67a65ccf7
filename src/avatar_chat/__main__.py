"""CLI entry point for avatar-chat."""

from __future__ import annotations

import argparse
import asyncio
import sys

from avatar_chat.ai.models import max_tokens_for
from avatar_chat.app import AvatarChatApp
from avatar_chat.config import AppConfig, load_config
from avatar_chat.log import setup_logging
from avatar_chat.messenger.console import ConsoleAdapter
from avatar_chat.storage.seed import seed_from_file


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="avatar-chat",
        description="Chatbot response engine for business avatars",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_config_args(subparsers.add_parser("config-check", help="Validate configuration"))
    _add_config_args(subparsers.add_parser("model-info", help="Show model and token budget info"))

    chat_parser = subparsers.add_parser("chat", help="Chat with an avatar in the console")
    _add_config_args(chat_parser)
    chat_parser.add_argument("-a", "--avatar", required=True, help="Avatar id")
    chat_parser.add_argument("-u", "--user", required=True, help="Owner user id of the avatar")
    chat_parser.add_argument("-m", "--model", default=None, help="Requested model")
    chat_parser.add_argument("--contact", default="console", help="Contact handle to chat as")

    seed_parser = subparsers.add_parser("seed", help="Load avatars and catalog data from YAML")
    _add_config_args(seed_parser)
    seed_parser.add_argument("file", help="YAML file with avatars, products, promotions, keys")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "model-info":
        _model_info(args.config, args.env)
    elif args.command == "chat":
        _chat(args)
    elif args.command == "seed":
        _seed(args)


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load(config_path, env_path)
    engine = config.engine
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Backend: {engine.backend} (default model {engine.default_model})")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Tool rounds: {engine.max_tool_rounds}, deadline: {engine.response_deadline_seconds}s")
    print(f"  Knowledge: top {engine.knowledge_top_k} at >= {engine.knowledge_min_similarity}")
    if engine.backend not in ("openai", "anthropic"):
        print(f"Configuration error: unknown backend '{engine.backend}'", file=sys.stderr)
        sys.exit(1)


def _model_info(config_path: str, env_path: str) -> None:
    """Show model configuration and output budgets."""
    config = _load(config_path, env_path)
    engine = config.engine
    backend_cfg = config.openai if engine.backend == "openai" else config.anthropic

    print("AI Model Configuration")
    print("=" * 50)
    print(f"  Backend   : {engine.backend}")
    print(f"  Model     : {engine.default_model}")
    print(f"  Tokens    : {max_tokens_for(engine.default_model)}")
    print(f"  Temp      : {engine.temperature}")
    print(f"  Retries   : {backend_cfg.max_retries}")
    print(f"  Timeout   : {backend_cfg.timeout}s")
    if engine.backend == "openai":
        print(f"  Embedding : {engine.embedding_model}")
    print()


def _seed(args: argparse.Namespace) -> None:
    config = _load(args.config, args.env)
    setup_logging(config.logging.level, config.logging.json_logs)

    async def _async_seed() -> dict[str, int]:
        app = AvatarChatApp(config)
        await app.db.initialize()
        try:
            return await seed_from_file(app.db, args.file)
        finally:
            await app.db.close()

    counts = asyncio.run(_async_seed())
    print("Seeded: " + ", ".join(f"{k}={v}" for k, v in counts.items()))


def _chat(args: argparse.Namespace) -> None:
    config = _load(args.config, args.env)
    setup_logging(config.logging.level, config.logging.json_logs)

    async def _async_chat() -> None:
        app = AvatarChatApp(config)
        await app.start()
        adapter = ConsoleAdapter(args.avatar, {"contact": args.contact})
        app.attach(adapter, owner_user_id=args.user, model=args.model)
        try:
            await adapter.start()
        finally:
            await app.stop()

    try:
        asyncio.run(_async_chat())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
