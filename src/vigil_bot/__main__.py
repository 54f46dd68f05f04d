"""CLI entry point for vigil-bot."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from vigil_bot.app import VigilBotApp
from vigil_bot.config import AppConfig, load_config
from vigil_bot.log import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="vigil-bot",
        description="Telegram assistant for the Solana ecosystem",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (("start", "Start the bot"), ("config-check", "Validate configuration")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        # Default to start
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Storage: {config.storage.db_path}")
    backend = f"anthropic ({config.backend.model})" if config.anthropic else "(none)"
    print(f"  Backend: {backend}")
    print(f"  Debug mode: {config.debug.debug_mode}")
    print(f"  Full JSON echo: {config.debug.show_full_json}")


def _run(config_path: str, env_path: str) -> None:
    """Load config and start the application."""
    try:
        config = load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level, config.log_format)
    sys.exit(asyncio.run(_serve(config)))


async def _serve(config: AppConfig) -> int:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    received: list[str] = []

    def _signal_handler(sig: signal.Signals) -> None:
        received.append(sig.name)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler, sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(_signal_handler, signal.Signals(s)))

    app = VigilBotApp(config)
    try:
        await app.start()
    except Exception as e:
        logger.error("launch_failed", error=str(e), exc_info=True)
        await app.stop("launch_failed")
        return 1

    await stop_event.wait()
    await app.stop(received[0] if received else None)
    return 0


if __name__ == "__main__":
    main()
