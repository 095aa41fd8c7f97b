"""
Connector Entrypoint.
Runs one conversation against a Botkit runtime and prints the bot replies.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys

from .config import load_config
from .connector import BotkitConnector
from .contract import BotMessage
from .errors import ConnectorError
from .structured_logging import use_json_output

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(name)s %(levelname)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("botkit_connector")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="botkit_connector",
        description="Send messages to a Botkit runtime and print its replies.",
    )
    parser.add_argument("texts", nargs="+", metavar="TEXT", help="user messages, in order")
    parser.add_argument("--url", help="Botkit server URL (default: $BOTKIT_SERVER_URL)")
    parser.add_argument(
        "--websocket",
        action="store_true",
        default=None,
        help="use the websocket transport (default: $BOTKIT_WEBSOCKET)",
    )
    parser.add_argument("--user-id", help="fixed session user id (default: random)")
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="seconds to wait for websocket replies after the last message",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser


def _print_reply(msg: BotMessage):
    if msg.text:
        print(f"bot: {msg.text}")
    for button in msg.buttons or []:
        print(f"  [button] {button.text} -> {button.payload}")
    for media in msg.media or []:
        print(f"  [media] {media.media_uri}")


async def run(args: argparse.Namespace) -> int:
    config = load_config()
    overrides = {}
    if args.url:
        overrides["server_url"] = args.url.rstrip("/")
    if args.websocket is not None:
        overrides["use_websocket"] = args.websocket
    if args.user_id:
        overrides["user_id"] = args.user_id
    if args.debug:
        overrides["debug"] = True
    config = dataclasses.replace(config, **overrides)

    if config.debug:
        logger.setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")

    try:
        async with BotkitConnector(config, _print_reply, logger=logger) as connector:
            await connector.validate()
            await connector.start()
            for text in args.texts:
                print(f"me:  {text}")
                await connector.user_says(text)
            if connector.channel.pushes_inbound:
                await asyncio.sleep(args.wait)
            await connector.stop()
    except ConnectorError as e:
        logger.error(f"Conversation failed: {type(e).__name__}: {e}")
        return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    use_json_output(logging.getLogger())
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
