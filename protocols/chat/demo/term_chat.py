#!/usr/bin/env python3
"""
Terminal chat client.

Reads lines from stdin. Plain lines are posted to the open channel, lines
starting with ``/`` are commands (``/help`` lists them). The open channel is
redrawn whenever it changes.

Usage:
    python -m protocols.chat.demo.term_chat application.yaml wallet.yaml
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from core.config import (
    ApplicationConf,
    ConfigError,
    WalletConf,
    load_yaml,
    parse_application_conf,
    parse_wallet_conf,
)
from core.identity import Identity, identity_from_key_pair
from core.log import configure, get_logger
from core.node_store import NodeStore, StorageError
from core.scheduler import TaskScheduler
from core.view import ViewItem
from protocols.chat.channel_list import Channel, ChannelListController
from protocols.chat.message_controller import Message, MessageController


log = get_logger("TermChat")

HELP = """The following commands are available:
/help (shows this help)
/whoami (show your public key)
/channels (list all channels available)
/new <name> (create a public channel)
/q <public key hex> (create a new private channel with the given peer)
/open <channel index> (open and activate a channel from the /channels list)
/history (load older messages of the open channel)
/edit <message index> <text> (edit one of your messages)
/react <message index> <reaction> (toggle a reaction on a message)
/delete <message index> (delete one of your messages)"""


class TermChat:
    """Line-oriented chat UI over a channel list controller."""

    def __init__(self, store: NodeStore, identity: Identity, app_conf: ApplicationConf,
                 scheduler: TaskScheduler):
        self.store = store
        self.identity = identity
        self.app_conf = app_conf
        self.channel_list = ChannelListController(
            store,
            identity.public_key,
            scheduler=scheduler,
            thread_name=app_conf.thread_name,
            delete_grace_ms=app_conf.delete_grace_ms,
            history_page=app_conf.history_page,
        )

    def out(self, text: str = "") -> None:
        print(text, flush=True)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def handle_line(self, line: str) -> None:
        line = line.rstrip("\n")
        if not line:
            return
        try:
            if line.startswith("/"):
                await self.handle_command(line)
            else:
                await self.send_chat(line)
        except (StorageError, ValueError, KeyError, IndexError) as e:
            self.out(f"Error: {e}")

    async def send_chat(self, text: str) -> None:
        controller = self.channel_list.get_active_controller()
        if controller is None:
            self.out("No channel opened")
            return
        await controller.send_message(text)

    def _message_item(self, controller: MessageController, index_text: str) -> ViewItem:
        items = controller.get_items()
        index = int(index_text)
        if index < 0 or index >= len(items):
            raise IndexError(f"No message with index {index}")
        return items[index]

    def _require_controller(self) -> MessageController:
        controller = self.channel_list.get_active_controller()
        if controller is None:
            raise ValueError("No channel opened")
        return controller

    async def handle_command(self, command: str) -> None:
        name, _, rest = command.partition(" ")
        rest = rest.strip()

        if name == "/help":
            self.out(HELP)

        elif name == "/whoami":
            self.out(f"{self.identity.name} {self.identity.public_key_hex}")

        elif name == "/channels":
            self.out("Channels:")
            for index, item in enumerate(self.channel_list.get_items()):
                channel: Channel = item.data
                is_open = channel.controller is not None and not channel.controller.closed
                self.out(f"{index} {channel.name}, isOpen: {is_open}, "
                         f"isPrivate: {channel.is_private}")

        elif name == "/new":
            node = await self.channel_list.make_channel(rest)
            self.out(f"Channel created {node}")

        elif name == "/q":
            public_key = bytes.fromhex(rest)
            self.out(f"Creating private channel with {rest}")
            node = await self.channel_list.make_private_channel(public_key)
            self.out(f"Channel created {node}")

        elif name == "/open":
            items = self.channel_list.get_items()
            index = int(rest)
            if index < 0 or index >= len(items):
                raise IndexError(f"No channel with index {index}")
            id1 = items[index].id1

            active = self.channel_list.get_active_controller()
            if active is not None:
                active.close()

            self.out(f"Open channel with {id1.hex()}")
            controller = self.channel_list.open_channel(id1)
            self.channel_list.set_channel_active(id1)
            controller.on_change(lambda: self.redraw(controller))
            self.redraw(controller)

        elif name == "/history":
            self._require_controller().load_history()

        elif name == "/edit":
            controller = self._require_controller()
            index_text, _, text = rest.partition(" ")
            item = self._message_item(controller, index_text)
            await controller.edit_message(item.node, text)

        elif name == "/react":
            controller = self._require_controller()
            index_text, _, reaction = rest.partition(" ")
            item = self._message_item(controller, index_text)
            await controller.toggle_reaction(item.data, item.node, reaction.strip())

        elif name == "/delete":
            controller = self._require_controller()
            item = self._message_item(controller, rest)
            await controller.delete_message(item.node)

        else:
            self.out(f"Unknown command: {command}")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def format_message(self, index: int, message: Message) -> str:
        timestamp = message.creation_timestamp.strftime("%Y-%m-%d %H:%M:%S") \
            if message.creation_timestamp else "-"
        text = message.display_text
        if message.edited_text is not None and message.edited_text != "":
            text += " (edited)"
        line = f"{index} {timestamp} {message.public_key[:16]}: {text}"
        if message.reactions:
            counts = ", ".join(f"{name} {len(state.public_keys)}"
                               for name, state in sorted(message.reactions.items()))
            line += f" [{counts}]"
        return line

    def redraw(self, controller: MessageController) -> None:
        self.out(f"--- {controller.get_name()} ---")
        for index, item in enumerate(controller.get_items()):
            self.out(self.format_message(index, item.data))

    def close(self) -> None:
        self.channel_list.close()


async def read_lines(chat: TermChat) -> None:
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            # ctrl-d
            return
        await chat.handle_line(line)


async def run(app_conf: ApplicationConf, wallet_conf: WalletConf) -> None:
    identity = identity_from_key_pair(wallet_conf.key_pairs[0], name=wallet_conf.name)
    store = NodeStore(identity, db_path=app_conf.db_path,
                      license_private=app_conf.licensed_private_channels)
    scheduler = TaskScheduler()

    chat = TermChat(store, identity, app_conf, scheduler)
    log.info(f"Initialized as {identity.public_key_hex}")
    chat.out("Type /help for list of commands")

    scheduler_task = asyncio.create_task(scheduler.run_forever())
    try:
        await read_lines(chat)
        # Let pending deletes finish before closing the store.
        while scheduler.pending():
            await asyncio.sleep(0.1)
    finally:
        scheduler_task.cancel()
        chat.close()
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Terminal chat")
    parser.add_argument("application_conf", help="application YAML config")
    parser.add_argument("wallet_conf", help="wallet YAML config")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    args = parser.parse_args(argv)

    try:
        app_conf = parse_application_conf(load_yaml(args.application_conf))
        wallet_conf = parse_wallet_conf(load_yaml(args.wallet_conf))
    except ConfigError as e:
        print(f"Could not parse config files: {e}", file=sys.stderr)
        return 1

    configure(verbose=args.verbose or app_conf.verbose)

    try:
        asyncio.run(run(app_conf, wallet_conf))
    except ValueError as e:
        log.error(f"Could not start: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
