"""
Interactive terminal front end for the tree hole chat.

Type a message to send it; ``/new`` starts a new conversation and ``/quit``
exits. A leading mood emoji (for example ``😢 rough day``) is attached to
the entry as its emotion tag.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from treehole.chat_service import ChatSession
from treehole.config import Configuration
from treehole.conversation import EmotionTag
from treehole.llm.client import StreamingChatClient
from treehole.logging_utils import setup_logging

NEW_CONVERSATION_COMMAND = "/new"
QUIT_COMMANDS = ("/quit", "/exit")


def split_emotion_tag(line: str) -> tuple[str, EmotionTag | None]:
    """Split a leading mood emoji off ``line``."""
    stripped = line.strip()
    for tag in EmotionTag:
        if stripped.startswith(tag.value):
            return stripped[len(tag.value):].strip(), tag
    return stripped, None


async def chat_loop(session: ChatSession) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "you> ")
        except EOFError:
            return

        command = line.strip().lower()
        if command in QUIT_COMMANDS:
            return
        if command == NEW_CONVERSATION_COMMAND:
            session.start_new_conversation()
            print("-- new conversation --")
            continue

        text, emotion_tag = split_emotion_tag(line)
        if not text:
            continue

        print("treehole> ", end="", flush=True)
        async for chunk in session.send_message(text, emotion_tag):
            if chunk.content:
                print(chunk.content, end="", flush=True)
            elif chunk.is_error:
                print(f"\n[error] {chunk.error}", file=sys.stderr)
        print()


async def main() -> None:
    """Main entry point - terminal chat until EOF or /quit."""
    config = Configuration()
    setup_logging(config.get_logging_config().get("level", "INFO"))

    provider_config = config.get_provider_config()

    async with StreamingChatClient(provider_config) as llm_client:
        session = ChatSession(llm_client)
        try:
            await chat_loop(session)
        except KeyboardInterrupt:
            logging.info("Keyboard interrupt received, shutting down...")
        finally:
            session.start_new_conversation()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
