"""
Chat session abstraction.

Command handlers talk to a ChatSession instead of discord.py objects so they
stay testable. DiscordChatSession is the only production implementation.
"""

from __future__ import annotations

import asyncio
import io
from typing import Dict, List, Optional, Protocol

import discord
from discord.ext import commands

from shared.logging.logger import get_logger

log = get_logger("discord.session", runtime="discord")

DISCORD_MESSAGE_LIMIT = 2000


class ChatSession(Protocol):
    user_id: str
    channel_key: str

    async def send_text(self, text: str, *, quote: bool = False) -> Optional[str]:
        ...

    async def send_image(
        self,
        data: bytes,
        *,
        filename: str,
        caption: str = "",
        quote: bool = False,
    ) -> Optional[str]:
        ...

    async def delete_message(self, message_id: str) -> None:
        ...

    async def prompt(self, timeout: float) -> Optional[str]:
        ...


def channel_key_for(message: discord.Message) -> str:
    """Guild channels key by channel id; DMs by the user."""
    if message.guild is None:
        return f"private:{message.author.id}"
    return str(message.channel.id)


def split_message(text: str, limit: int = DISCORD_MESSAGE_LIMIT) -> List[str]:
    """
    Split text into chunks of at most `limit` characters.

    Breaks fall on line boundaries; a single line longer than the limit is
    cut hard.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current: Optional[str] = None
    for line in text.split("\n"):
        while len(line) > limit:
            if current is not None:
                chunks.append(current)
                current = None
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = line if current is None else f"{current}\n{line}"
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current is not None:
        chunks.append(current)
    return [chunk for chunk in chunks if chunk]


class DiscordChatSession:
    """
    Session bound to the message that triggered a command.
    """

    def __init__(self, bot: commands.Bot, message: discord.Message):
        self._bot = bot
        self._message = message
        self._sent: Dict[str, discord.Message] = {}

        self.user_id = str(message.author.id)
        self.channel_key = channel_key_for(message)

    # --------------------------------------------------

    async def send_text(self, text: str, *, quote: bool = False) -> Optional[str]:
        """Send text, split to the Discord limit. Returns the first message id."""
        first_id: Optional[str] = None
        for i, chunk in enumerate(split_message(text)):
            if quote and i == 0:
                sent = await self._message.reply(chunk, mention_author=False)
            else:
                sent = await self._message.channel.send(chunk)
            key = self._remember(sent)
            if first_id is None:
                first_id = key
        return first_id

    async def send_image(
        self,
        data: bytes,
        *,
        filename: str,
        caption: str = "",
        quote: bool = False,
    ) -> Optional[str]:
        file = discord.File(io.BytesIO(data), filename=filename)
        if quote:
            sent = await self._message.reply(
                caption or None, file=file, mention_author=False
            )
        else:
            sent = await self._message.channel.send(caption or None, file=file)
        return self._remember(sent)

    async def delete_message(self, message_id: str) -> None:
        sent = self._sent.pop(message_id, None)
        if sent is None:
            return
        await sent.delete()

    async def prompt(self, timeout: float) -> Optional[str]:
        author_id = self._message.author.id
        channel_id = self._message.channel.id

        def _check(m: discord.Message) -> bool:
            return m.author.id == author_id and m.channel.id == channel_id

        try:
            reply = await self._bot.wait_for("message", check=_check, timeout=timeout)
        except asyncio.TimeoutError:
            log.debug(f"[{self.user_id}] Prompt timed out after {timeout}s")
            return None
        return reply.content

    # --------------------------------------------------

    def _remember(self, sent: Optional[discord.Message]) -> Optional[str]:
        if sent is None:
            return None
        key = str(sent.id)
        self._sent[key] = sent
        return key
