"""Tests for the discord.py chat session and message splitting."""

from types import SimpleNamespace

import pytest

from services.discord.session import DISCORD_MESSAGE_LIMIT, DiscordChatSession, split_message


class FakeChannel:
    def __init__(self):
        self.id = 7
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append(content)
        return SimpleNamespace(id=len(self.sent))


class FakeMessage:
    def __init__(self):
        self.author = SimpleNamespace(id=42, bot=False)
        self.guild = SimpleNamespace(id=1)
        self.channel = FakeChannel()
        self.replies = []

    async def reply(self, content=None, **kwargs):
        self.replies.append(content)
        return SimpleNamespace(id=900 + len(self.replies))


def _listing(count):
    lines = [f"[{i}]\t 上海漫展{i:02d} - {'上海市浦东新区会展中心' * 4}" for i in range(1, count + 1)]
    return "找到以下漫展信息：\n" + "\n".join(lines)


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_long_listing_breaks_on_lines(self):
        text = _listing(80)

        chunks = split_message(text)

        assert len(chunks) > 1
        assert all(len(c) <= DISCORD_MESSAGE_LIMIT for c in chunks)
        assert "\n".join(chunks) == text

    def test_overlong_line_is_cut(self):
        chunks = split_message("x" * 4500)

        assert [len(c) for c in chunks] == [2000, 2000, 500]


class TestDiscordChatSession:
    @pytest.mark.asyncio
    async def test_quoted_long_text_replies_once_then_sends(self):
        message = FakeMessage()
        session = DiscordChatSession(bot=None, message=message)
        text = _listing(80)

        first_id = await session.send_text(text, quote=True)

        assert first_id == "901"
        assert len(message.replies) == 1
        assert message.channel.sent
        assert "\n".join(message.replies + message.channel.sent) == text
        assert session.channel_key == "7"
