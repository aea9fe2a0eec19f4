"""Tests for routing incoming Discord messages between commands and selections."""

from types import SimpleNamespace

import pytest

from core.orchestrator import QueryOrchestrator
from core.selection import SelectionCache
from services.discord.client import route_message
from services.discord.commands.conventions import (
    MSG_CLEARED,
    MSG_CONFIRM_CLEAR,
    ConventionCommandHandler,
)
from shared.config.conventions import ConventionConfig
from tests.conftest import FakeRenderer, FakeSearch, FakeSession


class FakeBot:
    def __init__(self, *, command: bool = False):
        self.command = command
        self.invoked = []
        self.processed = []

    async def get_context(self, message):
        return SimpleNamespace(valid=self.command, message=message)

    async def invoke(self, ctx):
        self.invoked.append(ctx.message.content)

    async def process_commands(self, message):
        self.processed.append(message.content)


class FakeHandler:
    def __init__(self, *, pending=(), awaiting=(), handled=True, failing=False):
        self.pending = set(pending)
        self.awaiting = set(awaiting)
        self.handled = handled
        self.failing = failing
        self.followups = []

    def is_awaiting_reply(self, user_id):
        return user_id in self.awaiting

    def has_pending_selection(self, user_id):
        return user_id in self.pending

    async def handle_followup(self, session, text):
        self.followups.append((session.user_id, session.channel_key, text))
        if self.failing:
            raise RuntimeError("send failed")
        return self.handled


class FakeChannel:
    def __init__(self):
        self.id = 7
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append(content)
        return SimpleNamespace(id=100 + len(self.sent))


def _message(content, *, author_id=42, bot=False):
    return SimpleNamespace(
        content=content,
        author=SimpleNamespace(id=author_id, bot=bot),
        guild=None,
        channel=FakeChannel(),
    )


class TestRouteMessage:
    @pytest.mark.asyncio
    async def test_command_wins_over_pending_selection(self):
        bot = FakeBot(command=True)
        handler = FakeHandler(pending={"42"})

        await route_message(bot, handler, _message("!漫展 查询 上海"))

        assert bot.invoked == ["!漫展 查询 上海"]
        assert handler.followups == []
        assert bot.processed == []

    @pytest.mark.asyncio
    async def test_pending_user_text_goes_to_selection(self):
        bot = FakeBot()
        handler = FakeHandler(pending={"42"})

        await route_message(bot, handler, _message("2"))

        assert handler.followups == [("42", "private:42", "2")]
        assert bot.processed == []

    @pytest.mark.asyncio
    async def test_nothing_pending_falls_through(self):
        bot = FakeBot()
        handler = FakeHandler(pending={"99"})

        await route_message(bot, handler, _message("2"))

        assert handler.followups == []
        assert bot.processed == ["2"]

    @pytest.mark.asyncio
    async def test_unhandled_followup_falls_through(self):
        bot = FakeBot()
        handler = FakeHandler(pending={"42"}, handled=False)

        await route_message(bot, handler, _message("2"))

        assert bot.processed == ["2"]

    @pytest.mark.asyncio
    async def test_followup_failure_is_contained(self):
        bot = FakeBot()
        handler = FakeHandler(pending={"42"}, failing=True)

        await route_message(bot, handler, _message("2"))

        assert bot.processed == []

    @pytest.mark.asyncio
    async def test_bot_messages_are_ignored(self):
        bot = FakeBot(command=True)
        handler = FakeHandler(pending={"42"})

        await route_message(bot, handler, _message("2", bot=True))

        assert bot.invoked == []
        assert handler.followups == []
        assert bot.processed == []

    @pytest.mark.asyncio
    async def test_confirmation_reply_skips_pending_selection(self):
        bot = FakeBot()
        handler = FakeHandler(pending={"42"}, awaiting={"42"})

        await route_message(bot, handler, _message("是"))

        assert handler.followups == []
        assert bot.processed == []


class PromptingSession(FakeSession):
    """Answers the confirmation prompt while recording handler state."""

    def __init__(self, handler, reply):
        super().__init__()
        self.handler = handler
        self.reply = reply
        self.awaiting_during_prompt = None

    async def prompt(self, timeout):
        self.awaiting_during_prompt = self.handler.is_awaiting_reply(self.user_id)
        return self.reply


class TestConfirmationPrompt:
    @pytest.mark.asyncio
    async def test_reply_is_not_read_as_selection(self, store, nanjing_records):
        selections = SelectionCache()
        handler = ConventionCommandHandler(
            config=ConventionConfig(add_quote=False),
            orchestrator=QueryOrchestrator(search=FakeSearch(), subscriptions=store),
            subscriptions=store,
            selections=selections,
            renderer=FakeRenderer(available=False),
            covers=FakeSearch(),
        )
        store.upsert(user_id="u1", channel_id="c1", keyword="南京")
        selections.start("u1", nanjing_records)
        session = PromptingSession(handler, "是")

        await handler.cmd_unsubscribe(session)

        assert session.awaiting_during_prompt is True
        assert session.texts == [MSG_CONFIRM_CLEAR, MSG_CLEARED]
        assert not handler.is_awaiting_reply("u1")
        assert handler.has_pending_selection("u1")

        selections.clear_all()
