"""
Discord Client

This module owns the Discord connection itself and the process-wide
convention components wired behind it.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- build the search client, stores, selection cache and renderer
- intercept plain messages that answer a pending selection
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST NOT create its own event loop
- The headless browser is started only when an image command is enabled
"""

from __future__ import annotations

import os
import asyncio
from typing import Optional

import discord
from discord.ext import commands

from dotenv import load_dotenv

from core.orchestrator import QueryOrchestrator
from core.selection import SelectionCache
from services.allcpp.api.search import ConventionSearchClient
from services.discord import commands as command_surfaces
from services.discord.commands.conventions import ConventionCommandHandler
from services.discord.logging import CommandLogAdapter
from services.discord.session import DiscordChatSession
from services.render.browser import BrowserService
from services.render.pipeline import ConventionRenderer
from shared.config.conventions import ConventionConfig
from shared.logging.logger import get_logger
from shared.storage.subscriptions import SubscriptionStore

TOKEN_ENV = "CONVENTION_BOT_TOKEN"

log = get_logger("discord.client", runtime="discord")


async def route_message(
    bot: commands.Bot,
    handler: ConventionCommandHandler,
    message: discord.Message,
) -> None:
    """
    Decide who answers an incoming message.

    Order:
    - a valid command always runs, even over a pending selection
    - a user answering a confirmation prompt is left to that prompt
    - a pending selection takes any other text from its user
    - everything else goes through normal command processing
    """
    if message.author.bot:
        return

    ctx = await bot.get_context(message)
    if ctx.valid:
        await bot.invoke(ctx)
        return

    user_id = str(message.author.id)
    if handler.is_awaiting_reply(user_id):
        return

    if handler.has_pending_selection(user_id):
        session = DiscordChatSession(bot, message)
        try:
            if await handler.handle_followup(session, message.content):
                return
        except Exception as e:
            log.error(f"[{user_id}] Follow-up handling failed: {e}")
            return

    await bot.process_commands(message)


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.

    This class provides:
    - async run() entrypoint
    - async shutdown()
    - lifecycle event logging
    - the follow-up message interceptor
    """

    def __init__(
        self,
        config: ConventionConfig,
        *,
        subscriptions: Optional[SubscriptionStore] = None,
    ):
        load_dotenv()

        token = os.getenv(TOKEN_ENV)
        if not token:
            raise RuntimeError(f"{TOKEN_ENV} not found in environment")

        log.info(f"Discord bot token present: {bool(token)}")

        self._token: str = token
        self._config = config
        self._bot: Optional[commands.Bot] = None

        # --------------------------------------------------
        # Shared services (singletons for this process)
        # --------------------------------------------------
        render = config.render
        self.search = ConventionSearchClient(config.api_url)
        self.subscriptions = subscriptions or SubscriptionStore()
        self.selections = SelectionCache()
        self.logger = CommandLogAdapter()

        wants_images = render.enable_image_query or render.enable_image_batch_query
        self.browser: Optional[BrowserService] = (
            BrowserService() if wants_images and render.browser_enabled else None
        )

        self.renderer = ConventionRenderer(
            browser=self.browser,
            covers=self.search,
            settings=render,
        )
        self.handler = ConventionCommandHandler(
            config=config,
            orchestrator=QueryOrchestrator(
                search=self.search,
                subscriptions=self.subscriptions,
            ),
            subscriptions=self.subscriptions,
            selections=self.selections,
            renderer=self.renderer,
            covers=self.search,
            logger=self.logger,
        )

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        """
        Construct the discord.py Bot instance.

        NOTE:
        - Commands are registered here
        - Plain replies to a numbered list are routed before command parsing
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.messages = True
        intents.message_content = True  # prefix commands + numbered replies

        bot = commands.Bot(
            command_prefix=self._config.command_prefix,
            intents=intents,
        )

        # --------------------------------------------------
        # Command Registration
        # --------------------------------------------------

        command_surfaces.setup(
            bot,
            handler=self.handler,
            render=self._config.render,
        )

        # --------------------------------------------------
        # Follow-up interception
        # --------------------------------------------------

        @bot.event
        async def on_message(message: discord.Message):
            await route_message(bot, self.handler, message)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        @bot.event
        async def on_command_error(ctx: commands.Context, error: commands.CommandError):
            if isinstance(error, commands.CommandNotFound):
                return
            log.error(f"Command {ctx.command} failed: {error}")

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        if self.browser is not None:
            await self.browser.start()
        else:
            log.info("Image commands disabled; headless browser not started")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection and release the browser.
        """
        self.selections.clear_all()

        if self._bot:
            log.info("Closing Discord connection")
            try:
                await self._bot.close()
            except Exception as e:
                log.warning(f"Discord close error ignored: {e}")

        if self.browser is not None:
            await self.browser.shutdown()

        try:
            await self.search.close()
        except Exception as e:
            log.warning(f"Search client close error ignored: {e}")

        self._bot = None
