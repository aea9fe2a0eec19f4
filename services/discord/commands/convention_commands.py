"""
Discord Convention Commands

Registers the `漫展` command group and its subcommands on a discord.py Bot.

Responsibilities:
- Register prefix commands (no runtime ownership)
- Wrap each invocation in a DiscordChatSession
- Delegate all behavior to ConventionCommandHandler

IMPORTANT:
- This module does NOT start the Discord client
- Image commands are only registered when enabled in configuration
"""

from __future__ import annotations

from typing import Optional

from discord.ext import commands

from services.discord.commands.conventions import ConventionCommandHandler
from services.discord.session import DiscordChatSession
from shared.config.conventions import RenderConfig
from shared.logging.logger import get_logger

log = get_logger("discord.commands.conventions.setup", runtime="discord")

GROUP_NAME = "漫展"


# --------------------------------------------------
# Command Registration Helper
# --------------------------------------------------

def setup(
    bot: commands.Bot,
    *,
    handler: ConventionCommandHandler,
    render: RenderConfig,
):
    """
    Register the convention command group.
    Called by the Discord client while building the bot.
    """

    def _session(ctx: commands.Context) -> DiscordChatSession:
        return DiscordChatSession(bot, ctx.message)

    @commands.group(name=GROUP_NAME, invoke_without_command=True)
    async def conventions(ctx: commands.Context):
        """漫展查询"""
        await ctx.send_help(ctx.command)

    @conventions.command(name="查询")
    async def query(ctx: commands.Context, *, keyword: Optional[str] = None):
        """按关键词查询漫展"""
        await handler.cmd_query(_session(ctx), keyword)

    @conventions.command(name="一键查询")
    async def batch_query(ctx: commands.Context):
        """查询所有订阅关键词的漫展"""
        await handler.cmd_batch_query(_session(ctx))

    @conventions.command(name="订阅")
    async def subscribe(ctx: commands.Context, *, keyword: Optional[str] = None):
        """订阅关键词"""
        await handler.cmd_subscribe(_session(ctx), keyword)

    @conventions.command(name="取消订阅")
    async def unsubscribe(ctx: commands.Context, *, keyword: Optional[str] = None):
        """取消订阅关键词，不带参数则取消全部"""
        await handler.cmd_unsubscribe(_session(ctx), keyword)

    @conventions.command(name="订阅列表")
    async def list_subscriptions(ctx: commands.Context):
        """查看订阅的关键词"""
        await handler.cmd_list_subscriptions(_session(ctx))

    registered = ["查询", "一键查询", "订阅", "取消订阅", "订阅列表"]

    if render.enable_image_query:

        @conventions.command(name="图片查询", aliases=["tpcx"])
        async def image_query(ctx: commands.Context, *, keyword: Optional[str] = None):
            """按关键词查询漫展并以图片返回"""
            await handler.cmd_image_query(_session(ctx), keyword)

        registered.append("图片查询")

    if render.enable_image_batch_query:

        @conventions.command(name="一键图片查询", aliases=["yjtpcx"])
        async def image_batch_query(ctx: commands.Context):
            """以图片返回所有订阅关键词的漫展"""
            await handler.cmd_image_batch_query(_session(ctx))

        registered.append("一键图片查询")

    bot.add_command(conventions)
    log.info(f"Convention commands registered: {', '.join(registered)}")
