"""
Discord Command Package

Registration entrypoint for every Discord command surface.

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from discord.ext import commands

from shared.config.conventions import RenderConfig
from shared.logging.logger import get_logger

from services.discord.commands import convention_commands
from services.discord.commands.conventions import ConventionCommandHandler

log = get_logger("discord.commands", runtime="discord")


def setup(
    bot: commands.Bot,
    *,
    handler: ConventionCommandHandler,
    render: RenderConfig,
):
    """
    Register all Discord command surfaces.

    This function is called exactly once by the Discord client
    during startup.
    """

    convention_commands.setup(bot, handler=handler, render=render)

    log.info("Discord command surfaces initialized")
