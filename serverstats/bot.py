from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .commands import (
    ALL_STATS,
    ALL_STATS_LABEL,
    DeleteRequest,
    SetupRequest,
    ValidationError,
    build_view_embed,
    format_clear_report,
    format_delete_report,
    format_setup_report,
    refresh_guild,
    run_clear,
    run_delete,
    run_setup,
    run_view,
)
from .config import BotConfig, load_config
from .stats import StatType
from .store import close_store, init_store

# Default to INFO until the configured level is applied at startup
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s"
)
LOGGER = logging.getLogger(__name__)

COMMAND_NAME = "setup-serverstats"
STAT_TYPE_CHOICES = [app_commands.Choice(name=ALL_STATS_LABEL, value=ALL_STATS)] + [
    app_commands.Choice(name=stat_type.value, value=stat_type.value)
    for stat_type in StatType
]


def guild_label(guild: Any) -> str:
    return f"{guild.name} ({guild.id})" if guild else "unknown-guild"


class StatsBot(commands.Bot):
    def __init__(self, config: BotConfig):
        intents = discord.Intents.default()
        intents.members = True
        intents.guilds = True
        super().__init__(command_prefix="!", intents=intents)
        self.config = config
        init_store(config.database_path)
        self.refresh_queue: asyncio.Queue[int] = asyncio.Queue()
        self.refresh_worker_task: asyncio.Task[None] | None = None

    async def close(self) -> None:
        if self.refresh_worker_task:
            self.refresh_worker_task.cancel()
            try:
                await self.refresh_worker_task
            except asyncio.CancelledError:
                pass
        await super().close()
        close_store()

    async def setup_hook(self) -> None:
        await self.tree.sync()
        if self.refresh_worker_task is None:
            self.refresh_worker_task = self.loop.create_task(self._refresh_worker())

    async def on_ready(self):
        LOGGER.info("Bot ready as %s in %s guilds", self.user, len(self.guilds))

    async def on_guild_join(self, guild: discord.Guild):
        LOGGER.info("New guild joined: %s", guild_label(guild))

    def trigger_refresh(self, guild_id: int):
        self.refresh_queue.put_nowait(guild_id)

    async def _refresh_worker(self):
        await self.wait_until_ready()
        while not self.is_closed():
            guild_id = await self.refresh_queue.get()
            guild = self.get_guild(guild_id)
            if not guild:
                continue
            try:
                renamed = await refresh_guild(
                    guild, fallback_locale=self.config.default_locale
                )
                LOGGER.debug(
                    "Refreshed stats for %s; renamed %s channels",
                    guild_label(guild),
                    renamed,
                )
            except Exception as exc:
                LOGGER.exception(
                    "Stats refresh failed for guild %s: %s", guild_id, exc
                )


def _has_manage_channels(member: Any) -> bool:
    perms = getattr(member, "guild_permissions", None)
    return bool(perms and perms.manage_channels)


async def require_manage_channels(
    interaction: discord.Interaction,
) -> Optional[discord.Guild]:
    guild = interaction.guild
    if guild is None:
        await interaction.response.send_message(
            "Commands must be used inside a guild.", ephemeral=True
        )
        return None
    if not _has_manage_channels(interaction.user):
        await interaction.response.send_message(
            "You need the `Manage Channels` permission to use this command.",
            ephemeral=True,
        )
        return None
    if not _has_manage_channels(guild.me):
        await interaction.response.send_message(
            "❌ I need `Manage Channels` permission!", ephemeral=True
        )
        return None
    await interaction.response.defer(ephemeral=True, thinking=True)
    return guild


# Command registrations
async def setup_commands(bot: StatsBot) -> app_commands.Group:
    tree = bot.tree
    group = app_commands.Group(
        name=COMMAND_NAME,
        description="Manage server statistics channels",
        default_permissions=discord.Permissions(manage_channels=True),
        guild_only=True,
    )

    @bot.listen("on_interaction")
    async def log_app_command(interaction: discord.Interaction):
        if interaction.type != discord.InteractionType.application_command:
            return
        cmd = interaction.command
        data = getattr(interaction, "namespace", None)
        try:
            payload = vars(data) if data else {}
        except TypeError:
            payload = str(data)
        LOGGER.info(
            "Slash command %s by %s in %s with options %s",
            cmd.qualified_name if cmd else "unknown",
            interaction.user,
            guild_label(interaction.guild),
            payload,
        )

    @tree.error
    async def on_app_command_error(
        interaction: discord.Interaction, error: app_commands.AppCommandError
    ):
        if isinstance(error, app_commands.CheckFailure):
            if not interaction.response.is_done():
                await interaction.response.send_message(
                    "You do not have permission to use this command.",
                    ephemeral=True,
                )
            return
        LOGGER.exception("App command error: %s", error)
        message = f"Command failed: {error}"
        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except discord.HTTPException as exc:
            LOGGER.warning("Failed sending error response for command: %s", exc)

    @group.command(name="setup", description="Configure server stats channels")
    @app_commands.describe(
        type="Select which stat to track",
        active="Enable or disable this stat",
        category="Select a category",
        name="Custom name (use {count})",
    )
    @app_commands.choices(type=STAT_TYPE_CHOICES)
    async def setup(
        interaction: discord.Interaction,
        type: str,
        active: bool,
        category: Optional[discord.CategoryChannel] = None,
        name: Optional[str] = None,
    ):
        guild = await require_manage_channels(interaction)
        if not guild:
            return
        try:
            request = SetupRequest.from_options(
                type, active, category.id if category else None, name
            )
        except ValidationError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        report = await run_setup(
            guild,
            request,
            notify=bot.trigger_refresh,
            fallback_locale=bot.config.default_locale,
        )
        await interaction.followup.send(format_setup_report(report), ephemeral=True)

    @group.command(name="view", description="View the current server stats setup")
    async def view(interaction: discord.Interaction):
        guild = await require_manage_channels(interaction)
        if not guild:
            return
        stats = run_view(guild.id)
        if not stats:
            await interaction.followup.send(
                "📊 No server stats are currently set up.", ephemeral=True
            )
            return
        await interaction.followup.send(
            embed=build_view_embed(guild.id, stats), ephemeral=True
        )

    @group.command(name="delete", description="Delete a specific server stat entry")
    @app_commands.describe(
        index=f"Index of the stat to delete (from /{COMMAND_NAME} view)"
    )
    async def delete(interaction: discord.Interaction, index: int):
        guild = await require_manage_channels(interaction)
        if not guild:
            return
        try:
            report = await run_delete(guild, DeleteRequest(index=index))
        except ValidationError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        await interaction.followup.send(format_delete_report(report), ephemeral=True)

    @group.command(name="clear", description="Delete all server stats setups")
    async def clear(interaction: discord.Interaction):
        guild = await require_manage_channels(interaction)
        if not guild:
            return
        report = await run_clear(guild)
        await interaction.followup.send(format_clear_report(report), ephemeral=True)

    tree.add_command(group)
    return group


async def main():
    bot_config = load_config()
    logging.getLogger().setLevel(bot_config.log_level)
    LOGGER.setLevel(bot_config.log_level)
    bot = StatsBot(bot_config)
    await setup_commands(bot)
    async with bot:
        await bot.start(bot_config.token)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
