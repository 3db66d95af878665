import asyncio
from types import SimpleNamespace
from typing import List, Optional

import pytest

from serverstats.bot import BotConfig, StatsBot, setup_commands
from serverstats.stats import StatType
from serverstats.store import close_store, list_stat_configs, upsert_stat_config
from tests.fakes import FakeMember, make_guild


class CommandResponse:
    def __init__(self):
        self.message: Optional[str] = None
        self.ephemeral = None
        self.deferred = False

    def is_done(self):
        return self.message is not None or self.deferred

    async def send_message(self, content, ephemeral=False, **kwargs):
        self.message = content
        self.ephemeral = ephemeral

    async def defer(self, ephemeral=False, thinking=False):
        self.deferred = True
        self.ephemeral = ephemeral


class CommandFollowup:
    def __init__(self):
        self.messages: List[str] = []
        self.embeds: List[object] = []
        self.ephemeral = None

    async def send(self, content=None, ephemeral=False, embed=None, **kwargs):
        if content is not None:
            self.messages.append(content)
        if embed is not None:
            self.embeds.append(embed)
        self.ephemeral = ephemeral


class CommandInteraction:
    def __init__(self, guild, user):
        self.guild = guild
        self.user = user
        self.response = CommandResponse()
        self.followup = CommandFollowup()


@pytest.fixture
def bot(tmp_path):
    config = BotConfig(
        token="dummy",
        log_level="INFO",
        database_path=str(tmp_path / "serverstats.db"),
    )
    instance = StatsBot(config)
    yield instance
    close_store()


def capture_subcommands(bot):
    group = asyncio.run(setup_commands(bot))
    return {cmd.name: cmd.callback for cmd in group.commands}


def make_interaction(guild, manage_channels=True):
    user = FakeMember(
        id=42, guild_permissions=SimpleNamespace(manage_channels=manage_channels)
    )
    return CommandInteraction(guild=guild, user=user)


def test_group_registers_four_subcommands(bot):
    commands = capture_subcommands(bot)

    assert set(commands) == {"setup", "view", "delete", "clear"}
    assert bot.tree.get_command("setup-serverstats") is not None


def test_setup_command_reports_and_queues_refresh(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()
    interaction = make_interaction(guild)

    asyncio.run(commands["setup"](interaction, "all", True))

    assert interaction.response.deferred
    assert interaction.followup.ephemeral is True
    message = interaction.followup.messages[0]
    assert message.startswith("✅ **All Stats** are now **enabled**.")
    assert "📊 Created channels for: members, bots" in message
    assert len(list_stat_configs(guild.id)) == 7
    assert bot.refresh_queue.get_nowait() == guild.id


def test_setup_command_requires_manage_channels(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()
    interaction = make_interaction(guild, manage_channels=False)

    asyncio.run(commands["setup"](interaction, "members", True))

    assert "Manage Channels" in interaction.response.message
    assert interaction.response.ephemeral is True
    assert guild.created == []
    assert list_stat_configs(guild.id) == []


def test_setup_command_requires_bot_permission(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()
    guild.me.guild_permissions = SimpleNamespace(manage_channels=False)
    interaction = make_interaction(guild)

    asyncio.run(commands["clear"](interaction))

    assert interaction.response.message == "❌ I need `Manage Channels` permission!"
    assert not interaction.response.deferred


def test_command_outside_guild_is_rejected(bot):
    commands = capture_subcommands(bot)
    interaction = make_interaction(None)

    asyncio.run(commands["view"](interaction))

    assert interaction.response.message == "Commands must be used inside a guild."


def test_view_command_empty_and_populated(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()

    interaction = make_interaction(guild)
    asyncio.run(commands["view"](interaction))
    assert interaction.followup.messages == [
        "📊 No server stats are currently set up."
    ]

    upsert_stat_config(guild.id, StatType.BOTS, None, None, True, "{count}")
    interaction = make_interaction(guild)
    asyncio.run(commands["view"](interaction))
    assert interaction.followup.messages == []
    assert interaction.followup.embeds[0].fields[0].name == "1. bots"


def test_delete_command_reports_invalid_index(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()
    upsert_stat_config(guild.id, StatType.BOTS, None, None, True, "{count}")
    interaction = make_interaction(guild)

    asyncio.run(commands["delete"](interaction, 2))

    assert interaction.followup.messages == ["❌ Invalid index provided."]
    assert len(list_stat_configs(guild.id)) == 1


def test_clear_command_summarises(bot):
    commands = capture_subcommands(bot)
    guild = make_guild()
    asyncio.run(commands["setup"](make_interaction(guild), "roles", True))
    interaction = make_interaction(guild)

    asyncio.run(commands["clear"](interaction))

    assert interaction.followup.messages == [
        "✅ All server stats configurations have been deleted.\n"
        "🗑️ Deleted 1 stat channels."
    ]
    assert list_stat_configs(guild.id) == []
