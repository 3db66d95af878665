from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import discord

from .stats import StatType, render_name

LOGGER = logging.getLogger(__name__)

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_REMOVED = "removed"
ACTION_UNCHANGED = "unchanged"

COUNTER_POSITION = 0
AUDIT_REASON = "Server stats counter"


@dataclass
class DesiredStat:
    active: bool
    custom_name: str
    category_id: Optional[int] = None
    channel_id: Optional[int] = None


@dataclass
class ReconcileResult:
    stat_type: StatType
    channel_id: Optional[int]
    action: str = ACTION_UNCHANGED
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


async def resolve_channel(guild: Any, channel_id: Optional[int]) -> Any | None:
    """Look up a stored channel id, treating deleted channels as absent."""
    if not channel_id:
        return None
    channel = guild.get_channel(channel_id)
    if channel is not None:
        return channel
    try:
        return await guild.fetch_channel(channel_id)
    except discord.NotFound:
        LOGGER.debug("Channel %s no longer exists in guild %s", channel_id, guild.id)
    except discord.HTTPException as exc:
        LOGGER.warning(
            "Failed fetching channel %s in guild %s: %s", channel_id, guild.id, exc
        )
    return None


def resolve_category(guild: Any, category_id: Optional[int]) -> Any | None:
    if not category_id:
        return None
    category = guild.get_channel(category_id)
    if category is None:
        LOGGER.warning(
            "Category %s missing in guild %s; using top level",
            category_id,
            guild.id,
        )
    return category


async def reconcile(
    guild: Any, stat_type: StatType, desired: DesiredStat, value: str
) -> ReconcileResult:
    channel = await resolve_channel(guild, desired.channel_id)
    rendered = render_name(desired.custom_name, value)
    result = ReconcileResult(stat_type=stat_type, channel_id=None)

    if channel is None and desired.active:
        category = resolve_category(guild, desired.category_id)
        overwrites = {guild.default_role: discord.PermissionOverwrite(connect=False)}
        try:
            channel = await guild.create_voice_channel(
                rendered,
                category=category,
                position=COUNTER_POSITION,
                overwrites=overwrites,
                reason=AUDIT_REASON,
            )
        except discord.HTTPException as exc:
            LOGGER.warning(
                "Failed creating %s channel in guild %s: %s",
                stat_type.value,
                guild.id,
                exc,
            )
            result.errors.append(f"create: {exc}")
            return result
        LOGGER.info(
            "Created %s counter channel %s in guild %s",
            stat_type.value,
            channel.id,
            guild.id,
        )
        result.channel_id = channel.id
        result.action = ACTION_CREATED
        return result

    if channel is not None and not desired.active:
        result.action = ACTION_REMOVED
        try:
            await channel.delete(reason=AUDIT_REASON)
            LOGGER.info(
                "Deleted %s counter channel %s in guild %s",
                stat_type.value,
                channel.id,
                guild.id,
            )
        except discord.HTTPException as exc:
            LOGGER.warning(
                "Failed deleting %s channel %s in guild %s: %s",
                stat_type.value,
                channel.id,
                guild.id,
                exc,
            )
            result.errors.append(f"delete: {exc}")
        return result

    if channel is None:
        return result

    result.channel_id = channel.id
    result.action = ACTION_UPDATED
    category = resolve_category(guild, desired.category_id)
    target_category_id = category.id if category is not None else None
    if getattr(channel, "category_id", None) != target_category_id:
        try:
            await channel.edit(category=category, reason=AUDIT_REASON)
        except discord.HTTPException as exc:
            LOGGER.warning(
                "Failed moving %s channel %s in guild %s: %s",
                stat_type.value,
                channel.id,
                guild.id,
                exc,
            )
            result.errors.append(f"move: {exc}")
    if channel.name != rendered:
        try:
            await channel.edit(name=rendered, reason=AUDIT_REASON)
        except discord.HTTPException as exc:
            LOGGER.warning(
                "Failed renaming %s channel %s in guild %s: %s",
                stat_type.value,
                channel.id,
                guild.id,
                exc,
            )
            result.errors.append(f"rename: {exc}")
    return result
