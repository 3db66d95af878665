from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import discord

from .reconciler import (
    ACTION_CREATED,
    ACTION_REMOVED,
    ACTION_UPDATED,
    AUDIT_REASON,
    DesiredStat,
    reconcile,
    resolve_channel,
)
from .stats import (
    DEFAULT_LOCALE,
    StatType,
    default_name_format,
    fetch_snapshot,
    render_name,
    snapshot_value,
)
from .store import (
    StatConfig,
    delete_guild_stat_configs,
    delete_stat_config,
    get_stat_config,
    list_stat_configs,
    upsert_stat_config,
)

LOGGER = logging.getLogger(__name__)

ALL_STATS = "all"
ALL_STATS_LABEL = "All Stats"


class ValidationError(ValueError):
    pass


@dataclass(frozen=True)
class SetupRequest:
    stat_types: tuple[StatType, ...]
    active: bool
    label: str
    category_id: Optional[int] = None
    custom_name: Optional[str] = None

    @classmethod
    def from_options(
        cls,
        stat_type: str,
        active: bool,
        category_id: Optional[int] = None,
        custom_name: Optional[str] = None,
    ) -> "SetupRequest":
        key = (stat_type or "").strip().lower()
        if key == ALL_STATS:
            types = tuple(StatType)
            label = ALL_STATS_LABEL
        else:
            try:
                types = (StatType(key),)
            except ValueError:
                raise ValidationError(f"Unknown stat type '{stat_type}'.") from None
            label = key
        name = custom_name.strip() if custom_name else None
        return cls(
            stat_types=types,
            active=bool(active),
            label=label,
            category_id=category_id,
            custom_name=name or None,
        )


@dataclass(frozen=True)
class DeleteRequest:
    index: int


@dataclass
class SetupReport:
    label: str
    active: bool
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class DeleteReport:
    stat_type: str
    channel_id: Optional[int]
    channel_delete_failed: bool = False


@dataclass
class ClearReport:
    records_deleted: int = 0
    channels_deleted: int = 0
    channels_failed: int = 0


async def run_setup(
    guild: Any,
    request: SetupRequest,
    notify: Callable[[int], Any] | None = None,
    fallback_locale: str = DEFAULT_LOCALE,
) -> SetupReport:
    report = SetupReport(label=request.label, active=request.active)
    snapshot = await fetch_snapshot(guild, fallback_locale=fallback_locale)

    for stat_type in request.stat_types:
        try:
            name_format = request.custom_name or default_name_format(stat_type)
            existing = get_stat_config(guild.id, stat_type)
            desired = DesiredStat(
                active=request.active,
                custom_name=name_format,
                category_id=request.category_id,
                channel_id=existing.channel_id if existing else None,
            )
            result = await reconcile(
                guild, stat_type, desired, snapshot_value(snapshot, stat_type)
            )
            upsert_stat_config(
                guild.id,
                stat_type,
                channel_id=result.channel_id,
                category_id=request.category_id,
                active=request.active,
                custom_name=name_format,
            )
        except Exception as exc:
            LOGGER.exception(
                "Error setting up %s stat for guild %s: %s",
                stat_type.value,
                guild.id,
                exc,
            )
            report.errors.append(stat_type.value)
            continue

        if not result.ok:
            report.errors.append(stat_type.value)
        elif result.action == ACTION_CREATED:
            report.created.append(stat_type.value)
        elif result.action == ACTION_UPDATED:
            report.updated.append(stat_type.value)
        elif result.action == ACTION_REMOVED:
            report.removed.append(stat_type.value)

    LOGGER.info(
        "Stats setup guild=%s types=%s active=%s created=%s updated=%s removed=%s errors=%s",
        guild.id,
        request.label,
        request.active,
        len(report.created),
        len(report.updated),
        len(report.removed),
        len(report.errors),
    )
    if notify is not None:
        notify(guild.id)
    return report


def run_view(guild_id: int) -> List[StatConfig]:
    return list_stat_configs(guild_id)


async def run_delete(guild: Any, request: DeleteRequest) -> DeleteReport:
    stats = list_stat_configs(guild.id)
    if request.index < 1 or request.index > len(stats):
        raise ValidationError("Invalid index provided.")

    record = stats[request.index - 1]
    delete_stat_config(record.id)
    report = DeleteReport(stat_type=record.stat_type, channel_id=record.channel_id)
    LOGGER.info(
        "Deleted %s stat config for guild %s", record.stat_type, guild.id
    )

    if not record.channel_id:
        return report
    try:
        channel = await resolve_channel(guild, record.channel_id)
        if channel is not None:
            await channel.delete(reason=AUDIT_REASON)
    except Exception as exc:
        LOGGER.warning(
            "Failed to delete channel for stat %s in guild %s: %s",
            record.stat_type,
            guild.id,
            exc,
        )
        report.channel_delete_failed = True
    return report


async def run_clear(guild: Any) -> ClearReport:
    report = ClearReport()
    for record in list_stat_configs(guild.id):
        if not record.channel_id:
            continue
        try:
            channel = await resolve_channel(guild, record.channel_id)
            if channel is None:
                LOGGER.warning(
                    "Channel %s for stat %s in guild %s no longer exists",
                    record.channel_id,
                    record.stat_type,
                    guild.id,
                )
                report.channels_failed += 1
                continue
            await channel.delete(reason=AUDIT_REASON)
            report.channels_deleted += 1
        except Exception as exc:
            LOGGER.warning(
                "Failed to delete channel for stat %s in guild %s: %s",
                record.stat_type,
                guild.id,
                exc,
            )
            report.channels_failed += 1

    report.records_deleted = delete_guild_stat_configs(guild.id)
    LOGGER.info(
        "Cleared stats for guild %s: records=%s channels_deleted=%s channels_failed=%s",
        guild.id,
        report.records_deleted,
        report.channels_deleted,
        report.channels_failed,
    )
    return report


def format_setup_report(report: SetupReport) -> str:
    state = "enabled" if report.active else "disabled"
    lines = [f"✅ **{report.label}** are now **{state}**."]
    if report.created:
        lines.append(f"📊 Created channels for: {', '.join(report.created)}")
    if report.updated:
        lines.append(f"🔄 Updated settings for: {', '.join(report.updated)}")
    if report.removed:
        lines.append(f"🗑️ Removed channels for: {', '.join(report.removed)}")
    if report.errors:
        lines.append(f"❌ Errors with: {', '.join(report.errors)}")
    return "\n".join(lines)


def format_delete_report(report: DeleteReport) -> str:
    if report.channel_delete_failed:
        return (
            f"✅ Deleted **{report.stat_type}** from database, but failed to delete "
            f"channel <#{report.channel_id}>. You may need to delete it manually."
        )
    return f"✅ Successfully deleted **{report.stat_type}** server stat."


def format_clear_report(report: ClearReport) -> str:
    lines = ["✅ All server stats configurations have been deleted."]
    if report.channels_deleted > 0:
        lines.append(f"🗑️ Deleted {report.channels_deleted} stat channels.")
    if report.channels_failed > 0:
        lines.append(
            f"⚠️ Failed to delete {report.channels_failed} channels. "
            "You may need to remove them manually."
        )
    return "\n".join(lines)


def _mention(channel_id: Optional[int]) -> str:
    return f"<#{channel_id}>" if channel_id else "None"


def build_view_embed(guild_id: int, stats: List[StatConfig]) -> discord.Embed:
    embed = discord.Embed(
        title="📊 Server Stats Configuration",
        description="Current server statistics tracking setup",
        color=discord.Color.blue(),
        timestamp=discord.utils.utcnow(),
    )
    for i, stat in enumerate(stats, start=1):
        embed.add_field(
            name=f"{i}. {stat.stat_type}",
            value="\n".join(
                [
                    f"**Channel:** {_mention(stat.channel_id)}",
                    f"**Status:** {'✅ Active' if stat.active else '❌ Inactive'}",
                    f"**Format:** `{stat.custom_name}`",
                    f"**Category:** {_mention(stat.category_id)}",
                ]
            ),
            inline=False,
        )
    embed.set_footer(text=f"Server ID: {guild_id}")
    return embed


async def refresh_guild(guild: Any, fallback_locale: str = DEFAULT_LOCALE) -> int:
    """Rename active counter channels to match current guild stats."""
    snapshot = await fetch_snapshot(guild, fallback_locale=fallback_locale)
    if snapshot is None:
        return 0
    renamed = 0
    for record in list_stat_configs(guild.id):
        if not record.active or not record.channel_id:
            continue
        channel = await resolve_channel(guild, record.channel_id)
        if channel is None:
            continue
        rendered = render_name(record.custom_name, snapshot.value_for(record.type))
        if channel.name == rendered:
            continue
        try:
            await channel.edit(name=rendered, reason=AUDIT_REASON)
            renamed += 1
        except discord.HTTPException as exc:
            LOGGER.warning(
                "Failed refreshing %s channel %s in guild %s: %s",
                record.stat_type,
                channel.id,
                guild.id,
                exc,
            )
    return renamed
