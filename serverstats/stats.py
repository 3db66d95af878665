from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

import discord
from babel import Locale, UnknownLocaleError
from babel.dates import format_date

LOGGER = logging.getLogger(__name__)

DEFAULT_COUNT_VALUE = "0"
DEFAULT_LOCALE = "en-US"


class StatType(Enum):
    MEMBERS = "members"
    BOTS = "bots"
    TEXT_CHANNELS = "textchannels"
    VOICE_CHANNELS = "voicechannels"
    CATEGORIES = "categories"
    ROLES = "roles"
    DATE = "date"


DEFAULT_NAME_FORMATS = {
    StatType.MEMBERS: "👥 Members: {count}",
    StatType.BOTS: "🤖 Bots: {count}",
    StatType.TEXT_CHANNELS: "💬 Text Channels: {count}",
    StatType.VOICE_CHANNELS: "🔊 Voice Channels: {count}",
    StatType.CATEGORIES: "📁 Categories: {count}",
    StatType.ROLES: "🏷️ Roles: {count}",
    StatType.DATE: "📅 Date: {count}",
}


def default_name_format(stat_type: StatType) -> str:
    return DEFAULT_NAME_FORMATS.get(stat_type) or f"{{count}} {stat_type.value}"


def render_name(template: str, value: str) -> str:
    return template.replace("{count}", value, 1)


def ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def resolve_locale(value: Any, fallback: str = DEFAULT_LOCALE) -> Locale:
    """Parse a Discord locale such as ``en-US`` into a Babel locale."""
    for candidate in (value, fallback, DEFAULT_LOCALE):
        if not candidate:
            continue
        if isinstance(candidate, Locale):
            return candidate
        try:
            return Locale.parse(str(candidate), sep="-")
        except (UnknownLocaleError, ValueError) as exc:
            LOGGER.debug("Unsupported locale %s: %s", candidate, exc)
    return Locale.parse(DEFAULT_LOCALE, sep="-")


def format_stat_date(value: date, locale: Any = DEFAULT_LOCALE) -> str:
    """Render a date as e.g. ``3rd June (Tue)`` in the given locale."""
    babel_locale = resolve_locale(locale)
    month = format_date(value, "MMMM", locale=babel_locale)
    weekday = format_date(value, "EEE", locale=babel_locale)
    return f"{value.day}{ordinal_suffix(value.day)} {month} ({weekday})"


@dataclass
class StatsSnapshot:
    members: int
    bots: int
    text_channels: int
    voice_channels: int
    categories: int
    roles: int
    date: str

    def value_for(self, stat_type: StatType) -> str:
        values = {
            StatType.MEMBERS: self.members,
            StatType.BOTS: self.bots,
            StatType.TEXT_CHANNELS: self.text_channels,
            StatType.VOICE_CHANNELS: self.voice_channels,
            StatType.CATEGORIES: self.categories,
            StatType.ROLES: self.roles,
            StatType.DATE: self.date,
        }
        return str(values[stat_type])


def snapshot_value(snapshot: Optional[StatsSnapshot], stat_type: StatType) -> str:
    if snapshot is None:
        return DEFAULT_COUNT_VALUE
    return snapshot.value_for(stat_type) or DEFAULT_COUNT_VALUE


async def fetch_snapshot(
    guild: Any,
    today: date | None = None,
    fallback_locale: str = DEFAULT_LOCALE,
) -> Optional[StatsSnapshot]:
    """Read current counts for ``guild`` from the API.

    Returns ``None`` when any request fails so callers can fall back to
    ``DEFAULT_COUNT_VALUE``. The date is formatted in the guild's preferred
    locale, or ``fallback_locale`` when Babel does not know it.
    """
    try:
        members = [member async for member in guild.fetch_members(limit=None)]
        roles = await guild.fetch_roles()
        channels = await guild.fetch_channels()
    except Exception as exc:
        LOGGER.warning("Failed fetching stats data for guild %s: %s", guild.id, exc)
        return None

    bots = sum(1 for member in members if member.bot)
    day = today or datetime.now(timezone.utc).date()
    locale = resolve_locale(getattr(guild, "preferred_locale", None), fallback_locale)
    return StatsSnapshot(
        members=len(members) - bots,
        bots=bots,
        text_channels=sum(
            1 for ch in channels if ch.type == discord.ChannelType.text
        ),
        voice_channels=sum(
            1 for ch in channels if ch.type == discord.ChannelType.voice
        ),
        categories=sum(
            1 for ch in channels if ch.type == discord.ChannelType.category
        ),
        roles=len(roles),
        date=format_stat_date(day, locale),
    )
