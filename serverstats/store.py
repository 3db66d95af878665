from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from peewee import (
    AutoField,
    BooleanField,
    CharField,
    DateTimeField,
    IntegerField,
    Model,
    SqliteDatabase,
)

from .stats import StatType

stats_database = SqliteDatabase(None)


def utcnow_naive() -> datetime:
    """Return current UTC time without tzinfo for SQLite storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Model):
    created_at = DateTimeField(default=utcnow_naive)
    updated_at = DateTimeField(default=utcnow_naive)

    def save(self, *args, **kwargs):  # type: ignore[override]
        self.updated_at = utcnow_naive()
        return super().save(*args, **kwargs)

    class Meta:
        database = stats_database


class StatConfig(BaseModel):
    id = AutoField()
    guild_id = IntegerField(index=True)
    stat_type = CharField()
    channel_id = IntegerField(null=True)
    category_id = IntegerField(null=True)
    active = BooleanField(default=False)
    custom_name = CharField()

    class Meta:
        table_name = "stat_config"
        indexes = ((("guild_id", "stat_type"), True),)

    @property
    def type(self) -> StatType:
        return StatType(self.stat_type)


def init_store(path: str):
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    stats_database.init(path)
    stats_database.connect(reuse_if_open=True)
    stats_database.create_tables([StatConfig])


def close_store():
    if not stats_database.is_closed():
        stats_database.close()


def get_stat_config(guild_id: int, stat_type: StatType) -> Optional[StatConfig]:
    return StatConfig.get_or_none(
        (StatConfig.guild_id == guild_id) & (StatConfig.stat_type == stat_type.value)
    )


def list_stat_configs(guild_id: int) -> List[StatConfig]:
    return list(
        StatConfig.select()
        .where(StatConfig.guild_id == guild_id)
        .order_by(StatConfig.id)
    )


def upsert_stat_config(
    guild_id: int,
    stat_type: StatType,
    channel_id: int | None,
    category_id: int | None,
    active: bool,
    custom_name: str,
):
    now = utcnow_naive()
    StatConfig.insert(
        guild_id=guild_id,
        stat_type=stat_type.value,
        channel_id=channel_id,
        category_id=category_id,
        active=active,
        custom_name=custom_name,
        created_at=now,
        updated_at=now,
    ).on_conflict(
        conflict_target=[StatConfig.guild_id, StatConfig.stat_type],
        update={
            StatConfig.channel_id: channel_id,
            StatConfig.category_id: category_id,
            StatConfig.active: active,
            StatConfig.custom_name: custom_name,
            StatConfig.updated_at: now,
        },
    ).execute()


def delete_stat_config(record_id: int) -> bool:
    deleted = StatConfig.delete().where(StatConfig.id == record_id).execute()
    return deleted > 0


def delete_guild_stat_configs(guild_id: int) -> int:
    return StatConfig.delete().where(StatConfig.guild_id == guild_id).execute()
