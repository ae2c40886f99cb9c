"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — Пул соединений к базе данных (Database Connection Pool)
═══════════════════════════════════════════════════════════════════════════════

Пул asyncpg для хранилища профилей (profile_store=postgres) и
применение SQL-миграций из ``pulse_identity/db/migrations/``.

Пул создаётся один раз в lifespan и передаётся в PostgresProfileStore.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import asyncpg

from pulse_identity.config import PulseSettings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "db" / "migrations"


async def _init_connection(conn: asyncpg.Connection) -> None:
    """JSONB ↔ Python (list/dict) без ручного json.dumps в запросах."""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


async def create_pool(settings: PulseSettings) -> asyncpg.Pool:
    """Создаёт пул соединений с параметрами из PulseSettings."""
    pool = await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=settings.database_pool_min,
        max_size=settings.database_pool_max,
        command_timeout=60,
        init=_init_connection,
    )
    logger.info(
        "Profile DB pool created (min=%s, max=%s)",
        settings.database_pool_min, settings.database_pool_max,
    )
    return pool


async def apply_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """
    Применяет SQL-миграции по порядку имён файлов.

    Уже применённые файлы учитываются в ``_applied_migrations``.
    Возвращает число применённых в этот раз файлов.
    """
    if not migrations_dir.is_dir():
        logger.info("No migrations directory found, skipping")
        return 0

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.info("No SQL migration files found, skipping")
        return 0

    applied_now = 0
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS _applied_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
        """)

        rows = await conn.fetch("SELECT filename FROM _applied_migrations")
        applied = {row["filename"] for row in rows}

        for sql_file in sql_files:
            if sql_file.name in applied:
                continue

            logger.info("Applying migration: %s", sql_file.name)
            sql_text = sql_file.read_text(encoding="utf-8")
            async with conn.transaction():
                await conn.execute(sql_text)
                await conn.execute(
                    "INSERT INTO _applied_migrations (filename) VALUES ($1)",
                    sql_file.name,
                )
            applied_now += 1
            logger.info("Migration applied: %s", sql_file.name)

    logger.info("Profile DB migrations up to date (%d files checked)", len(sql_files))
    return applied_now


async def check_connection(pool: asyncpg.Pool) -> bool:
    """Проверяет доступность PostgreSQL (health check)."""
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except (asyncpg.PostgresError, OSError, TimeoutError) as e:
        logger.error("Profile DB health check failed: %s", e)
        return False
