"""
Mailing Service - Persistent Template Store and Seeding.

PostgreSQL-backed template store keyed by (codename, culture), and the seeder
that loads template definitions into a store at startup.
"""
from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter
import structlog

from .domain.templates import EmailTemplate, TemplateLookup, TemplateStore

logger = structlog.get_logger(__name__)

EMAIL_TEMPLATES_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS email_templates (
    codename VARCHAR(100) NOT NULL,
    culture VARCHAR(20) NOT NULL,
    subject TEXT NOT NULL,
    provider_template_id VARCHAR(100) NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (codename, culture)
);
"""


class PostgresTemplateStore(TemplateStore):
    """PostgreSQL-backed template store.

    Requires an asyncpg connection pool.
    """

    def __init__(self, pool: Any, logger: Any = None) -> None:
        """Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg.Pool instance
            logger: Optional bound logger
        """
        self._pool = pool
        self._logger = logger or structlog.get_logger(__name__)

    async def ensure_table(self) -> None:
        """Create the templates table if it doesn't exist."""
        async with self._pool.acquire() as conn:
            await conn.execute(EMAIL_TEMPLATES_TABLE_DDL)
            self._logger.info("email_templates_table_ensured")

    async def get_by_codename_and_culture(self, codename: str, culture: str) -> TemplateLookup:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                """SELECT codename, culture, subject, provider_template_id
                   FROM email_templates
                   WHERE codename = $1 AND culture = $2""",
                codename, culture,
            )
        if row is None:
            return TemplateLookup.missing(codename, culture)
        return TemplateLookup.of(EmailTemplate(**dict(row)))

    async def upsert(self, template: EmailTemplate) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                """INSERT INTO email_templates
                   (codename, culture, subject, provider_template_id, updated_at)
                   VALUES ($1, $2, $3, $4, NOW())
                   ON CONFLICT (codename, culture) DO UPDATE
                   SET subject = EXCLUDED.subject,
                       provider_template_id = EXCLUDED.provider_template_id,
                       updated_at = NOW()""",
                template.codename, template.culture, template.subject,
                template.provider_template_id,
            )
        self._logger.debug("email_template_saved", codename=template.codename,
                           culture=template.culture)


_templates_adapter = TypeAdapter(list[EmailTemplate])


def load_templates_file(path: str | Path) -> list[EmailTemplate]:
    """Read template definitions from a JSON array file."""
    with open(path, encoding="utf-8") as fp:
        data = json.load(fp)
    return _templates_adapter.validate_python(data)


async def seed_templates(store: TemplateStore, templates: Iterable[EmailTemplate]) -> int:
    """Upsert every template into the store and return how many were written."""
    count = 0
    for template in templates:
        await store.upsert(template)
        count += 1
    logger.info("email_templates_seeded", count=count)
    return count
