# mlshub/service_layer/provider_store.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.provider_config import CustomMLSProviderConfig
from ..models import CustomProviderRecord
from .gateway import ListingGateway

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderConfigStore:
    """
    Durable copy of admin-registered provider configs.

    Only the HTTP layer and startup restore touch this; the gateway itself
    never reads the database.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, provider_id: str, config: CustomMLSProviderConfig) -> CustomProviderRecord:
        now = _utcnow()
        payload = json.dumps(config.to_dict())

        row = (
            await self.session.execute(
                select(CustomProviderRecord).where(CustomProviderRecord.provider_id == provider_id)
            )
        ).scalar_one_or_none()

        if row is None:
            row = CustomProviderRecord(
                provider_id=provider_id,
                name=config.name,
                endpoint=config.endpoint,
                config_json=payload,
                created_at=now,
                updated_at=now,
            )
            self.session.add(row)
        else:
            row.name = config.name
            row.endpoint = config.endpoint
            row.config_json = payload
            row.updated_at = now

        await self.session.commit()
        return row

    async def delete(self, provider_id: str) -> bool:
        res = await self.session.execute(
            delete(CustomProviderRecord).where(CustomProviderRecord.provider_id == provider_id)
        )
        await self.session.commit()
        return bool(res.rowcount)

    async def list_all(self) -> list[tuple[str, dict[str, Any]]]:
        rows = (
            await self.session.execute(select(CustomProviderRecord).order_by(CustomProviderRecord.id))
        ).scalars().all()

        out: list[tuple[str, dict[str, Any]]] = []
        for r in rows:
            try:
                out.append((r.provider_id, json.loads(r.config_json)))
            except json.JSONDecodeError:
                log.warning("Stored config for provider %s is not valid JSON, skipping", r.provider_id)
        return out


async def restore_providers(gateway: ListingGateway, store: ProviderConfigStore) -> dict[str, int]:
    """
    Re-register every persisted provider. A provider that is down right now
    is skipped (and stays persisted) rather than aborting startup.
    """
    restored = 0
    skipped = 0
    for provider_id, raw in await store.list_all():
        try:
            await gateway.add_custom_provider(provider_id, raw)
            restored += 1
        except Exception as e:
            log.warning("Could not restore custom MLS provider %s: %s", provider_id, e)
            skipped += 1

    if restored or skipped:
        log.info("Restored %d custom MLS provider(s), skipped %d", restored, skipped)
    return {"restored": restored, "skipped": skipped}
