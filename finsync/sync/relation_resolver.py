"""Resolve relation properties to internal primary keys.

Related rows may have been committed by the previous entity sync only
moments ago, so lookups are retried with exponential backoff before falling
back to the legacy dashed id form.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from ..models.finance import EntityKind
from .ids import normalize_external_id
from .retry import SleepFn, exponential_backoff, with_retry
from .store import FinanceStore

log = logging.getLogger(__name__)


class RelationResolver:
    def __init__(
        self,
        store: FinanceStore,
        *,
        retries: int = 3,
        base_delay: float = 0.1,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.store = store
        self.retries = max(0, retries)
        self.base_delay = base_delay
        self._sleep = sleep

    async def _lookup(self, target: EntityKind, owner_id: str, external_id: str) -> uuid.UUID | None:
        result = await with_retry(
            lambda: self.store.find_id_by_external_id(target, owner_id, external_id),
            max_attempts=1 + self.retries,
            backoff=exponential_backoff(self.base_delay),
            sleep=self._sleep,
        )
        if result.error is not None and not result.found:
            log.warning(
                "Lookup of %s %s errored after %d attempts: %s",
                target.value, external_id, result.attempts, result.error,
            )
        return result.value

    async def resolve(self, target: EntityKind, owner_id: str, raw_id: str | None) -> uuid.UUID | None:
        if not isinstance(raw_id, str) or not raw_id.strip():
            return None
        raw = raw_id.strip()
        normalized = normalize_external_id(raw)

        found = await self._lookup(target, owner_id, normalized)
        if found is not None:
            return found

        if raw != normalized:
            found = await self._lookup(target, owner_id, raw)
            if found is not None:
                return found

        log.warning("Unresolved %s relation %s for owner %s", target.value, raw, owner_id)
        return None

    async def resolve_first(
        self, target: EntityKind, owner_id: str, relation_value: Any
    ) -> uuid.UUID | None:
        """Resolve only the first referenced id; extra references stay in the JSON bag."""
        if not isinstance(relation_value, list) or not relation_value:
            return None
        return await self.resolve(target, owner_id, relation_value[0])
