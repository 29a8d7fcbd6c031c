"""Liveness endpoint.

Reports which data store backs the flow: ``postgres`` when DATABASE_URL
is configured, otherwise ``memory``. Returns 200 even when degraded; the
status field carries the actual health.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from assessment_service.api.dependencies import get_data_store
from assessment_service.repos.data_store import (
    Collection,
    DataStore,
    DataStoreError,
    InMemoryDataStore,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(store: Annotated[DataStore, Depends(get_data_store)]) -> dict:
    mode = "memory" if isinstance(store, InMemoryDataStore) else "postgres"
    try:
        await store.count_where(Collection.ASSESSMENTS, {"is_active": True})
        data_store = "ok"
    except DataStoreError as e:
        logger.warning("Health check: data store unreachable: %s", e)
        data_store = "degraded"

    return {
        "status": "ok" if data_store == "ok" else "degraded",
        "checks": {"data_store": data_store},
        "data_store_mode": mode,
    }
