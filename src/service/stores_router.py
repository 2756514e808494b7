## src/service/stores_router.py

from __future__ import annotations

from fastapi import APIRouter, Depends

from insight import InsightContext
from schema.index import StoreInfo
from service.dependencies import get_context

router = APIRouter(tags=["stores"])


@router.get("", response_model=list[StoreInfo])
async def list_stores(context: InsightContext = Depends(get_context)):
    context.credentials.require()
    return await context.stores.list_stores()


@router.delete("/{store_name:path}", status_code=204)
async def delete_store(store_name: str, force: bool = True, context: InsightContext = Depends(get_context)):
    """Delete a File Search store. Deleting the active store drops the chat session too."""
    context.credentials.require()
    current = context.stores.current
    await context.stores.delete_store(store_name, force=force)
    if current is not None and current.name == store_name:
        context.sessions.invalidate()
    return
