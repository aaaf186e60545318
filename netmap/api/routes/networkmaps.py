"""API routes for network maps - stored definitions, rendered payloads, previews."""

import asyncio
import ipaddress
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from netmap.config import settings
from netmap.db import get_db
from netmap.db.models import NetworkMap, _new_id, _utcnow
from netmap.services.networkmap import (
    EntityFilter,
    EntitySourceUnavailable,
    InMemoryEntitySource,
    LayoutEngine,
    MapOptions,
    MapPayload,
    RawEntity,
    SubComponentLink,
    load_entity_source,
    select_engine,
    simulate_network_map,
)
from netmap.services.networkmap.pipeline import root_only_result
from netmap.services.networkmap.render import render_payload
from netmap.services.networkmap.store import entity_filter_for, map_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/networkmaps", tags=["networkmaps"])


def get_layout_engine() -> LayoutEngine:
    """Layout engine for this host; overridden in tests."""
    return select_engine(settings)


# ── Pydantic models ──────────────────────────────────────────────────


class _SourceSelector(BaseModel):
    source: Literal["group", "task", "network"] = "group"
    group_id: Optional[int] = None
    source_data: Optional[str] = None

    @model_validator(mode="after")
    def _check_source(self):
        if self.source == "task":
            if not (self.source_data or "").strip().isdigit():
                raise ValueError("source_data must be a discovery task id")
        elif self.source == "network":
            try:
                ipaddress.ip_network((self.source_data or "").strip(), strict=False)
            except ValueError as e:
                raise ValueError(f"source_data must be a network in CIDR form: {e}") from e
        return self

    def entity_filter(self, options: MapOptions) -> EntityFilter:
        return entity_filter_for(self.source, self.group_id, self.source_data, options)


class NetworkMapCreate(_SourceSelector):
    name: str = Field(..., min_length=1, max_length=256)
    source_period: int = Field(default_factory=lambda: settings.NETWORKMAP_REFRESH_SECONDS, ge=1)
    options: MapOptions = Field(default_factory=MapOptions)


class EntityIn(BaseModel):
    key: str
    label: str = ""
    type: Optional[Literal["device", "subcomponent", "generic"]] = None
    device_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    parent_id: Optional[str] = None
    status: Optional[str] = None
    os_name: Optional[str] = None
    module_type: Optional[str] = None
    image: Optional[str] = None
    shape: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    state: str = ""
    networkmap_id: Optional[str] = None


class LinkIn(BaseModel):
    subcomponent_a: int
    device_a: int
    subcomponent_b: int
    device_b: int


class PreviewRequest(_SourceSelector):
    """Simulated map: inventory slice, or explicit entities when given."""
    entities: Optional[list[EntityIn]] = None
    links: list[LinkIn] = Field(default_factory=list)
    options: MapOptions = Field(default_factory=MapOptions)


# ── Helpers ───────────────────────────────────────────────────────────


def _map_to_dict(m: NetworkMap) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "source": m.source,
        "group_id": m.group_id,
        "source_data": m.source_data,
        "generation_method": m.generation_method,
        "filter": m.filter or {},
        "options": m.options or {},
        "width": m.width,
        "height": m.height,
        "center_x": m.center_x,
        "center_y": m.center_y,
        "source_period": m.source_period,
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


async def _get_map_or_404(db: AsyncSession, map_id: str) -> NetworkMap:
    m = await db.get(NetworkMap, map_id)
    if not m:
        raise HTTPException(status_code=404, detail="Network map not found")
    return m


# ── Definitions ───────────────────────────────────────────────────────


@router.post("", summary="Create a network map definition")
async def create_map(body: NetworkMapCreate, db: AsyncSession = Depends(get_db)):
    now = _utcnow()
    options = body.options
    m = NetworkMap(
        id=_new_id(),
        name=body.name,
        source=body.source,
        group_id=body.group_id,
        source_data=body.source_data,
        generation_method=options.generation_method.value,
        filter=options.map_filter.model_dump(mode="json"),
        options=options.stored_options(),
        width=options.width,
        height=options.height,
        source_period=body.source_period,
        created_at=now,
        updated_at=now,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info(f"Created network map {m.id} ({m.name})")
    return _map_to_dict(m)


@router.get("", summary="List network maps")
async def list_maps(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    q = select(NetworkMap).order_by(desc(NetworkMap.updated_at)).offset(offset).limit(limit)
    maps = (await db.execute(q)).scalars().all()
    total = (await db.execute(select(func.count(NetworkMap.id)))).scalar() or 0
    return {"maps": [_map_to_dict(m) for m in maps], "total": total}


@router.post("/preview", response_model=MapPayload, summary="Simulate a map without storing it")
async def preview_map(
    body: PreviewRequest,
    db: AsyncSession = Depends(get_db),
    engine: LayoutEngine = Depends(get_layout_engine),
):
    options = body.options.with_holding_area((0, 0))

    if body.entities is not None:
        entities = [RawEntity(**e.model_dump()) for e in body.entities]
        links = [SubComponentLink(**link.model_dump()) for link in body.links]
        source = InMemoryEntitySource(entities, links)
        entities = source.list_entities(EntityFilter(
            text_filter=options.text_filter, empty_map=options.map_filter.empty_map,
        ))
    else:
        flt = body.entity_filter(options)
        try:
            source = await load_entity_source(db, flt)
        except EntitySourceUnavailable as e:
            fallback = root_only_result(options)
            return render_payload(fallback.graph, fallback.canvas, options, error=str(e))
        entities = source.list_entities(flt)

    return await asyncio.to_thread(simulate_network_map, entities, options, source, engine)


@router.get("/{map_id}", summary="Get a network map definition")
async def get_map(map_id: str, db: AsyncSession = Depends(get_db)):
    return _map_to_dict(await _get_map_or_404(db, map_id))


@router.delete("/{map_id}", summary="Delete a network map")
async def delete_map(map_id: str, db: AsyncSession = Depends(get_db)):
    m = await _get_map_or_404(db, map_id)
    await db.delete(m)
    await db.commit()
    logger.info(f"Deleted network map {map_id}")
    return {"deleted": True, "id": map_id}


# ── Rendered payloads ─────────────────────────────────────────────────


@router.get("/{map_id}/payload", response_model=MapPayload, summary="Render a stored map")
async def get_map_payload(
    map_id: str,
    db: AsyncSession = Depends(get_db),
    engine: LayoutEngine = Depends(get_layout_engine),
):
    m = await _get_map_or_404(db, map_id)
    return await map_payload(db, m, engine)


@router.post("/{map_id}/regenerate", response_model=MapPayload, summary="Regenerate a stored map")
async def regenerate_map(
    map_id: str,
    db: AsyncSession = Depends(get_db),
    engine: LayoutEngine = Depends(get_layout_engine),
):
    m = await _get_map_or_404(db, map_id)
    payload = await map_payload(db, m, engine, regenerate=True)
    if payload.error is None:
        m.updated_at = _utcnow()
        logger.info(f"Regenerated network map {map_id}")
    return payload
