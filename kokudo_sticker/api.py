from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from typing import Optional, Any, Dict

from .errors import (
    GeocodingFailed,
    InvalidFormat,
    LoadFailed,
    PhotoRejected,
    RecordNotFound,
    WriteFailed,
)
from .geocoding import geocode
from .models import RecordIn, RecordPatch
from .photos import encode_photo
from .repository import RecordRepository
from .serializer import export_filename

router = APIRouter()


def get_repository(request: Request) -> RecordRepository:
    return request.app.state.repository


def _storage_error(e: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail=str(e))


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/api/records")
async def list_records(request: Request, q: Optional[str] = None):
    repo = get_repository(request)
    repo.search((q or "").strip())
    records = repo.sorted_view()
    return {
        "count": len(records),
        "total": len(repo.records),
        "query": repo.query,
        "records": [r.to_wire() for r in records],
    }


@router.get("/api/records/{record_id}")
async def get_record(request: Request, record_id: int):
    record = get_repository(request).find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record.to_wire()


@router.post("/api/records", status_code=201)
async def add_record(request: Request, record: RecordIn):
    try:
        created = await get_repository(request).add(record)
    except (WriteFailed, LoadFailed) as e:
        raise _storage_error(e)
    return created.to_wire()


@router.put("/api/records/{record_id}")
async def edit_record(request: Request, record_id: int, changes: RecordPatch):
    repo = get_repository(request)
    try:
        updated = await repo.edit(record_id, changes)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Record not found")
    except ValueError as e:
        # merged record failed validation (e.g. only one coordinate left)
        raise HTTPException(status_code=422, detail=str(e))
    except (WriteFailed, LoadFailed) as e:
        raise _storage_error(e)
    return {"previous_id": record_id, "record": updated.to_wire(), "strategy": repo.edit_strategy}


@router.delete("/api/records/{record_id}")
async def delete_record(request: Request, record_id: int):
    try:
        await get_repository(request).delete(record_id)
    except (WriteFailed, LoadFailed) as e:
        raise _storage_error(e)
    return {"deleted": True, "id": record_id}


@router.delete("/api/records")
async def clear_records(request: Request):
    try:
        await get_repository(request).clear_all()
    except (WriteFailed, LoadFailed) as e:
        raise _storage_error(e)
    return {"cleared": True}


@router.get("/api/stats")
async def stats(request: Request, legend_limit: int = 5):
    repo = get_repository(request)
    return {
        "summary": repo.stats().to_dict(),
        "map": repo.map_summary(limit=legend_limit).to_dict(),
    }


@router.get("/api/export")
async def export_records(request: Request):
    repo = get_repository(request)
    if not repo.records:
        raise HTTPException(status_code=404, detail="No data to export")
    return Response(
        content=repo.export(),
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/api/import")
async def import_records(request: Request):
    document = await request.body()
    try:
        imported = await get_repository(request).import_document(document)
    except InvalidFormat as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (WriteFailed, LoadFailed) as e:
        raise _storage_error(e)
    return {"imported": imported}


@router.get("/api/geocode")
async def geocode_location(q: str = ""):
    if not q.strip():
        raise HTTPException(status_code=400, detail="Location is required")
    try:
        candidates = await geocode(q)
    except GeocodingFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"query": q.strip(), "candidates": [c.to_dict() for c in candidates]}


@router.post("/api/photos")
async def upload_photo(request: Request):
    data = await request.body()
    try:
        encoded = encode_photo(data, request.headers.get("content-type"))
    except PhotoRejected as e:
        status = 413 if e.reason == "size" else 415
        raise HTTPException(status_code=status, detail=str(e))
    result: Dict[str, Any] = {"photo": encoded, "size": len(data)}
    return result
