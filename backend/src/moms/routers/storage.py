from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse

from moms.storage import BlobStore, StorageError

from .deps import require_uid

router = APIRouter(tags=["storage"])


def get_blob_store() -> BlobStore:
    return BlobStore()


@router.post("/storage/upload", status_code=201)
async def upload(
    file: UploadFile = File(...),
    folder: str = Form(...),
    uid: str = Depends(require_uid),
    store: BlobStore = Depends(get_blob_store),
):
    content = await file.read()
    try:
        url = store.upload(content, file.filename or "", folder)
    except StorageError as exc:
        raise HTTPException(400, str(exc))
    return {"url": url}


@router.get("/files/{path:path}")
def download(path: str, store: BlobStore = Depends(get_blob_store)):
    target = store.resolve(path)
    if target is None:
        raise HTTPException(404, "File not found")
    return FileResponse(target)
