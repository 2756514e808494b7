## src/service/files_router.py

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from insight import InsightContext
from schema.files import SNIFF_BYTES, ListFilesResponse, UploadableFile, UploadResult, guess_mime
from service.dependencies import get_context
from service.storage import read_stream_with_limit, sanitize_name

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def sniff_mime_from_upload(uf: UploadFile, mime_map: dict[str, str]) -> str:
    """
    Determine MIME type from file signature first, then the extension map.
    Resets the file pointer back to 0 so the body can be read afterwards.
    """
    head = uf.file.read(SNIFF_BYTES)
    uf.file.seek(0)
    return guess_mime(uf.filename or "", head, mime_map)


def _result_message(doc: UploadableFile) -> str:
    if doc.status == "active":
        return "Indexed"
    return doc.error or "Indexing failed"


@router.post("/upload", response_model=list[UploadResult])
async def upload_files(
    files: list[UploadFile] = File(...),
    context: InsightContext = Depends(get_context),
):
    """
    Upload files and index them into the File Search store.

    Files are processed one after another. A file that fails keeps its
    ``error`` status in the list; the request itself still succeeds.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    settings = context.settings
    # fail fast, before any body is read
    context.credentials.require()

    pending: list[UploadableFile] = []
    for uf in files:
        name = sanitize_name(uf.filename or "")
        mime = sniff_mime_from_upload(uf, settings.MIME_TYPE_MAP)
        # oversized bodies are cut at limit + 1 and rejected by validation
        data = read_stream_with_limit(uf.file, settings.MAX_UPLOAD_BYTES)
        pending.append(UploadableFile.from_bytes(name, data, mime_type=mime))

    indexed = await context.files.add_files(pending)
    results = [UploadResult(status=doc.status, message=_result_message(doc), file=doc) for doc in indexed]

    logger.info(
        "Upload batch finished",
        extra={
            "file_count": len(results),
            "active": sum(1 for r in results if r.status == "active"),
            "errors": sum(1 for r in results if r.status == "error"),
        },
    )
    return results


@router.get("", response_model=ListFilesResponse)
async def list_files(context: InsightContext = Depends(get_context)):
    manager = context.files
    return ListFilesResponse(
        items=manager.files,
        active_count=manager.active_count,
        is_uploading=manager.is_uploading,
    )


@router.get("/{file_id}", response_model=UploadableFile)
async def get_file(file_id: str, context: InsightContext = Depends(get_context)):
    doc = context.files.get(file_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Not found")
    return doc


@router.delete("/{file_id}", status_code=204)
async def delete_file(file_id: str, context: InsightContext = Depends(get_context)):
    """Remove a file locally and, best effort, from Gemini. The chat session is reset."""
    removed = await context.files.remove_file(file_id)
    if removed is None:
        raise HTTPException(status_code=404, detail="Not found")
    return
