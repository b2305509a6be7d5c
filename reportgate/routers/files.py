"""
File Upload Router

Stores report images in the local media directory when no external media
storage is configured, and serves them back at stable URLs.
"""

from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from reportgate.errors import MediaUploadError
from reportgate.services.media import get_local_store

router = APIRouter(prefix="/api", tags=["files"])

ALLOWED_TYPES = ("image/",)


def _safe_resolve(filename: str) -> Path:
    upload_dir = get_local_store().upload_dir.resolve()
    resolved = (upload_dir / filename).resolve()
    if resolved.parent != upload_dir:
        raise HTTPException(status_code=400, detail="Invalid filename")
    return resolved


@router.post("/upload")
async def upload_file(file: UploadFile = File(...)) -> Dict[str, Any]:
    """
    Upload a report image.

    Returns:
        Dict with 'url' key containing the public URL of the stored file
    """
    if not file.content_type:
        raise HTTPException(status_code=400, detail="File type could not be determined")
    if not file.content_type.startswith(ALLOWED_TYPES):
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}. Only images are allowed."
        )

    store = get_local_store()
    content = await file.read()
    try:
        filename = store.save_bytes(content)
    except MediaUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"File upload failed: {str(e)}")

    return {
        "url": store.public_url(filename),
        "filename": file.filename or filename,
        "content_type": file.content_type,
        "size": len(content),
    }


@router.get("/upload/{filename}")
async def get_file(filename: str) -> FileResponse:
    """
    Serve an uploaded file over HTTP.
    """
    file_path = _safe_resolve(filename)
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(str(file_path))


@router.delete("/upload/{filename}")
async def delete_file(filename: str) -> Dict[str, str]:
    """
    Delete an uploaded file, e.g. media left behind by a failed submission.
    """
    file_path = _safe_resolve(filename)
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    try:
        file_path.unlink()
        return {"status": "deleted", "filename": filename}
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"File deletion failed: {str(e)}")
