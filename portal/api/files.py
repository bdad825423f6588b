from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from vestry.shared.errors import VestryError, http_status_for
from vestry.FileSystemGate import OperationResult, UploadPart


class FileWriteRequest(BaseModel):
    """Body for saving a file."""
    content: str


class MoveRequest(BaseModel):
    """Body for moving or renaming an entry."""
    model_config = ConfigDict(populate_by_name=True)

    from_path: str = Field(alias="from")
    to_path: str = Field(alias="to")


def respond(result: OperationResult) -> JSONResponse:
    """Send an OperationResult with the status code its error kind maps to."""
    status_code = 200 if result.success else http_status_for(result.error_kind)
    return JSONResponse(status_code=status_code, content=result.to_dict())


def create_router(files_gate) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/files")
    async def api_list_files(path: Optional[str] = None):
        """List the immediate children of a directory (root when omitted)."""
        result = await files_gate.list_dir(path or "")
        if not result.success:
            return respond(result)
        return result.data

    @router.get("/file")
    async def api_read_file(path: str = ""):
        """Stream a file's raw bytes."""
        try:
            target = await files_gate.resolve_file(path)
        except VestryError as e:
            return respond(OperationResult.fail("read", e, path=path))
        return FileResponse(target)

    @router.post("/file")
    async def api_write_file(data: FileWriteRequest, path: str = ""):
        """Create or overwrite a file."""
        return respond(await files_gate.write_file(path, data.content))

    @router.delete("/file")
    async def api_delete_file(path: str = ""):
        """Delete a file or directory; missing paths succeed."""
        return respond(await files_gate.delete(path))

    @router.post("/move")
    async def api_move(data: MoveRequest):
        """Move or rename a file or directory."""
        return respond(await files_gate.move(data.from_path, data.to_path))

    @router.post("/upload")
    async def api_upload(
        files: List[UploadFile] = File(default=[]),
        base_path: Optional[str] = Form(default=None),
    ):
        """Upload one or more files below ``base_path``."""
        parts = [UploadPart(filename=f.filename, content=f.file) for f in files]
        try:
            result = await files_gate.upload(parts, base_path or "")
        finally:
            for f in files:
                await f.close()
        return respond(result)

    return router


__all__ = ["create_router", "respond", "FileWriteRequest", "MoveRequest"]
