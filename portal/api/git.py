from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from vestry.GitGate import (
    AutoPullConfig,
    GitRepoStatus,
    GitStatus,
    credentials_from_request,
)


class GitRepoRequest(BaseModel):
    """Repository to set up or test."""
    url: str
    branch: Optional[str] = None
    username: Optional[str] = None
    token: Optional[str] = None


class CommitRequest(BaseModel):
    message: str


def create_router(git_gate, scheduler) -> APIRouter:
    """
    Git endpoints.

    Failures come back as 200 with ``success=false``; the body is the
    authoritative outcome.
    """
    router = APIRouter(prefix="/api/git")

    @router.post("/setup", response_model=GitStatus)
    async def api_git_setup(data: GitRepoRequest):
        """Clone into the site root or re-point an existing repository."""
        credentials = credentials_from_request(data.username, data.token)
        return await git_gate.setup(data.url, data.branch or None, credentials)

    @router.post("/test", response_model=GitStatus)
    async def api_git_test(data: GitRepoRequest):
        """Check that a remote is reachable without touching the site root."""
        credentials = credentials_from_request(data.username, data.token)
        return await git_gate.test_connection(data.url, credentials)

    @router.post("/pull", response_model=GitStatus)
    async def api_git_pull():
        return await git_gate.pull()

    @router.post("/force-pull", response_model=GitStatus)
    async def api_git_force_pull():
        """Reset to the remote branch, discarding local changes."""
        return await git_gate.force_pull()

    @router.post("/push", response_model=GitStatus)
    async def api_git_push():
        return await git_gate.push()

    @router.get("/status", response_model=GitRepoStatus)
    async def api_git_status():
        return await git_gate.status()

    @router.post("/commit", response_model=GitStatus)
    async def api_git_commit(data: CommitRequest):
        return await git_gate.commit(data.message)

    @router.get("/auto-pull", response_model=AutoPullConfig)
    async def api_get_auto_pull():
        return scheduler.get_config()

    @router.post("/auto-pull", response_model=GitStatus)
    async def api_set_auto_pull(data: AutoPullConfig):
        return await scheduler.update_config(data)

    return router


__all__ = ["create_router", "GitRepoRequest", "CommitRequest"]
