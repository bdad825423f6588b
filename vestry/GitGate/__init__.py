"""
GitGate - Git synchronization of the site root for Vestry.

Provides:
- Clone/configure, connection test, pull, force pull, commit and push
- Read-only repository status
- One lock per site root serializing every working-copy operation
- Deadlines on network-facing operations

Usage:
    from vestry.GitGate import GitGate

    gate = GitGate("/public_site", timeout=120)

    result = await gate.setup("https://example.com/site.git", branch="main")
    status = await gate.status()
    result = await gate.commit("Update homepage")
    result = await gate.push()

Every operation returns a GitStatus or GitRepoStatus and never raises.
"""

import asyncio
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

import pygit2

from vestry.shared.errors import GitOperationFailure, OperationTimeout, VestryError
from vestry.shared.gate import GateLogger, build_health_status

from .models import (
    AutoPullConfig,
    Credentials,
    GitFileStatus,
    GitRepoStatus,
    GitStatus,
    NoCredentials,
    RepoState,
    UsernameToken,
    credentials_from_request,
)
from .repository import RepositoryController

_log = GateLogger.get("GitGate")

T = TypeVar("T")
R = TypeVar("R", GitStatus, GitRepoStatus)

# Locks are shared by every gate pointed at the same canonical root
_root_locks: Dict[str, threading.Lock] = {}
_root_locks_guard = threading.Lock()


def root_lock(root: Union[str, Path]) -> threading.Lock:
    """Get the lock serializing git work on ``root``."""
    key = os.path.realpath(root)
    with _root_locks_guard:
        lock = _root_locks.get(key)
        if lock is None:
            lock = _root_locks[key] = threading.Lock()
        return lock


class _Ticket:
    """
    Hand-off between a waiting caller and its worker thread.

    Exactly one of start() and cancel() wins: work that has not started
    when the caller gives up never runs.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._started = False
        self._cancelled = False

    def start(self) -> bool:
        with self._guard:
            if self._cancelled:
                return False
            self._started = True
            return True

    def cancel(self) -> bool:
        """Returns True if the work never started."""
        with self._guard:
            self._cancelled = True
            return not self._started


class GitGate:
    """
    Async facade over RepositoryController.

    Work runs on a worker thread that holds the root lock for its whole
    duration, so a caller that times out never releases the lock early.
    A timed call shares one deadline between waiting for the lock and the
    network transfer; if the deadline passes before the work starts, the
    work is dropped.
    """

    def __init__(self, root: Union[str, Path], timeout: float = 120.0):
        self.root = Path(root)
        self.timeout = float(timeout)
        self.controller = RepositoryController(self.root, timeout=self.timeout)
        self._lock = root_lock(self.root)

    # ==================== Plumbing ====================

    def _execute(
        self,
        ticket: _Ticket,
        deadline: Optional[float],
        locked: bool,
        fn: Callable[..., T],
        *args,
    ) -> T:
        if locked:
            wait = -1 if deadline is None else max(deadline - time.monotonic(), 0.0)
            if not self._lock.acquire(timeout=wait):
                ticket.cancel()
                raise OperationTimeout("Repository is busy with another git operation")
        try:
            if not ticket.start():
                raise OperationTimeout("Git operation abandoned before it started")
            self.controller.set_deadline(deadline)
            try:
                return fn(*args)
            finally:
                self.controller.set_deadline(None)
        finally:
            if locked:
                self._lock.release()

    async def _call(
        self,
        operation: str,
        result_type: Type[R],
        fn: Callable[..., R],
        *args,
        locked: bool = True,
        timed: bool = True,
    ) -> R:
        """Run ``fn`` on a worker thread and fold every failure into ``result_type``."""
        ticket = _Ticket()
        deadline = time.monotonic() + self.timeout if timed else None
        call = asyncio.to_thread(self._execute, ticket, deadline, locked, fn, *args)
        try:
            if timed:
                return await asyncio.wait_for(call, timeout=self.timeout)
            return await call
        except asyncio.TimeoutError:
            if ticket.cancel():
                message = f"Git {operation} timed out after {self.timeout:g} seconds waiting for the repository; nothing was changed"
            else:
                message = f"Git {operation} timed out after {self.timeout:g} seconds"
            _log.error(message)
            error: VestryError = OperationTimeout(message)
        except VestryError as e:
            _log.error(f"{operation} failed: {e.message}")
            error = e
        except pygit2.GitError as e:
            _log.error(f"{operation} failed: {e}")
            error = GitOperationFailure(f"Git {operation} failed: {e}")
        except Exception as e:
            _log.exception(f"Unexpected error during git {operation}")
            error = GitOperationFailure(f"Git {operation} failed: {e}")

        return result_type(success=False, message=error.message, error_kind=error.kind)

    async def _run(self, operation: str, fn: Callable[..., GitStatus], *args, **kwargs) -> GitStatus:
        return await self._call(operation, GitStatus, fn, *args, **kwargs)

    # ==================== Health ====================

    def is_healthy(self) -> bool:
        return self.root.is_dir()

    def get_health_status(self) -> Dict[str, Any]:
        is_repo = self.controller.is_repository()
        return build_health_status(
            gate_name="GitGate",
            initialized=True,
            dependencies=["pygit2"],
            checks={"root_exists": self.root.is_dir()},
            details={
                "root": str(self.root),
                "repository": is_repo,
                "busy": self._lock.locked(),
                "timeout_seconds": self.timeout,
            },
        )

    # ==================== Operations ====================

    async def state(self) -> RepoState:
        """Coarse state; UNKNOWN when the working copy cannot be inspected."""
        try:
            return await asyncio.to_thread(self._execute, _Ticket(), None, True, self.controller.state)
        except (VestryError, pygit2.GitError) as e:
            _log.error(f"Could not determine repository state: {e}")
            return RepoState.UNKNOWN

    async def setup(
        self,
        url: str,
        branch: Optional[str] = None,
        credentials: Optional[Credentials] = None,
    ) -> GitStatus:
        return await self._run("setup", self.controller.setup, url, branch, credentials)

    async def test_connection(self, url: str, credentials: Optional[Credentials] = None) -> GitStatus:
        return await self._run("connection test", self.controller.test_connection, url, credentials, locked=False)

    async def pull(self) -> GitStatus:
        return await self._run("pull", self.controller.pull)

    async def pull_internal(self) -> GitStatus:
        return await self._run("scheduled pull", self.controller.pull_internal)

    async def force_pull(self) -> GitStatus:
        return await self._run("force pull", self.controller.force_pull)

    async def commit(self, message: str) -> GitStatus:
        return await self._run("commit", self.controller.commit, message, timed=False)

    async def push(self) -> GitStatus:
        return await self._run("push", self.controller.push)

    async def status(self) -> GitRepoStatus:
        return await self._call("status", GitRepoStatus, self.controller.status, timed=False)


__all__ = [
    "GitGate",
    "RepositoryController",
    "root_lock",
    "AutoPullConfig",
    "Credentials",
    "NoCredentials",
    "UsernameToken",
    "credentials_from_request",
    "GitStatus",
    "GitFileStatus",
    "GitRepoStatus",
    "RepoState",
]
