"""
Git working-copy operations for the site root, backed by pygit2.

Every method here is blocking and raises VestryError subclasses on
failure. The GitGate facade runs them on worker threads under the
root lock and turns errors into GitStatus results.
"""

import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pygit2
from pygit2.enums import CheckoutStrategy, FileStatus, RepositoryOpenFlag, ResetMode

from vestry.shared.errors import (
    Conflict,
    GitOperationFailure,
    NotFound,
    OperationTimeout,
    PathInvalid,
)
from vestry.shared.gate import GateLogger
from vestry.GitGate.models import (
    Credentials,
    GitFileStatus,
    GitRepoStatus,
    GitStatus,
    NoCredentials,
    RepoState,
    UsernameToken,
)

_log = GateLogger.get("GitGate")

COMMIT_AUTHOR = "Simple Web"
COMMIT_EMAIL = "noreply@simple-web.local"
DEFAULT_BRANCH = "main"

_STAGED_FLAGS = (
    (FileStatus.INDEX_NEW, "staged_new"),
    (FileStatus.INDEX_MODIFIED, "staged_modified"),
    (FileStatus.INDEX_DELETED, "staged_deleted"),
    (FileStatus.INDEX_RENAMED, "staged_renamed"),
)

_UNSTAGED_FLAGS = (
    (FileStatus.WT_MODIFIED, "modified"),
    (FileStatus.WT_DELETED, "deleted"),
    (FileStatus.WT_RENAMED, "renamed"),
)


class TransferCallbacks(pygit2.RemoteCallbacks):
    """
    Remote callbacks carrying credentials and a wall-clock deadline.

    libgit2 calls the progress hooks repeatedly during a transfer; raising
    from one aborts the transfer and pygit2 re-raises the exception from
    the fetch/push/clone call.
    """

    def __init__(self, credentials: Credentials, deadline: Optional[float] = None):
        userpass = None
        if isinstance(credentials, UsernameToken):
            userpass = pygit2.UserPass(credentials.username, credentials.token)
        super().__init__(credentials=userpass)
        self.deadline = deadline
        self.rejected: List[str] = []

    def check_deadline(self) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise OperationTimeout("Git operation timed out")

    def transfer_progress(self, stats):
        self.check_deadline()

    def sideband_progress(self, string):
        self.check_deadline()

    def push_transfer_progress(self, objects_pushed, total_objects, bytes_pushed):
        self.check_deadline()

    def push_update_reference(self, refname, message):
        # A rejected ref does not make push() raise
        if message:
            self.rejected.append(f"{refname}: {message}")


class RepositoryController:
    """
    Synchronizes the site root with its 'origin' remote.

    Credentials given to setup() are kept in memory and reused for later
    fetches and pushes.
    """

    def __init__(
        self,
        root: Union[str, Path],
        timeout: float = 120.0,
        credentials: Optional[Credentials] = None,
    ):
        self.root = Path(root)
        self.timeout = timeout
        self.credentials: Credentials = credentials or NoCredentials()
        self._local = threading.local()

    # ==================== Helpers ====================

    def set_deadline(self, deadline: Optional[float]) -> None:
        """
        Fix the monotonic deadline for transfers started from this thread.

        With no deadline set, each transfer gets ``timeout`` seconds.
        """
        self._local.deadline = deadline

    def _callbacks(self, credentials: Optional[Credentials] = None) -> TransferCallbacks:
        deadline = getattr(self._local, "deadline", None)
        if deadline is None:
            deadline = time.monotonic() + self.timeout
        return TransferCallbacks(
            credentials if credentials is not None else self.credentials,
            deadline=deadline,
        )

    def open(self) -> pygit2.Repository:
        """Open the repository at the root itself, never a parent."""
        try:
            return pygit2.Repository(str(self.root), RepositoryOpenFlag.NO_SEARCH)
        except (pygit2.GitError, KeyError) as e:
            raise NotFound(f"No Git repository found: {e}")

    def is_repository(self) -> bool:
        try:
            self.open()
        except NotFound:
            return False
        return True

    @staticmethod
    def _origin(repo: pygit2.Repository) -> pygit2.Remote:
        try:
            return repo.remotes["origin"]
        except KeyError as e:
            raise NotFound(f"No remote 'origin' found: {e}")

    @staticmethod
    def _branch_name(repo: pygit2.Repository) -> str:
        try:
            return repo.head.shorthand
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to get current branch: {e}")

    @staticmethod
    def _remote_commit(repo: pygit2.Repository, branch: str) -> pygit2.Commit:
        name = f"origin/{branch}"
        remote_branch = repo.branches.remote.get(name)
        if remote_branch is None:
            raise NotFound(f"Remote branch '{name}' not found: reference 'refs/remotes/{name}' not found")
        try:
            return remote_branch.peel(pygit2.Commit)
        except (pygit2.GitError, ValueError) as e:
            raise GitOperationFailure(f"Failed to get remote commit: {e}")

    @staticmethod
    def _is_dirty(repo: pygit2.Repository) -> bool:
        try:
            return bool(repo.status())
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to check repository status: {e}")

    def _fetch(self, remote: pygit2.Remote) -> None:
        try:
            remote.fetch(callbacks=self._callbacks())
        except OperationTimeout:
            raise OperationTimeout(f"Fetch timed out after {self.timeout:g} seconds")
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to fetch changes: {e}")

    def _fetch_remote_commit(self, repo: pygit2.Repository) -> pygit2.Commit:
        self._fetch(self._origin(repo))
        return self._remote_commit(repo, self._branch_name(repo))

    # ==================== State ====================

    def state(self) -> RepoState:
        """Coarse state: absent, clean, dirty or diverged."""
        try:
            repo = self.open()
        except NotFound:
            return RepoState.ABSENT

        if self._is_dirty(repo):
            return RepoState.DIRTY

        ahead, behind = self._ahead_behind(repo)
        if ahead > 0 and behind > 0:
            return RepoState.DIVERGED
        return RepoState.CLEAN

    def _ahead_behind(self, repo: pygit2.Repository) -> Tuple[int, int]:
        try:
            if repo.head_is_unborn or repo.head_is_detached:
                return 0, 0
            remote_branch = repo.branches.remote.get(f"origin/{repo.head.shorthand}")
            if remote_branch is None:
                return 0, 0
            return repo.ahead_behind(repo.head.target, remote_branch.target)
        except pygit2.GitError:
            return 0, 0

    # ==================== Operations ====================

    def setup(
        self,
        url: str,
        branch: Optional[str] = None,
        credentials: Optional[Credentials] = None,
    ) -> GitStatus:
        """
        Clone into an empty root, or point an existing repository at ``url``.

        Raises:
            Conflict: If the root holds files but no repository
            GitOperationFailure: If cloning or remote configuration fails
            OperationTimeout: If the clone exceeds the deadline
        """
        credentials = credentials if credentials is not None else NoCredentials()
        _log.info(f"Setting up Git repository: {url}")

        if self.root.is_dir() and any(os.scandir(self.root)):
            try:
                repo = self.open()
            except NotFound:
                _log.warning("Directory exists but is not a Git repository")
                raise Conflict("Directory exists but is not a Git repository. Please clear it first.")

            self._configure_origin(repo, url)
            self.credentials = credentials
            head = None if repo.head_is_unborn else str(repo.head.target)
            _log.info("Repository configured successfully")
            return GitStatus.ok("Repository configured successfully", head)

        _log.info(f"Cloning repository from {url}")
        try:
            repo = pygit2.clone_repository(
                url,
                str(self.root),
                checkout_branch=branch or None,
                callbacks=self._callbacks(credentials),
            )
        except OperationTimeout:
            raise OperationTimeout(f"Clone timed out after {self.timeout:g} seconds")
        except (pygit2.GitError, ValueError) as e:
            _log.error(f"Failed to clone repository: {e}")
            raise GitOperationFailure(f"Failed to clone repository: {e}")

        self.credentials = credentials
        head = None if repo.head_is_unborn else str(repo.head.target)
        _log.info("Repository cloned successfully")
        return GitStatus.ok("Repository cloned successfully", head)

    @staticmethod
    def _configure_origin(repo: pygit2.Repository, url: str) -> None:
        try:
            origin = repo.remotes["origin"]
        except KeyError:
            origin = None

        if origin is None:
            try:
                repo.remotes.create("origin", url)
            except (pygit2.GitError, ValueError) as e:
                raise GitOperationFailure(f"Failed to add remote: {e}")
            return

        if origin.url != url:
            try:
                repo.remotes.delete("origin")
                repo.remotes.create("origin", url)
            except (pygit2.GitError, ValueError) as e:
                raise GitOperationFailure(f"Failed to update remote URL: {e}")

    def test_connection(self, url: str, credentials: Optional[Credentials] = None) -> GitStatus:
        """List remote refs from a throwaway repository; the root is never touched."""
        credentials = credentials if credentials is not None else NoCredentials()
        _log.info(f"Testing Git repository connection: {url}")

        with tempfile.TemporaryDirectory(prefix="vestry-git-test-") as tmp:
            try:
                repo = pygit2.init_repository(tmp, bare=True)
            except pygit2.GitError as e:
                raise GitOperationFailure(f"Failed to initialize test repository: {e}")

            try:
                remote = repo.remotes.create("origin", url)
            except (pygit2.GitError, ValueError) as e:
                raise GitOperationFailure(f"Invalid repository URL: {e}")

            try:
                remote.list_heads(callbacks=self._callbacks(credentials))
            except OperationTimeout:
                raise OperationTimeout(f"Connection test timed out after {self.timeout:g} seconds")
            except (pygit2.GitError, ValueError) as e:
                _log.error(f"Repository connection test failed: {e}")
                raise GitOperationFailure(f"Connection test failed: {e}")

        _log.info("Repository connection test successful")
        return GitStatus.ok("Connection test passed - repository is accessible")

    def pull(self) -> GitStatus:
        """
        Fast-forward to origin/<branch>.

        Refuses when the working copy has any change, including untracked
        files, or when local commits have not been pushed.
        """
        _log.info("Pulling latest changes")
        repo = self.open()

        if self._is_dirty(repo):
            raise Conflict("Cannot pull with uncommitted changes. Please commit or stash changes first.")

        remote_commit = self._fetch_remote_commit(repo)
        branch = self._branch_name(repo)
        local_id = repo.head.target

        if local_id == remote_commit.id:
            _log.info("Already up to date")
            return GitStatus.ok("Already up to date", str(local_id))

        try:
            ahead, behind = repo.ahead_behind(local_id, remote_commit.id)
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to calculate repository status: {e}")

        if ahead > 0:
            raise Conflict(
                f"Cannot pull: you have {ahead} unpushed commits. Please push your changes "
                f"first, or use Force Pull to discard local changes."
            )

        ref_name = f"refs/heads/{branch}"
        try:
            repo.checkout_tree(remote_commit, strategy=CheckoutStrategy.FORCE)
            repo.references[ref_name].set_target(remote_commit.id, "Fast-forward pull")
            repo.set_head(ref_name)
        except (pygit2.GitError, KeyError) as e:
            raise GitOperationFailure(f"Failed to update branch: {e}")

        _log.info(f"Fast-forwarded {branch} by {behind} commits")
        return GitStatus.ok(f"Successfully pulled {behind} new commits", str(remote_commit.id))

    def _hard_reset_to_remote(self) -> pygit2.Commit:
        repo = self.open()
        remote_commit = self._fetch_remote_commit(repo)
        try:
            repo.reset(remote_commit.id, ResetMode.HARD)
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to update to latest changes: {e}")
        return remote_commit

    def pull_internal(self) -> GitStatus:
        """Scheduled pull: fetch and hard-reset, discarding local edits."""
        remote_commit = self._hard_reset_to_remote()
        return GitStatus.ok("Successfully pulled latest changes", str(remote_commit.id))

    def force_pull(self) -> GitStatus:
        """Interactive pull that discards local commits and edits."""
        _log.warning("Force pulling - local changes will be discarded")
        remote_commit = self._hard_reset_to_remote()
        return GitStatus.ok("Successfully force pulled - local changes discarded", str(remote_commit.id))

    def status(self) -> GitRepoStatus:
        """Snapshot of branch, commits, ahead/behind and per-file changes."""
        try:
            repo = self.open()
        except NotFound as e:
            return GitRepoStatus(success=False, message=e.message, error_kind=e.kind)

        current_branch = None
        current_commit = None
        if not repo.head_is_unborn:
            current_branch = repo.head.shorthand
            current_commit = str(repo.head.target)

        remote_branch = repo.branches.remote.get(f"origin/{current_branch or DEFAULT_BRANCH}")
        remote_commit = str(remote_branch.target) if remote_branch is not None else None

        ahead, behind = self._ahead_behind(repo)

        try:
            entries: Dict[str, int] = repo.status()
        except pygit2.GitError as e:
            return GitRepoStatus(
                success=False,
                message=f"Failed to get repository status: {e}",
                current_branch=current_branch,
                current_commit=current_commit,
                remote_commit=remote_commit,
                error_kind=GitOperationFailure.kind,
            )

        changed: List[GitFileStatus] = []
        untracked: List[str] = []
        has_staged = False
        has_unstaged = False

        for path, flags in sorted(entries.items()):
            for flag, label in _STAGED_FLAGS:
                if flags & flag:
                    changed.append(GitFileStatus(path=path, status=label))
                    has_staged = True
                    break

            if flags & FileStatus.WT_NEW:
                untracked.append(path)
                has_unstaged = True
                continue
            for flag, label in _UNSTAGED_FLAGS:
                if flags & flag:
                    changed.append(GitFileStatus(path=path, status=label))
                    has_unstaged = True
                    break

        return GitRepoStatus(
            success=True,
            message="Repository status retrieved successfully",
            current_branch=current_branch,
            current_commit=current_commit,
            remote_commit=remote_commit,
            behind_count=behind,
            ahead_count=ahead,
            has_changes=has_staged or has_unstaged or bool(untracked),
            has_staged_changes=has_staged,
            has_unstaged_changes=has_unstaged,
            changed_files=changed,
            untracked_files=untracked,
        )

    def commit(self, message: str) -> GitStatus:
        """Stage every change (deletions included) and commit it on HEAD."""
        if not message or not message.strip():
            raise PathInvalid("Commit message cannot be empty")

        _log.info(f"Committing changes with message: {message}")
        repo = self.open()

        try:
            deleted = [
                path for path, flags in repo.status().items()
                if flags & FileStatus.WT_DELETED
            ]
            index = repo.index
            index.add_all()
            for path in deleted:
                if path in index:
                    index.remove(path)
            index.write()
            tree = index.write_tree()
        except (pygit2.GitError, OSError) as e:
            raise GitOperationFailure(f"Failed to stage changes: {e}")

        parents = [] if repo.head_is_unborn else [repo.head.target]
        signature = pygit2.Signature(COMMIT_AUTHOR, COMMIT_EMAIL)

        try:
            oid = repo.create_commit("HEAD", signature, signature, message, tree, parents)
        except pygit2.GitError as e:
            raise GitOperationFailure(f"Failed to create commit: {e}")

        _log.info(f"Commit created successfully: {oid}")
        return GitStatus.ok("Changes committed successfully", str(oid))

    def push(self) -> GitStatus:
        """Push the current branch to the same-named branch on origin."""
        _log.info("Pushing local commits to remote repository")
        repo = self.open()

        if self._is_dirty(repo):
            raise Conflict("Cannot push with uncommitted changes. Please commit changes first.")

        branch = self._branch_name(repo)
        remote = self._origin(repo)
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        callbacks = self._callbacks()

        try:
            remote.push([refspec], callbacks=callbacks)
        except OperationTimeout:
            raise OperationTimeout(f"Push timed out after {self.timeout:g} seconds")
        except pygit2.GitError as e:
            _log.error(f"Failed to push to remote: {e}")
            raise GitOperationFailure(f"Failed to push to remote: {e}. Check if you have push permissions.")

        if callbacks.rejected:
            reason = "; ".join(callbacks.rejected)
            _log.error(f"Push rejected: {reason}")
            raise GitOperationFailure(
                f"Failed to push to remote: {reason}. Check if you have push permissions."
            )

        _log.info("Successfully pushed commits to remote")
        return GitStatus.ok("Successfully pushed commits to remote repository", str(repo.head.target))
