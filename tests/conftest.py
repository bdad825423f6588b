"""
Pytest configuration and fixtures for Vestry tests.
"""

import os
import sys
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pygit2
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

BRANCH = "main"
TEST_SIGNATURE = pygit2.Signature("Test User", "test@example.com")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    # Cleanup
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def site_root(temp_dir: Path) -> Path:
    """Create a sample site root with a few files."""
    root = temp_dir / "public_site"
    root.mkdir(parents=True, exist_ok=True)

    (root / "index.html").write_text("<h1>Hello</h1>")
    (root / "css").mkdir()
    (root / "css" / "app.css").write_text("body { color: red; }")
    (root / "img").mkdir()

    return root


@pytest.fixture
def data_dir(temp_dir: Path) -> Path:
    """Directory for state kept outside the site root."""
    path = temp_dir / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def outside_dir(temp_dir: Path) -> Path:
    """A directory next to the site root holding a secret."""
    path = temp_dir / "outside"
    path.mkdir(parents=True, exist_ok=True)
    (path / "secret.txt").write_text("top secret")
    return path


# ==================== Git helpers ====================


def commit_files(repo: pygit2.Repository, files: Dict[str, str], message: str) -> pygit2.Oid:
    """Write files into a working copy and commit everything on HEAD."""
    workdir = Path(repo.workdir)
    for name, content in files.items():
        target = workdir / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    index = repo.index
    index.add_all()
    index.write()
    tree = index.write_tree()
    parents = [] if repo.head_is_unborn else [repo.head.target]
    return repo.create_commit("HEAD", TEST_SIGNATURE, TEST_SIGNATURE, message, tree, parents)


def push_branch(repo: pygit2.Repository, branch: str = BRANCH) -> None:
    repo.remotes["origin"].push([f"refs/heads/{branch}:refs/heads/{branch}"])


def clone_to(remote_path: Path, target: Path) -> pygit2.Repository:
    return pygit2.clone_repository(str(remote_path), str(target), checkout_branch=BRANCH)


@pytest.fixture
def git_remote(temp_dir: Path) -> Path:
    """A bare repository with one seed commit on main."""
    remote_path = temp_dir / "remote.git"
    pygit2.init_repository(str(remote_path), bare=True, initial_head=BRANCH)

    seed_path = temp_dir / "seed"
    seed = pygit2.init_repository(str(seed_path), initial_head=BRANCH)
    seed.remotes.create("origin", str(remote_path))
    commit_files(seed, {"index.html": "<h1>v1</h1>", "css/app.css": "body {}"}, "Initial commit")
    push_branch(seed)

    return remote_path


@pytest.fixture
def upstream(temp_dir: Path, git_remote: Path) -> pygit2.Repository:
    """Another clone of the remote, used to push new upstream commits."""
    return clone_to(git_remote, temp_dir / "upstream")


@pytest.fixture
def empty_root(temp_dir: Path) -> Path:
    """A site root that does not exist yet."""
    return temp_dir / "site"
