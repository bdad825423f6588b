"""
Tests for the HTTP surface: auth gate, file, git, auto-pull and theme routes.
"""

import pytest
from fastapi.testclient import TestClient

from vestry.Config import ConfigManager
from portal.run import create_app

TOKEN = "test-admin-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def app(site_root, data_dir, temp_dir):
    config = ConfigManager(
        env_file=temp_dir / "missing.env",
        overrides={
            "VESTRY_SITE_ROOT": str(site_root),
            "VESTRY_DATA_DIR": str(data_dir),
            "ADMIN_TOKEN": TOKEN,
            "VESTRY_GIT_TIMEOUT_SECONDS": 10,
        },
    )
    return create_app(config)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


class TestAdminAuth:
    """Tests for the bearer-token gate."""

    def test_missing_token_rejected(self, client):
        response = client.get("/api/files")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error_kind"] == "auth_required"

    def test_wrong_token_rejected(self, client):
        response = client.get("/api/files", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_bearer_token_accepted(self, client):
        assert client.get("/api/files", headers=AUTH).status_code == 200

    def test_raw_token_accepted(self, client):
        response = client.get("/api/files", headers={"Authorization": TOKEN})
        assert response.status_code == 200

    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert set(response.json()["gates"]) == {
            "FileSystemGate", "GitGate", "AutoPullScheduler", "ThemeGate",
        }

    def test_unconfigured_token_refuses_everything(self, site_root, data_dir, temp_dir, monkeypatch):
        monkeypatch.delenv("ADMIN_TOKEN", raising=False)
        config = ConfigManager(
            env_file=temp_dir / "missing.env",
            overrides={
                "VESTRY_SITE_ROOT": str(site_root),
                "VESTRY_DATA_DIR": str(data_dir),
                "ADMIN_TOKEN": "",
            },
        )
        with TestClient(create_app(config)) as c:
            response = c.get("/api/files", headers={"Authorization": "Bearer "})
        assert response.status_code == 401


class TestFileRoutes:
    """Tests for the file manager endpoints."""

    def test_list_root(self, client):
        response = client.get("/api/files", headers=AUTH)

        assert response.json() == [
            {"path": "css", "is_dir": True},
            {"path": "img", "is_dir": True},
            {"path": "index.html", "is_dir": False},
        ]

    def test_list_escape_is_bad_request(self, client):
        response = client.get("/api/files", params={"path": "../"}, headers=AUTH)
        assert response.status_code == 400

    def test_read_file(self, client):
        response = client.get("/api/file", params={"path": "index.html"}, headers=AUTH)

        assert response.status_code == 200
        assert response.content == b"<h1>Hello</h1>"

    def test_read_missing_is_not_found(self, client):
        response = client.get("/api/file", params={"path": "nope.html"}, headers=AUTH)

        assert response.status_code == 404
        assert response.json()["error_kind"] == "not_found"

    def test_read_outside_root_rejected(self, client, outside_dir):
        response = client.get(
            "/api/file", params={"path": "../outside/secret.txt"}, headers=AUTH
        )

        assert response.status_code == 400
        assert b"top secret" not in response.content

    def test_write_then_read(self, client, site_root):
        response = client.post(
            "/api/file",
            params={"path": "blog/post.md"},
            json={"content": "# Post"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert (site_root / "blog" / "post.md").read_text() == "# Post"

    def test_delete(self, client, site_root):
        response = client.delete("/api/file", params={"path": "css"}, headers=AUTH)

        assert response.status_code == 200
        assert not (site_root / "css").exists()

    def test_move(self, client, site_root):
        response = client.post(
            "/api/move", json={"from": "index.html", "to": "home.html"}, headers=AUTH
        )

        assert response.status_code == 200
        assert (site_root / "home.html").read_text() == "<h1>Hello</h1>"
        assert not (site_root / "index.html").exists()

    def test_move_into_itself_is_bad_request(self, client):
        response = client.post(
            "/api/move", json={"from": "css", "to": "css/inner"}, headers=AUTH
        )

        assert response.status_code == 400
        assert response.json()["error_kind"] == "conflict"

    def test_upload(self, client, site_root):
        response = client.post(
            "/api/upload",
            data={"base_path": "assets"},
            files=[
                ("files", ("logo.svg", b"<svg/>", "image/svg+xml")),
                ("files", ("fonts/a.woff", b"\x00\x01", "font/woff")),
            ],
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["data"]["written"] == ["assets/logo.svg", "assets/fonts/a.woff"]
        assert (site_root / "assets" / "fonts" / "a.woff").read_bytes() == b"\x00\x01"

    def test_upload_escape_rejected(self, client, temp_dir):
        response = client.post(
            "/api/upload",
            files=[("files", ("../../evil.txt", b"x", "text/plain"))],
            headers=AUTH,
        )

        assert response.status_code == 400
        assert not (temp_dir / "evil.txt").exists()


class TestGitRoutes:
    """Tests for git endpoints without a repository."""

    def test_status_without_repository(self, client):
        response = client.get("/api/git/status", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error_kind"] == "not_found"

    def test_pull_without_repository(self, client):
        response = client.post("/api/git/pull", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_commit_requires_message_field(self, client):
        response = client.post("/api/git/commit", json={}, headers=AUTH)
        assert response.status_code == 422


class TestAutoPullRoutes:
    """Tests for the auto-pull configuration endpoints."""

    def test_default_config(self, client):
        response = client.get("/api/git/auto-pull", headers=AUTH)
        assert response.json() == {"enabled": False, "interval_minutes": 30}

    def test_update_and_read_back(self, client, app, data_dir):
        response = client.post(
            "/api/git/auto-pull",
            json={"enabled": True, "interval_minutes": 45},
            headers=AUTH,
        )

        assert response.json()["success"] is True
        assert client.get("/api/git/auto-pull", headers=AUTH).json() == {
            "enabled": True,
            "interval_minutes": 45,
        }
        assert (data_dir / "auto_pull_config.json").exists()
        assert app.state.scheduler.is_job_active() is True

    def test_zero_interval_rejected(self, client):
        response = client.post(
            "/api/git/auto-pull",
            json={"enabled": True, "interval_minutes": 0},
            headers=AUTH,
        )
        assert response.status_code == 422


class TestThemeRoutes:
    """Tests for theme CRUD."""

    def test_theme_crud(self, client):
        saved = client.post(
            "/api/themes", json={"name": "dusk", "colors": {"bg": "#000"}}, headers=AUTH
        )
        assert saved.json()["success"] is True

        assert client.get("/api/themes", headers=AUTH).json()["themes"] == ["dusk"]

        fetched = client.get("/api/themes/dusk", headers=AUTH).json()
        assert fetched["theme"] == {"name": "dusk", "colors": {"bg": "#000"}}

        deleted = client.delete("/api/themes/dusk", headers=AUTH).json()
        assert deleted["success"] is True
        assert client.get("/api/themes", headers=AUTH).json()["themes"] == []

    def test_missing_theme(self, client):
        response = client.get("/api/themes/ghost", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "Theme not found"

    def test_invalid_name_rejected(self, client):
        response = client.post("/api/themes", json={"name": "a b"}, headers=AUTH)
        assert response.json()["success"] is False
