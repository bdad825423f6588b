from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vestry.Config import ConfigManager
from vestry.FileSystemGate import FileSystemGate
from vestry.GitGate import GitGate
from vestry.GitGate.scheduler import AutoPullScheduler
from vestry.ThemeGate import ThemeGate
from vestry.shared.gate import GateLogger

from portal import lifecycle
from portal.api import files as files_api
from portal.api import git as git_api
from portal.api import health as health_api
from portal.api import themes as themes_api
from portal.middleware.security import AdminAuthMiddleware, AdminIdentity

_log = GateLogger.get("Portal")


def create_app(config: Optional[ConfigManager] = None) -> FastAPI:
    """
    Build the application and its gates.

    Args:
        config: Configuration to use; read from the environment when omitted

    Returns:
        FastAPI app with gates on ``app.state``
    """
    config = config or ConfigManager()
    GateLogger.set_level(config.get("VESTRY_LOG_LEVEL", "INFO"))

    valid, errors = config.validate()
    for error in errors:
        _log.warning(error)

    files = FileSystemGate(config.site_root)
    git = GitGate(config.site_root, timeout=config.git_timeout)
    scheduler = AutoPullScheduler(git, config.data_dir)
    themes = ThemeGate(config.data_dir, config.site_root)
    identity = AdminIdentity(config.admin_token)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await lifecycle.startup(app.state)
        try:
            yield
        finally:
            await lifecycle.shutdown(app.state)

    app = FastAPI(title="Vestry", lifespan=lifespan)
    app.state.config = config
    app.state.files = files
    app.state.git = git
    app.state.scheduler = scheduler
    app.state.themes = themes
    app.state.identity = identity

    app.add_middleware(AdminAuthMiddleware, identity=identity)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(files_api.create_router(files))
    app.include_router(git_api.create_router(git, scheduler))
    app.include_router(themes_api.create_router(themes))
    app.include_router(health_api.create_router({
        "FileSystemGate": files,
        "GitGate": git,
        "AutoPullScheduler": scheduler,
        "ThemeGate": themes,
    }))

    return app


def main():
    import uvicorn

    config = ConfigManager()
    uvicorn.run(
        create_app(config),
        host=config.get("VESTRY_HOST", "0.0.0.0"),
        port=int(config.get("VESTRY_PORT", 8000)),
    )


if __name__ == "__main__":
    main()
