from __future__ import annotations

from fastapi import APIRouter

from vestry.ThemeGate import Theme, ThemeListResponse, ThemeResponse


def create_router(theme_gate) -> APIRouter:
    router = APIRouter(prefix="/api/themes")

    @router.get("", response_model=ThemeListResponse)
    async def api_list_themes():
        """Names of all saved themes, sorted."""
        return await theme_gate.list()

    @router.get("/{name}", response_model=ThemeResponse)
    async def api_get_theme(name: str):
        return await theme_gate.get(name)

    @router.post("", response_model=ThemeResponse)
    async def api_save_theme(theme: Theme):
        """Create or overwrite a theme."""
        return await theme_gate.save(theme)

    @router.delete("/{name}", response_model=ThemeResponse)
    async def api_delete_theme(name: str):
        return await theme_gate.delete(name)

    return router


__all__ = ["create_router"]
