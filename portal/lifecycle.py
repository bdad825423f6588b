from __future__ import annotations

from vestry.shared.gate import GateLogger

# Lifecycle logger
_log = GateLogger.get("Lifecycle")


async def startup(state):
    """Prepare directories, migrate themes and start the auto-pull scheduler."""
    try:
        state.files.ensure_root()
    except OSError as e:
        _log.error(f"Could not create site root {state.files.root}: {e}")

    try:
        await state.themes.list()
    except OSError as e:
        _log.error(f"Theme storage unavailable: {e}")

    await state.scheduler.start()
    _log.info(
        f"Vestry started (site root {state.files.root}, "
        f"auto-pull {'on' if state.scheduler.is_job_active() else 'off'})"
    )


async def shutdown(state):
    """Stop background work."""
    try:
        await state.scheduler.shutdown()
        _log.info("Auto-pull scheduler stopped")
    except Exception as e:
        _log.error(f"Scheduler shutdown error: {e}")


__all__ = ["startup", "shutdown"]
