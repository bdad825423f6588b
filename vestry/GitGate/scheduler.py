"""
Auto-pull scheduler.

Keeps at most one background job that periodically runs the destructive
scheduled pull (fetch + hard reset). The configuration is persisted as
JSON outside the site root and reloaded on start.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from croniter import croniter

from vestry.shared.errors import ErrorKind
from vestry.shared.gate import ConfigLoader, GateLogger, build_health_status
from vestry.GitGate.models import AutoPullConfig, GitStatus

_log = GateLogger.get("AutoPullScheduler")

CONFIG_FILENAME = "auto_pull_config.json"


def cron_for_interval(interval_minutes: int) -> Optional[str]:
    """
    Cron expression firing every ``interval_minutes`` on the clock.

    Intervals of an hour or more do not fit the minute field and run on a
    fixed delay instead (None).
    """
    if interval_minutes < 60:
        return f"*/{interval_minutes} * * * *"
    return None


class AutoPullScheduler:
    """
    Owns the auto-pull configuration and its single recurring job.

    Usage:
        scheduler = AutoPullScheduler(git_gate, data_dir)
        await scheduler.start()
        await scheduler.update_config(AutoPullConfig(enabled=True, interval_minutes=15))
        await scheduler.shutdown()
    """

    def __init__(self, git_gate, data_dir: Union[str, Path]):
        self.git_gate = git_gate
        self.config_path = Path(data_dir) / CONFIG_FILENAME
        self._config = AutoPullConfig()
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.last_result: Optional[GitStatus] = None
        self.last_run: Optional[str] = None

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """Load the persisted config and register the job if enabled."""
        async with self._lock:
            loaded = ConfigLoader.load(self.config_path, AutoPullConfig)
            if loaded is None:
                _log.warning(f"Ignoring unreadable auto-pull config at {self.config_path}")
                loaded = AutoPullConfig()
            self._config = loaded

            if self._config.enabled:
                self._add_job()

    async def shutdown(self) -> None:
        async with self._lock:
            await self._remove_job()

    # ==================== Configuration ====================

    def get_config(self) -> AutoPullConfig:
        return self._config.model_copy()

    async def update_config(self, new_config: AutoPullConfig) -> GitStatus:
        """
        Replace the configuration.

        The current job is removed, the new config persisted, and a fresh
        job registered if enabled, all under one lock.
        """
        _log.info(
            f"Updating auto-pull configuration: enabled={new_config.enabled}, "
            f"interval={new_config.interval_minutes}min"
        )
        async with self._lock:
            await self._remove_job()
            try:
                ConfigLoader.save(self.config_path, new_config)
            except OSError as e:
                _log.error(f"Failed to persist auto-pull configuration: {e}")
                if self._config.enabled:
                    self._add_job()
                return GitStatus(
                    success=False,
                    message=f"Failed to update auto-pull configuration: {e}",
                    error_kind=ErrorKind.IO_FAILURE,
                )

            self._config = new_config.model_copy()
            if self._config.enabled:
                self._add_job()

        return GitStatus.ok("Auto-pull configuration updated successfully")

    # ==================== Job management ====================

    def is_job_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def job_info(self) -> Dict[str, Any]:
        return {
            "active": self.is_job_active(),
            "interval_minutes": self._config.interval_minutes if self.is_job_active() else None,
            "schedule": cron_for_interval(self._config.interval_minutes) if self.is_job_active() else None,
            "last_run": self.last_run,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }

    def _add_job(self) -> None:
        interval = self._config.interval_minutes
        self._task = asyncio.create_task(self._run_job(interval))
        _log.info(f"Auto-pull job scheduled every {interval} minutes")

    async def _remove_job(self) -> None:
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _log.info("Removed existing auto-pull job")

    def next_delay(self, interval_minutes: int) -> float:
        """Seconds until the job should next fire."""
        expr = cron_for_interval(interval_minutes)
        if expr is None:
            return interval_minutes * 60.0

        now = datetime.now(timezone.utc)
        next_fire = croniter(expr, now).get_next(datetime)
        if next_fire.tzinfo is None:
            next_fire = next_fire.replace(tzinfo=timezone.utc)
        return max((next_fire - now).total_seconds(), 0.0)

    async def _run_job(self, interval_minutes: int) -> None:
        while True:
            await asyncio.sleep(self.next_delay(interval_minutes))
            await self.run_once()

    async def run_once(self) -> Optional[GitStatus]:
        """Run one scheduled pull. Failures are logged, never raised."""
        _log.info("Running scheduled git pull...")
        self.last_run = datetime.now(timezone.utc).isoformat()
        try:
            status = await self.git_gate.pull_internal()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _log.error(f"Scheduled git pull error: {e}")
            self.last_result = None
            return None

        self.last_result = status
        if status.success:
            _log.info(f"Scheduled git pull successful: {status.message}")
        else:
            _log.warning(f"Scheduled git pull failed: {status.message}")
        return status

    # ==================== Health ====================

    def is_healthy(self) -> bool:
        return self.is_job_active() == self._config.enabled

    def get_health_status(self) -> Dict[str, Any]:
        return build_health_status(
            gate_name="AutoPullScheduler",
            initialized=True,
            dependencies=["GitGate"],
            checks={"job_matches_config": self.is_healthy()},
            details=self.job_info(),
        )
