"""
Escalation External Service Integrations
=========================================

External services for the escalation module:
- YAML SLA policy file with watchdog hot-reload
- APScheduler for the daily assignment and hourly sweep jobs
"""

import threading
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from storepulse.core import ConfigurationException
from storepulse.escalation.application import ISLAPolicyProvider
from storepulse.escalation.domain import SLAPolicy
from storepulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, policy_manager: "SLAPolicyManager", policy_path: Path):
        self.policy_manager = policy_manager
        self.policy_path = policy_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path.resolve():
            logger.info(f"SLA policy file changed: {event.src_path}")
            self.policy_manager.reload()


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy holder with hot-reload support.

    Uses watchdog to monitor file changes and reload the policy
    without restarting the service. Until load() is called, or when the
    file does not exist, the default policy applies.
    """

    def __init__(self):
        self._policy = SLAPolicy()
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicy:
        """
        Initial policy load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = path
        policy = self._load_from_file(path)
        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> SLAPolicy:
        """Load and validate the YAML policy file."""
        if not path.exists():
            logger.warning(f"SLA policy file not found: {path}, using defaults")
            return SLAPolicy()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            return SLAPolicy(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {path}: {e}",
                {"path": str(path)}
            ) from e

    def reload(self) -> bool:
        """Reload the policy; the previous policy stays on failure."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(f"Failed to reload SLA policy: {e.message}")
            return False

        with self._lock:
            self._policy = new_policy
        logger.info(
            "SLA policy reloaded successfully",
            extra={
                "on_time_hours": new_policy.on_time_hours,
                "overdue_hours": new_policy.overdue_hours
            }
        )
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skips watching if the file doesn't exist or the platform has no
        file notification support.
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                f"SLA policy file doesn't exist, skipping file watch: {self._path}"
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching SLA policy file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static policy: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> SLAPolicy:
        with self._lock:
            return self._policy

    @property
    def policy(self) -> SLAPolicy:
        return self.get_policy()


class EscalationScheduler:
    """
    Wrapper for APScheduler running the escalation batch jobs.

    Manages the lifecycle of the scheduler and jobs. Each job runs at most
    one instance at a time.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._running = False

    def add_daily_job(
        self,
        job_id: str,
        job_func: JobFunc,
        hour: int,
        minute: int = 0
    ) -> None:
        """Register a job running once a day at hour:minute."""
        self._jobs[job_id] = {
            "func": job_func,
            "trigger": "cron",
            "trigger_args": {"hour": hour, "minute": minute},
        }

    def add_interval_job(
        self,
        job_id: str,
        job_func: JobFunc,
        seconds: int
    ) -> None:
        """Register a job running every `seconds`."""
        self._jobs[job_id] = {
            "func": job_func,
            "trigger": "interval",
            "trigger_args": {"seconds": seconds},
        }

    async def start(self) -> None:
        """Start the scheduler with the registered jobs."""
        if self._running:
            logger.warning("Escalation scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        for job_id, job in self._jobs.items():
            self._scheduler.add_job(
                job["func"],
                job["trigger"],
                id=job_id,
                name=job_id,
                misfire_grace_time=300,
                max_instances=1,
                replace_existing=True,
                **job["trigger_args"]
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Escalation scheduler started",
            extra={"jobs": sorted(self._jobs)}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=True)

        self._running = False
        logger.info("Escalation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def job_ids(self) -> list:
        return sorted(self._jobs)
