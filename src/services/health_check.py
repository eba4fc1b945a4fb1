"""
Health state of the oracle.

Tracks node and document store connectivity plus the outcome of the last
run of each sync pass, and folds them into a single status:

- healthy:   both backends reachable and every sync recently succeeded
- degraded:  backends reachable but a sync is failing, stale or has not run
- unhealthy: the node or the document store is unreachable or unchecked
"""
import threading
import time
from typing import Any, Callable, Dict, Optional

from src.data_models.governance_schemas import SyncResult
from src.services.dash_core_client import DashCoreClient
from src.services.platform_publisher import PlatformPublisher
from src.utils.exceptions import is_retryable_exception
from src.utils.logger import logger

SYNC_PROPOSALS = "proposals"
SYNC_VOTES = "votes"
SYNC_MASTERNODES = "masternodes"

# A connectivity check older than this no longer counts
CONNECTION_STALE_AFTER_S = 600

# A sync is stale once this many intervals have passed without a run
SYNC_STALE_INTERVALS = 2


class HealthChecker:
    """Thread-safe holder of the health state, updated by scheduled tasks."""

    def __init__(
        self,
        dash_core: DashCoreClient,
        publisher: Optional[PlatformPublisher] = None,
        sync_intervals: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            dash_core: Node client used for the block height check
            publisher: Document store client used for the connectivity check
            sync_intervals: Interval in seconds per sync name, used for staleness
            clock: Time source in seconds (tests)
        """
        self.dash_core = dash_core
        self.publisher = publisher
        self.sync_intervals = dict(sync_intervals or {})
        self._clock = clock
        self._lock = threading.Lock()

        self._dash_core_status: Dict[str, Any] = {
            "connected": False,
            "lastCheck": 0,
            "blockHeight": 0,
            "error": None,
        }
        self._platform_status: Dict[str, Any] = {
            "connected": False,
            "lastCheck": 0,
            "error": None,
        }
        self._sync_status: Dict[str, Dict[str, Any]] = {
            name: self._empty_sync_status() for name in self.sync_intervals
        }

    @staticmethod
    def _empty_sync_status() -> Dict[str, Any]:
        return {"timestamp": 0, "success": False, "count": 0, "errors": 0, "lastError": None, "retryable": None}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ==================== Probes ====================

    def check_dash_core(self) -> bool:
        """Probe the node with getblockcount."""
        try:
            block_height = self.dash_core.get_block_count()
        except Exception as e:
            logger.warning(f"[HealthCheck] Dash Core health check failed: {e}")
            with self._lock:
                self._dash_core_status = {
                    "connected": False,
                    "lastCheck": self._now_ms(),
                    "blockHeight": 0,
                    "error": str(e),
                }
            return False

        with self._lock:
            self._dash_core_status = {
                "connected": True,
                "lastCheck": self._now_ms(),
                "blockHeight": block_height,
                "error": None,
            }
        return True

    def check_platform(self) -> bool:
        """Probe the document store; without a publisher the store is assumed reachable."""
        connected = self.publisher.test_connection() if self.publisher is not None else True
        self.update_platform_status(connected)
        return connected

    def update_platform_status(self, connected: bool, error: Optional[str] = None) -> None:
        with self._lock:
            self._platform_status = {
                "connected": connected,
                "lastCheck": self._now_ms(),
                "error": error if not connected else None,
            }

    def run_checks(self) -> None:
        """Scheduled task body: check both backends."""
        self.check_dash_core()
        self.check_platform()

    # ==================== Sync Outcomes ====================

    def record_sync(self, name: str, result: SyncResult) -> None:
        """Record a completed pass; it counts as successful only with zero errors."""
        with self._lock:
            self._sync_status[name] = {
                "timestamp": self._now_ms(),
                "success": result.errors == 0,
                "count": result.created + result.updated,
                "errors": result.errors,
                "lastError": None,
                "retryable": None,
            }

    def record_sync_failure(self, name: str, error: Exception) -> None:
        """Record a pass that aborted before completing."""
        with self._lock:
            self._sync_status[name] = {
                "timestamp": self._now_ms(),
                "success": False,
                "count": 0,
                "errors": 1,
                "lastError": str(error),
                "retryable": is_retryable_exception(error),
            }

    # ==================== Status ====================

    def _is_sync_healthy(self, name: str, status: Dict[str, Any], now_ms: int) -> bool:
        if not status["success"] or not status["timestamp"]:
            return False
        interval_s = self.sync_intervals.get(name)
        if interval_s is None:
            return True
        return now_ms - status["timestamp"] < interval_s * SYNC_STALE_INTERVALS * 1000

    def get_status(self) -> Dict[str, Any]:
        """Overall status with the per-check details."""
        now_ms = self._now_ms()
        stale_ms = CONNECTION_STALE_AFTER_S * 1000

        with self._lock:
            dash_core = dict(self._dash_core_status)
            platform = dict(self._platform_status)
            syncs = {name: dict(status) for name, status in self._sync_status.items()}

        dash_core_healthy = dash_core["connected"] and now_ms - dash_core["lastCheck"] < stale_ms
        platform_healthy = platform["connected"] and now_ms - platform["lastCheck"] < stale_ms
        syncs_healthy = all(self._is_sync_healthy(name, status, now_ms) for name, status in syncs.items())

        if not dash_core_healthy or not platform_healthy:
            status = "unhealthy"
        elif not syncs_healthy:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "status": status,
            "timestamp": now_ms,
            "checks": {
                "dashCore": dash_core,
                "platform": platform,
                "lastSync": syncs,
            },
        }

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "dashCore": dict(self._dash_core_status),
                "platform": dict(self._platform_status),
                "sync": {name: dict(status) for name, status in self._sync_status.items()},
            }
