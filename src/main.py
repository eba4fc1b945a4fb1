import signal
import sys
import threading
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI

from src.config.oracle_settings import OracleSettings, get_oracle_settings
from src.data_models.governance_schemas import SyncResult
from src.routers.health_router import create_health_router
from src.services.dash_core_client import DashCoreClient
from src.services.health_check import SYNC_MASTERNODES, SYNC_PROPOSALS, SYNC_VOTES, HealthChecker
from src.services.platform_publisher import PlatformPublisher
from src.services.scheduler import Scheduler
from src.sync.masternode_sync import MasternodeSync
from src.sync.proposal_sync import ProposalSync
from src.sync.vote_sync import VoteSync
from src.utils.logger import logger, set_log_level


def create_app(health_checker: HealthChecker, scheduler: Optional[Scheduler] = None) -> FastAPI:
    app = FastAPI(title="Governance Oracle", version="0.1.0")
    app.include_router(create_health_router(health_checker, scheduler))
    return app


def _sync_task(name: str, run: Callable[[], SyncResult], health_checker: HealthChecker) -> Callable[[], None]:
    """Wrap a sync pass so its outcome reaches the health checker."""

    def task() -> None:
        try:
            result = run()
        except Exception as e:
            health_checker.record_sync_failure(name, e)
            raise
        health_checker.record_sync(name, result)

    return task


def register_tasks(
    scheduler: Scheduler,
    settings: OracleSettings,
    dash_core: DashCoreClient,
    publisher: PlatformPublisher,
    health_checker: HealthChecker,
) -> None:
    proposal_sync = ProposalSync(
        dash_core, publisher, settings.superblock_interval, settings.first_superblock_height
    )
    vote_sync = VoteSync(dash_core, publisher)
    masternode_sync = MasternodeSync(dash_core, publisher)

    scheduler.register(
        "proposal-sync",
        settings.proposal_interval_s,
        _sync_task(SYNC_PROPOSALS, proposal_sync.sync, health_checker),
    )
    scheduler.register(
        "vote-sync",
        settings.vote_interval_s,
        _sync_task(SYNC_VOTES, vote_sync.sync, health_checker),
    )
    scheduler.register(
        "masternode-sync",
        settings.masternode_interval_s,
        _sync_task(SYNC_MASTERNODES, masternode_sync.sync, health_checker),
    )
    scheduler.register("health-check", settings.health_check_interval_s, health_checker.run_checks)


def _wait_for_shutdown_signal() -> None:
    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    stop_event.wait()


def main() -> int:
    logger.info("Governance Oracle starting up...")

    try:
        settings = get_oracle_settings()
    except RuntimeError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    set_log_level(settings.log_level)
    logger.info(f"Configuration loaded: {settings.summary()}")

    dash_core = DashCoreClient(
        settings.dash_core_url,
        settings.dash_core_username,
        settings.dash_core_password,
        timeout=settings.dash_core_timeout,
    )
    publisher = PlatformPublisher(
        settings.platform_api_url,
        settings.contract_id,
        settings.platform_identity_id,
        settings.platform_api_token,
        timeout=settings.platform_timeout,
    )

    try:
        logger.info("Testing Dash Core connection...")
        if not dash_core.test_connection():
            logger.error("Could not connect to Dash Core")
            return 1
        logger.info(f"✅ Dash Core connected at block {dash_core.get_block_count()}")

        if not publisher.test_connection():
            # The health endpoint reports this; syncs retry on their next tick
            logger.warning("⚠️  Document store not reachable at startup")

        health_checker = HealthChecker(
            dash_core,
            publisher,
            sync_intervals={
                SYNC_PROPOSALS: settings.proposal_interval_s,
                SYNC_VOTES: settings.vote_interval_s,
                SYNC_MASTERNODES: settings.masternode_interval_s,
            },
        )
        scheduler = Scheduler()
        register_tasks(scheduler, settings, dash_core, publisher, health_checker)
        scheduler.start()
        logger.info("✅ Oracle started")

        try:
            if settings.health_enabled:
                logger.info(f"Health server listening on port {settings.health_port}")
                uvicorn.run(
                    create_app(health_checker, scheduler),
                    host="0.0.0.0",
                    port=settings.health_port,
                    log_level="warning",
                )
            else:
                logger.info("Health server disabled")
                _wait_for_shutdown_signal()
        finally:
            logger.info("Shutting down Governance Oracle...")
            scheduler.stop()
    finally:
        dash_core.close()
        publisher.close()

    logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
