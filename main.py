"""
Robo Garage — Main Runner.
Ties all components together: startup, periodic refresh, shutdown.
"""

from __future__ import annotations
import asyncio
import os
import sys
import signal
import logging

from dotenv import load_dotenv

# Load .env file before anything else
load_dotenv()

from config import GarageConfig
from federation.api_client import ApiClient
from federation.errors import CoordinatorError
from federation.federation import Federation
from garage.garage import Garage
from identity.derivation import generate_token
from storage.database import Database

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    # Create data dir before FileHandler
    os.makedirs("data", exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("data/garage.log"),
        ],
    )


class Runner:
    """Keeps the current garage in sync with the federation."""

    def __init__(self, config: GarageConfig):
        self.config = config
        self._running = False
        self._stopped = asyncio.Event()

        self.db = Database(config.storage.db_path)
        self.federation = Federation(
            config.federation,
            api=ApiClient(timeout_sec=config.requests.timeout_sec),
        )
        self.garage = Garage(self.db)

    async def start(self):
        """Full startup sequence."""
        logger.info("=" * 60)
        logger.info("   ROBO GARAGE — STARTING")
        logger.info("=" * 60)

        # 1. Connect database
        os.makedirs(os.path.dirname(self.config.storage.db_path) or "data", exist_ok=True)
        self.db.connect()

        # 2. Restore slots
        self.garage.load()

        # 3. Slot for the configured token
        token = self.config.robot.token
        if not token and not self.garage.slots:
            token = generate_token(self.config.identity.token_length)
            logger.warning("[BOOT] No ROBOT_TOKEN set, generated a new one. Back it up:")
            logger.warning(f"[BOOT] {token}")
        if token:
            self.garage.create_slot(
                self.federation,
                token,
                robot_attributes={
                    "pub_key": self.config.robot.pub_key or None,
                    "enc_priv_key": self.config.robot.enc_priv_key or None,
                },
            )

        # 4. Join coordinators the stored slots have not seen yet
        for short_alias in self.federation.sorted_coordinators:
            await self.garage.sync_coordinator(self.federation, short_alias)

        self._running = True
        logger.info(f"[BOOT] Coordinators: {', '.join(self.federation.sorted_coordinators)}")
        try:
            await self._refresh_loop()
        finally:
            await self.federation.close()
            self.db.close()
            logger.info("[SHUTDOWN] Complete.")

    async def _refresh_loop(self):
        while self._running:
            try:
                await self.garage.fetch_robots(self.federation)
                await self.garage.fetch_active_order(self.federation)
            except CoordinatorError as e:
                logger.warning(f"[SYNC] {e}")
            except Exception as e:
                logger.error(f"[SYNC] Refresh error: {e}", exc_info=True)

            slot = self.garage.get_slot()
            if slot is not None:
                logger.info(f"\n{slot.get_status_summary()}")

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.config.refresh_interval_sec)
            except asyncio.TimeoutError:
                pass

    async def stop(self):
        """Graceful shutdown. The refresh loop closes resources on exit."""
        logger.info("[SHUTDOWN] Stopping...")
        self._running = False
        self._stopped.set()


async def main():
    """Entry point."""
    config = GarageConfig.from_env()
    setup_logging(config.log_level)

    if not config.federation.coordinators:
        logger.critical("GARAGE_COORDINATORS must list at least one coordinator!")
        sys.exit(1)

    runner = Runner(config)

    # Graceful shutdown handler
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}. Initiating shutdown...")
            asyncio.create_task(runner.stop())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    try:
        await runner.start()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received in main loop.")
        await runner.stop()
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        await runner.stop()
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
