"""Daemon management for MediaSpool."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import daemon

from ..config import MediaSpoolConfig
from ..process_lock import ProcessLock
from .orchestrator import MediaSpoolOrchestrator

logger = logging.getLogger(__name__)


class MediaSpoolDaemon:
    """Manages MediaSpool daemon lifecycle."""

    def __init__(self, config: MediaSpoolConfig):
        self.config = config
        self.orchestrator: MediaSpoolOrchestrator | None = None
        self.lock: ProcessLock | None = None

    def start_daemon(self) -> None:
        """Detach and run in the background."""
        log_file_path = self.config.log_dir / "mediaspool.log"
        self.config.ensure_directories()

        process_info = ProcessLock.find_mediaspool_process()
        if process_info:
            pid, mode = process_info
            raise RuntimeError(f"MediaSpool is already running in {mode} mode (PID {pid})")

        logger.info("Starting MediaSpool daemon...")
        logger.info(f"Log file: {log_file_path}")
        logger.info(f"Downloads: {self.config.download_dir}")
        logger.info(f"Output: {self.config.output_dir}")

        daemon_context = daemon.DaemonContext(
            working_directory=Path.cwd(),
            umask=0o002,
        )

        with daemon_context:
            self._run_daemon(log_file_path)

    def start_systemd_mode(self) -> None:
        """Run in the foreground; systemd captures the logs."""
        self._run_daemon(None)

    def _run_daemon(self, log_file_path: Path | None) -> None:
        if log_file_path:
            self._setup_daemon_logging(log_file_path)

        self.lock = ProcessLock(self.config)
        if not self.lock.acquire():
            logger.error("Failed to acquire process lock - another instance may be running")
            sys.exit(1)

        self.orchestrator = MediaSpoolOrchestrator(self.config)

        try:
            asyncio.run(self._serve())
        except Exception as e:
            logger.exception("Error in daemon: %s", e)
            self.stop()
            sys.exit(1)
        finally:
            if self.lock:
                self.lock.release()

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._handle_signal, signum)

        logger.info("Starting MediaSpool orchestrator")
        await self.orchestrator.run()
        logger.info("MediaSpool daemon exited cleanly")

    def _handle_signal(self, signum: int) -> None:
        logger.info("Received signal %s, stopping daemon", signum)
        if self.orchestrator:
            self.orchestrator.stop()

    def stop(self) -> None:
        if self.orchestrator:
            self.orchestrator.stop()
        if self.lock:
            self.lock.release()

    def _setup_daemon_logging(self, log_file_path: Path) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.INFO)

        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        )
        root_logger.addHandler(file_handler)
