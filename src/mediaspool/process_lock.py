"""Single-instance locking and process discovery."""

import fcntl
import os
import signal
import subprocess
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mediaspool.config import MediaSpoolConfig

SHELL_MARKERS = ("/zsh", "zsh -", "/bash", "bash -", "/sh -")


class ProcessLock:
    """Holds an exclusive flock on ``<log_dir>/mediaspool.lock``."""

    def __init__(self, config: "MediaSpoolConfig") -> None:
        self.lock_file = config.log_dir / "mediaspool.lock"
        self.lock_fd: int | None = None

    def acquire(self) -> bool:
        """Try to acquire exclusive lock. Returns True if successful."""
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            self.lock_fd = os.open(str(self.lock_file), os.O_CREAT | os.O_WRONLY)
            fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            os.ftruncate(self.lock_fd, 0)
            os.write(self.lock_fd, str(os.getpid()).encode())
            os.fsync(self.lock_fd)
            return True
        except OSError:
            if self.lock_fd is not None:
                os.close(self.lock_fd)
                self.lock_fd = None
            return False

    def release(self) -> None:
        if self.lock_fd is None:
            return
        try:
            fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
            os.close(self.lock_fd)
        except OSError:
            # fd already closed by a forked daemon context
            pass
        finally:
            self.lock_fd = None

    @property
    def is_held(self) -> bool:
        return self.lock_fd is not None

    @staticmethod
    def find_mediaspool_process() -> tuple[int, str] | None:
        """Find a running ``mediaspool start``. Returns (pid, mode) or None."""
        try:
            result = subprocess.run(
                ["pgrep", "-f", "mediaspool start", "-a"],
                check=False,
                capture_output=True,
                text=True,
                timeout=2,
            )
        except (subprocess.SubprocessError, FileNotFoundError):
            return None

        if result.returncode != 0:
            return None

        own_pids = (os.getpid(), os.getppid())
        for line in result.stdout.strip().splitlines():
            parts = line.split(maxsplit=1)
            if len(parts) < 2:
                continue
            try:
                pid = int(parts[0])
            except ValueError:
                continue
            cmdline = parts[1]

            if pid in own_pids:
                continue
            # shells that merely launched the command
            if any(marker in cmdline for marker in SHELL_MARKERS) or cmdline.endswith("/sh"):
                continue
            if "python" not in cmdline and "uv run" not in cmdline and "/mediaspool" not in cmdline:
                continue

            return (pid, "systemd" if "--systemd" in cmdline else "daemon")

        return None

    @staticmethod
    def is_process_running(pid: int) -> bool:
        try:
            os.kill(pid, 0)
            return True
        except OSError:
            return False

    @staticmethod
    def stop_process(pid: int, timeout: int = 10) -> bool:
        """SIGTERM, wait up to ``timeout`` seconds, then SIGKILL."""
        try:
            os.kill(pid, signal.SIGTERM)

            for _ in range(timeout):
                if not ProcessLock.is_process_running(pid):
                    return True
                time.sleep(1)

            os.kill(pid, signal.SIGKILL)
            time.sleep(0.5)
            return not ProcessLock.is_process_running(pid)

        except OSError:
            return True
