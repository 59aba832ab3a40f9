# Copyright (c) Syntropy Systems
"""Load generator launcher with orphan prevention, and the agent's load test."""
from __future__ import annotations

import contextlib
import ctypes
import logging
import os
import signal
import subprocess
import sys
from typing import TYPE_CHECKING

from capping.errors import HardwareCommandError
from capping.rapl.monitor import EnergyMonitor

if TYPE_CHECKING:
    from capping.config import CappingConfig
    from capping.models.api import LoadTestRequest
    from capping.models.power import PowerSample
    from capping.rapl.counters import EnergyCounterSource

logger = logging.getLogger(__name__)


def setup_pdeathsig() -> None:
    """Set PDEATHSIG so the load generator dies when the agent dies.

    Only works on Linux.
    """
    if sys.platform != "linux":
        return
    try:
        libc = ctypes.CDLL("libc.so.6", use_errno=True)
        pr_set_pdeathsig = 1
        libc.prctl(pr_set_pdeathsig, signal.SIGKILL)
    except (AttributeError, OSError):
        # Can't set PDEATHSIG, continue without it
        return


class Firestarter:
    """Runs the FIRESTARTER load generator and waits for it to finish.

    Features:
    - Uses start_new_session=True so the whole load can be killed as a group
    - Sets PDEATHSIG on Linux to prevent orphaned load
    """

    path: str
    runtime_secs: int
    load_pct: int
    load_period_us: int
    n_threads: int
    _process: subprocess.Popen[bytes] | None

    def __init__(self, path: str, request: LoadTestRequest) -> None:
        self.path = path
        self.runtime_secs = request.runtime_secs
        self.load_pct = request.load_pct
        self.load_period_us = request.load_period_us
        self.n_threads = request.n_threads
        self._process = None

    @property
    def argv(self) -> list[str]:
        return [
            self.path,
            "--quiet",
            "--timeout", str(self.runtime_secs),
            "--load", str(self.load_pct),
            "--period", str(self.load_period_us),
            "--threads", str(self.n_threads),
        ]

    def __str__(self) -> str:
        return " ".join(self.argv)

    def run(self) -> int:
        """Launch the load generator and block until it exits."""
        logger.info("Firestarter launching: %s", self)
        try:
            self._process = subprocess.Popen(  # noqa: S603
                self.argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                start_new_session=True,
                preexec_fn=setup_pdeathsig if sys.platform == "linux" else None,  # noqa: PLW1509
            )
        except OSError as e:
            msg = f"Firestarter failed to launch: {e}"
            raise HardwareCommandError(msg) from e

        _, stderr = self._process.communicate()
        code = self._process.returncode
        self._process = None

        if code != 0:
            detail = stderr.decode(errors="replace").strip()
            logger.error("Firestarter exited %d: %s", code, detail)
            msg = f"Firestarter exited with status {code}: {detail or 'no error output'}"
            raise HardwareCommandError(msg)

        logger.info("Firestarter exited successfully")
        return code

    def kill(self) -> None:
        """Kill the load generator's process group if it is still running."""
        if self._process is None or self._process.poll() is not None:
            return
        with contextlib.suppress(OSError, ProcessLookupError):
            os.killpg(os.getpgid(self._process.pid), signal.SIGKILL)


def run_load_test(
    request: LoadTestRequest,
    config: CappingConfig,
    counters: EnergyCounterSource,
) -> list[PowerSample]:
    """Run the load generator while sampling energy; return the power series."""
    monitor = EnergyMonitor(
        counters,
        runtime_secs=request.runtime_secs,
        poll_interval=config.rapl_poll_interval_secs,
        end_delay_secs=config.rapl_end_delay_secs,
    )
    firestarter = Firestarter(config.firestarter_path, request)

    monitor.start()
    try:
        _ = firestarter.run()
    except BaseException:
        firestarter.kill()
        monitor.cancel()
        raise

    return monitor.stop()
