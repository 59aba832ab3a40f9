# Copyright (c) Syntropy Systems
"""Background RAPL energy sampling."""
from __future__ import annotations

import logging
import math
from threading import Event, Thread
from typing import TYPE_CHECKING

from capping.rapl.convert import convert_energy_to_power

if TYPE_CHECKING:
    from capping.models.power import EnergySnapshot, PowerSample
    from capping.rapl.counters import EnergyCounterSource

logger = logging.getLogger(__name__)

POLL_FREQ_HZ = 2
END_DELAY_SECS = 5


class EnergyMonitor:
    """Reads all energy counters at a fixed cadence until told to stop.

    Raw snapshots never leave the monitor: stop() converts them to power
    samples using the counters' wraparound ceiling.
    """

    _counters: EnergyCounterSource
    _poll_interval: float
    expected_samples: int
    _stop_event: Event
    _thread: Thread | None
    _snapshots: list[EnergySnapshot]
    _error: Exception | None

    def __init__(
        self,
        counters: EnergyCounterSource,
        runtime_secs: float,
        poll_interval: float = 1.0 / POLL_FREQ_HZ,
        end_delay_secs: float = END_DELAY_SECS,
    ) -> None:
        """Initialize monitor.

        Args:
            counters: Source of energy snapshots
            runtime_secs: Expected length of the load run (seconds)
            poll_interval: Pause between snapshots (seconds)
            end_delay_secs: Slack added to runtime_secs when sizing the run

        """
        self._counters = counters
        self._poll_interval = poll_interval
        expected_secs = runtime_secs + end_delay_secs
        self.expected_samples = math.ceil(expected_secs / poll_interval) if poll_interval > 0 else 0
        self._stop_event = Event()
        self._thread = None
        self._snapshots = []
        self._error = None

    def start(self) -> None:
        """Start background sampling."""
        if self._thread is not None:
            return

        logger.info("RAPL monitor: launched, expecting ~%d samples", self.expected_samples)
        self._stop_event = Event()
        self._snapshots = []
        self._error = None
        self._thread = Thread(
            target=self._poll_loop,
            args=(self._stop_event, self._snapshots),
            name="rapl-monitor",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> list[PowerSample]:
        """Signal the loop to exit, join it and return the derived power samples."""
        if self._thread is None:
            return []

        self._stop_event.set()
        self._thread.join()
        self._thread = None

        snapshots, self._snapshots = self._snapshots, []
        if self._error is not None:
            error, self._error = self._error, None
            raise error

        if len(snapshots) > self.expected_samples:
            logger.debug(
                "RAPL monitor: %d samples exceeded the expected %d",
                len(snapshots),
                self.expected_samples,
            )
        samples = convert_energy_to_power(snapshots, self._counters.max_energy())
        logger.info("RAPL monitor: exiting with %d power samples", len(samples))
        return samples

    def cancel(self) -> None:
        """Signal the loop to exit without waiting; partial data is discarded."""
        self._stop_event.set()
        self._thread = None
        self._snapshots = []

    def _poll_loop(self, stop_event: Event, snapshots: list[EnergySnapshot]) -> None:
        """Background poll loop."""
        while not stop_event.is_set():
            try:
                snapshot = self._counters.read_current_energy()
            except Exception as exc:
                logger.exception("RAPL monitor: counter read failed")
                self._error = exc
                return

            logger.debug("RAPL: %s", snapshot)
            snapshots.append(snapshot)
            _ = stop_event.wait(timeout=self._poll_interval)
