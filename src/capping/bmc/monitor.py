# Copyright (c) Syntropy Systems
"""Background BMC power and cap sampling."""
from __future__ import annotations

import logging
import time
from threading import Event, Thread
from typing import TYPE_CHECKING

from capping.models.power import BMCSample

if TYPE_CHECKING:
    from capping.bmc.client import BMCInterface

logger = logging.getLogger(__name__)

BMC_INTER_COMMAND_SECS = 0.5
BMC_POLL_INTERVAL_SECS = 0.5


class BMCMonitor:
    """Polls the BMC for power and cap settings until told to stop.

    The sample list is written only by the monitor thread and handed over to
    the caller by stop(). A BMC failure ends the loop and is re-raised by
    stop().
    """

    _bmc: BMCInterface
    _inter_command_delay: float
    _poll_interval: float
    _stop_event: Event
    _thread: Thread | None
    _samples: list[BMCSample]
    _error: Exception | None

    def __init__(
        self,
        bmc: BMCInterface,
        inter_command_delay: float = BMC_INTER_COMMAND_SECS,
        poll_interval: float = BMC_POLL_INTERVAL_SECS,
    ) -> None:
        """Initialize monitor.

        Args:
            bmc: BMC to poll
            inter_command_delay: Pause between the power and cap queries (seconds)
            poll_interval: Pause between poll cycles (seconds)

        """
        self._bmc = bmc
        self._inter_command_delay = inter_command_delay
        self._poll_interval = poll_interval
        self._stop_event = Event()
        self._thread = None
        self._samples = []
        self._error = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start background sampling."""
        if self._thread is not None:
            return

        logger.info("BMC monitor: launched")
        # Each run owns its event; a cancelled loop never sees a later start
        self._stop_event = Event()
        self._samples = []
        self._error = None
        self._thread = Thread(
            target=self._poll_loop,
            args=(self._stop_event, self._samples),
            name="bmc-monitor",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> list[BMCSample]:
        """Signal the loop to exit, join it and take ownership of its samples."""
        if self._thread is None:
            return []

        self._stop_event.set()
        self._thread.join()
        self._thread = None

        samples, self._samples = self._samples, []
        if self._error is not None:
            error, self._error = self._error, None
            raise error

        logger.info("BMC monitor: exiting with %d samples", len(samples))
        return samples

    def cancel(self) -> None:
        """Signal the loop to exit without waiting; partial data is discarded."""
        self._stop_event.set()
        self._thread = None
        self._samples = []

    def _poll_loop(self, stop_event: Event, samples: list[BMCSample]) -> None:
        """Background poll loop."""
        while not stop_event.is_set():
            try:
                power = self._bmc.current_power()
                # The BMC rejects back-to-back commands
                time.sleep(self._inter_command_delay)
                cap_settings = self._bmc.current_cap_settings()
            except Exception as exc:
                logger.exception("BMC monitor: poll failed")
                self._error = exc
                return

            sample = BMCSample.from_reading(power, cap_settings)
            logger.debug("BMC power reading: %s", sample)
            samples.append(sample)

            _ = stop_event.wait(timeout=self._poll_interval)
