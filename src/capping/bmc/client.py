# Copyright (c) Syntropy Systems
"""BMC access through the ipmitool DCMI power commands."""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING, Protocol

from capping.bmc.parser import parse_cap_settings, parse_power_reading
from capping.errors import HardwareCommandError
from capping.models.test import Operation

if TYPE_CHECKING:
    from capping.config import CappingConfig
    from capping.models.power import CapSetting, PowerReading

logger = logging.getLogger(__name__)

BMC_READ_POWER_CMD = ("dcmi", "power", "reading")
BMC_CAP_SETTINGS_CMD = ("dcmi", "power", "get_limit")
BMC_SET_CAP_CMD = ("dcmi", "power", "set_limit", "limit")
BMC_ACTIVATE_CAP_CMD = ("dcmi", "power", "activate")
BMC_DEACTIVATE_CAP_CMD = ("dcmi", "power", "deactivate")

COMMAND_TIMEOUT_SECS = 30


class BMCInterface(Protocol):
    """The four BMC primitives the coordinator and monitor rely on."""

    def current_power(self) -> int:
        ...

    def current_cap_settings(self) -> CapSetting:
        ...

    def set_cap_power_level(self, watts: int) -> None:
        ...

    def set_capping(self, operation: Operation) -> None:
        ...


class BMC:
    """Runs DCMI power commands against a BMC using configured credentials.

    Every failure raises HardwareCommandError: a non-zero exit status or any
    output on stderr means the cap state on the host is unknown.
    """

    hostname: str
    username: str
    ipmi: str
    _password: str

    def __init__(
        self,
        hostname: str,
        username: str,
        password: str,
        ipmi: str = "ipmitool",
    ) -> None:
        self.hostname = hostname
        self.username = username
        self._password = password
        self.ipmi = ipmi

    @classmethod
    def from_config(cls, config: CappingConfig) -> BMC:
        """Build a BMC from the connection details in config."""
        return cls(
            hostname=config.bmc_hostname,
            username=config.bmc_username,
            password=config.bmc_password,
            ipmi=config.ipmi,
        )

    def __repr__(self) -> str:
        return f"BMC(-H {self.hostname} -U {self.username} -P ****)"

    def _credentials(self) -> list[str]:
        return ["-H", self.hostname, "-U", self.username, "-P", self._password]

    def run_command(self, command: tuple[str, ...] | list[str]) -> str:
        """Run an ipmitool command and return its stdout."""
        argv = [self.ipmi, *self._credentials(), *command]
        display = shlex.join(command)
        logger.debug("%r running: %s", self, display)

        try:
            result = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT_SECS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("%r failed to execute %s: %s", self, display, e)
            msg = f"Failed to run BMC command '{display}': {e}"
            raise HardwareCommandError(msg) from e

        stderr = result.stderr.strip()
        if result.returncode != 0 or stderr:
            logger.error(
                "%r command %s exited %d: %s", self, display, result.returncode, stderr
            )
            msg = (
                f"BMC command '{display}' failed "
                f"(exit {result.returncode}): {stderr or 'no error output'}"
            )
            raise HardwareCommandError(msg)

        return result.stdout

    # --- Capping management ---

    def current_cap_settings(self) -> CapSetting:
        """Return the current cap power limit and activation state."""
        return parse_cap_settings(self.run_command(BMC_CAP_SETTINGS_CMD))

    def set_cap_power_level(self, watts: int) -> None:
        """Set the cap level without changing its activation state."""
        logger.info("BMC set cap level %dW", watts)
        _ = self.run_command((*BMC_SET_CAP_CMD, str(watts)))

    def activate_power_cap(self) -> None:
        logger.info("BMC activate capping")
        _ = self.run_command(BMC_ACTIVATE_CAP_CMD)

    def deactivate_power_cap(self) -> None:
        logger.info("BMC deactivate capping")
        _ = self.run_command(BMC_DEACTIVATE_CAP_CMD)

    def set_capping(self, operation: Operation) -> None:
        """Activate or deactivate capping according to operation."""
        if operation is Operation.ACTIVATE:
            self.activate_power_cap()
        else:
            self.deactivate_power_cap()

    # --- Power management ---

    def power_reading(self) -> PowerReading:
        return parse_power_reading(self.run_command(BMC_READ_POWER_CMD))

    def current_power(self) -> int:
        """Instantaneous power draw in watts."""
        return self.power_reading().instant
