# Copyright (c) Syntropy Systems
"""Minimal host inventory for the agent's system info endpoint."""
from __future__ import annotations

import platform
import socket
from pathlib import Path

import psutil

from capping.models.api import BiosInfo, ServerInfo, SystemInfo

CPUINFO_PATH = Path("/proc/cpuinfo")


def hostname() -> str:
    """Short hostname."""
    return socket.gethostname().split(".")[0]


def os_name() -> str:
    try:
        release = platform.freedesktop_os_release()
    except OSError:
        return f"{platform.system()} {platform.release()}"
    return f"{release.get('NAME', 'unknown')} {release.get('VERSION', '')}".strip()


def cpu_model(cpuinfo_path: Path = CPUINFO_PATH) -> str:
    try:
        text = cpuinfo_path.read_text()
    except OSError:
        return platform.processor() or "unknown"
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "model name":
            return value.strip()
    return platform.processor() or "unknown"


def get_server_info() -> ServerInfo:
    """Collect what the coordinator needs to know about this host."""
    logical = psutil.cpu_count(logical=True) or 1
    physical = psutil.cpu_count(logical=False) or logical
    try:
        freq = psutil.cpu_freq()
    except (NotImplementedError, OSError):
        # No cpufreq in most VMs and containers
        freq = None

    system_info = SystemInfo(
        hostname=hostname(),
        os=os_name(),
        cpu_version=cpu_model(),
        online_cpus=logical,
        min_mhz=int(freq.min) if freq else 0,
        max_mhz=int(freq.max) if freq else 0,
        threads_per_core=logical // physical,
    )
    return ServerInfo(system_info=system_info, bios_info=BiosInfo())
