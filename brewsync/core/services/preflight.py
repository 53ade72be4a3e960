"""
Pre-flight checks — run once before any install starts.

Only two conditions abort an install up front:
    - a required network host is unreachable
    - free disk space is below the per-package estimate

Both are checked once, never per package.
"""

from __future__ import annotations

import logging
import shutil
import socket
import time
from dataclasses import dataclass, field
from pathlib import Path

from brewsync.core.errors import PreflightError

logger = logging.getLogger(__name__)

REQUIRED_HOSTS: tuple[tuple[str, int], ...] = (
    ("github.com", 443),
    ("raw.githubusercontent.com", 443),
)
NETWORK_TIMEOUT = 5.0

GB_PER_PACKAGE = 0.2
MIN_REQUIRED_GB = 1.0
LOW_SPACE_WARNING_GB = 5.0


@dataclass
class PreflightReport:
    hosts: dict[str, dict] = field(default_factory=dict)
    available_gb: float | None = None
    required_gb: float = 0.0
    warnings: list[str] = field(default_factory=list)


def check_host_reachable(host: str, port: int, timeout: float = NETWORK_TIMEOUT) -> dict:
    """TCP-connect to ``host:port``.

    Returns::

        {"reachable": True, "latency_ms": 42}
        or
        {"reachable": False, "error": "..."}
    """
    start = time.monotonic()
    try:
        with socket.create_connection((host, port), timeout=timeout):
            pass
    except OSError as exc:
        return {"reachable": False, "error": str(exc)[:200]}
    return {"reachable": True, "latency_ms": int((time.monotonic() - start) * 1000)}


def estimate_required_gb(package_count: int) -> float:
    """Rough disk need: a fixed size per package, with a floor."""
    return max(MIN_REQUIRED_GB, package_count * GB_PER_PACKAGE)


def available_disk_gb(path: Path | None = None) -> float:
    usage = shutil.disk_usage(path or Path.home())
    return usage.free / (1024 ** 3)


def run_preflight(
    package_count: int,
    *,
    hosts: tuple[tuple[str, int], ...] = REQUIRED_HOSTS,
    timeout: float = NETWORK_TIMEOUT,
    disk_path: Path | None = None,
) -> PreflightReport:
    """Check network and disk before installing ``package_count`` packages.

    Raises:
        PreflightError: A host is unreachable or disk space is short.
    """
    report = PreflightReport(required_gb=estimate_required_gb(package_count))

    logger.info("Checking network connectivity...")
    for host, port in hosts:
        probe = check_host_reachable(host, port, timeout=timeout)
        report.hosts[f"{host}:{port}"] = probe
        if not probe["reachable"]:
            raise PreflightError(
                f"network check failed: cannot reach {host}:{port}: {probe['error']}\n"
                "Please check your internet connection and try again"
            )

    try:
        report.available_gb = available_disk_gb(disk_path)
    except OSError as e:
        logger.warning("Could not determine free disk space: %s", e)
        return report

    if report.available_gb < report.required_gb:
        raise PreflightError(
            f"insufficient disk space: {report.available_gb:.1f} GB available, "
            f"estimated {report.required_gb:.1f} GB needed\n"
            "Free up disk space and try again"
        )
    if report.available_gb < LOW_SPACE_WARNING_GB:
        msg = f"Low disk space: {report.available_gb:.1f} GB available. Consider freeing up space."
        logger.warning(msg)
        report.warnings.append(msg)
    return report
