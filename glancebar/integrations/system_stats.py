"""
Glancebar — Host CPU and memory readings.

Thin wrapper over psutil. Readings are best-effort: when psutil cannot read a
counter it comes back as None and the statusline leaves that segment out.
"""

from __future__ import annotations

import logging

import psutil

from glancebar.data.models import MemoryUsage, SystemStats

logger = logging.getLogger(__name__)

# Sampling window for psutil.cpu_percent; blocking, so callers run it off the event loop
CPU_SAMPLE_SECONDS = 0.2


def read_cpu_percent(interval: float = CPU_SAMPLE_SECONDS) -> float | None:
    try:
        return psutil.cpu_percent(interval=interval)
    except (psutil.Error, OSError) as exc:
        logger.debug("CPU usage unavailable: %s", exc)
        return None


def read_memory() -> MemoryUsage | None:
    """Used memory counts reclaimable cache as free (total minus available)."""
    try:
        memory = psutil.virtual_memory()
    except (psutil.Error, OSError) as exc:
        logger.debug("Memory usage unavailable: %s", exc)
        return None
    return MemoryUsage(used=memory.total - memory.available, total=memory.total)


def read_system_stats(cpu: bool, memory: bool) -> SystemStats:
    """Read only the counters that are switched on."""
    return SystemStats(
        cpu_percent=read_cpu_percent() if cpu else None,
        memory=read_memory() if memory else None,
    )
