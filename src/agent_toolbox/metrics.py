"""
System metrics providers for the performance monitor.

PsutilMetricsProvider reads live values through psutil (GPU through
nvidia-smi when it is installed). StubMetricsProvider returns constant,
configurable readings for environments without a real system to sample
and for tests. Both return one instantaneous reading per call.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Protocol

import psutil

from agent_toolbox.mcp_base import CapabilityError
from agent_toolbox.shell import command_available, run_command
from agent_toolbox.toolbox_types import (
    CPUMetric,
    DiskMetric,
    GPUMetric,
    MemoryMetric,
    NetworkMetric,
)

_logger = logging.getLogger("agent_toolbox.metrics")

MetricReading = CPUMetric | MemoryMetric | GPUMetric | NetworkMetric | DiskMetric | float


class MetricsProvider(Protocol):
    """Capability interface: one instantaneous reading for a metric kind."""

    async def read(self, kind: str) -> MetricReading: ...


def find_process(target: str) -> dict[str, Any] | None:
    """First process whose name or command line contains target (case-insensitive)."""
    needle = target.lower()
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        info = proc.info
        name = (info.get("name") or "").lower()
        cmdline = " ".join(info.get("cmdline") or []).lower()
        if needle in name or needle in cmdline:
            return {"pid": info["pid"], "name": info.get("name")}
    return None


# ── Real provider ────────────────────────────────────────────────────────────


class PsutilMetricsProvider:
    """Live readings from psutil."""

    def __init__(self, command_timeout: float = 5.0) -> None:
        self._command_timeout = command_timeout
        self._last_disk: tuple[float, int, int] | None = None
        # cpu_percent(interval=None) compares against the previous call; prime it
        psutil.cpu_percent(interval=None)
        psutil.cpu_times_percent(interval=None)

    async def read(self, kind: str) -> MetricReading:
        if kind == "cpu":
            return self._read_cpu()
        if kind == "memory":
            return self._read_memory()
        if kind == "gpu":
            return await self._read_gpu()
        if kind == "network":
            return self._read_network()
        if kind == "disk":
            return self._read_disk()
        if kind == "fps":
            return self._read_fps()
        raise CapabilityError(f"Unknown metric: {kind}")

    @staticmethod
    def _read_cpu() -> CPUMetric:
        usage = psutil.cpu_percent(interval=None)
        times = psutil.cpu_times_percent(interval=None)
        return CPUMetric(usage=usage, user=times.user, system=times.system)

    @staticmethod
    def _read_memory() -> MemoryMetric:
        mem = psutil.virtual_memory()
        return MemoryMetric(
            used=mem.used,
            free=mem.available,
            usage_percent=(mem.used / mem.total) * 100 if mem.total else 0.0,
        )

    async def _read_gpu(self) -> GPUMetric:
        # Machines without an NVIDIA GPU report zeros rather than failing the tick
        if not command_available("nvidia-smi"):
            return GPUMetric(utilization=0, memory_used=0)
        try:
            result = await run_command(
                [
                    "nvidia-smi",
                    "--query-gpu=utilization.gpu,memory.used",
                    "--format=csv,noheader,nounits",
                ],
                timeout=self._command_timeout,
            )
            first = result.stdout.strip().splitlines()[0]
            utilization, memory_used = (float(v.strip()) for v in first.split(","))
        except (CapabilityError, IndexError, ValueError) as exc:
            _logger.debug("nvidia-smi unavailable: %s", exc)
            return GPUMetric(utilization=0, memory_used=0)
        return GPUMetric(utilization=utilization, memory_used=memory_used)

    @staticmethod
    def _read_network() -> NetworkMetric:
        counters = psutil.net_io_counters()
        if counters is None:
            return NetworkMetric(rx_bytes=0, tx_bytes=0)
        return NetworkMetric(rx_bytes=counters.bytes_recv, tx_bytes=counters.bytes_sent)

    def _read_disk(self) -> DiskMetric:
        """Bytes per second since the previous disk reading (0 on the first)."""
        counters = psutil.disk_io_counters()
        if counters is None:
            return DiskMetric(read_bytes=0, write_bytes=0)
        now = time.monotonic()
        previous, self._last_disk = self._last_disk, (now, counters.read_bytes, counters.write_bytes)
        if previous is None or now <= previous[0]:
            return DiskMetric(read_bytes=0, write_bytes=0)
        elapsed = now - previous[0]
        return DiskMetric(
            read_bytes=(counters.read_bytes - previous[1]) / elapsed,
            write_bytes=(counters.write_bytes - previous[2]) / elapsed,
        )

    @staticmethod
    def _read_fps() -> float:
        # No portable frame counter exists; simulate 60 +/- 5 clamped to [30, 120]
        return max(30.0, min(120.0, 60.0 + (random.random() - 0.5) * 10))


# ── Stub provider ────────────────────────────────────────────────────────────


class StubMetricsProvider:
    """Constant readings; every value can be overridden."""

    def __init__(
        self,
        cpu_usage: float = 45.0,
        memory_percent: float = 65.0,
        fps: float = 60.0,
        memory_total: int = 16 * 1024**3,
    ) -> None:
        self.cpu_usage = cpu_usage
        self.memory_percent = memory_percent
        self.fps = fps
        self.memory_total = memory_total

    async def read(self, kind: str) -> MetricReading:
        if kind == "cpu":
            user = round(self.cpu_usage * 2 / 3, 2)
            return CPUMetric(usage=self.cpu_usage, user=user, system=round(self.cpu_usage - user, 2))
        if kind == "memory":
            used = int(self.memory_total * self.memory_percent / 100)
            return MemoryMetric(
                used=used, free=self.memory_total - used, usage_percent=self.memory_percent
            )
        if kind == "gpu":
            return GPUMetric(utilization=0, memory_used=0)
        if kind == "network":
            return NetworkMetric(rx_bytes=0, tx_bytes=0)
        if kind == "disk":
            return DiskMetric(read_bytes=0, write_bytes=0)
        if kind == "fps":
            return self.fps
        raise CapabilityError(f"Unknown metric: {kind}")
