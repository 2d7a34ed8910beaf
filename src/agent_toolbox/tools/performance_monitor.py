"""
performance_monitor — Sample system metrics over a window and analyze them.

Non-destructive: no confirmation required.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, Field

from agent_toolbox.mcp_base import CapabilityMode, MCPTool, ToolResult
from agent_toolbox.metrics import (
    MetricsProvider,
    PsutilMetricsProvider,
    StubMetricsProvider,
    find_process,
)
from agent_toolbox.performance_analysis import (
    analyze_performance,
    collect_metrics,
    generate_recommendations,
)
from agent_toolbox.toolbox_types import MetricKind

_logger = logging.getLogger("agent_toolbox.tools.performance_monitor")


# ---- Params -----------------------------------------------------------------


class Params(BaseModel):
    """Parameters for performance_monitor."""

    target: str = Field(description="Application name or process to monitor")
    duration: float = Field(default=30, ge=0, description="Monitoring duration in seconds")
    metrics: list[MetricKind] = Field(
        default_factory=lambda: ["cpu", "memory"],
        description="Metrics to collect",
    )
    interval: float = Field(default=1, gt=0, description="Sampling interval in seconds")


# ---- Tool Implementation ----------------------------------------------------


class PerformanceMonitorTool(MCPTool[Params]):
    """Collect CPU, memory, GPU, network, disk and FPS samples and report on them."""

    name = "performance_monitor"
    description = (
        "Monitor application performance metrics including CPU, memory, GPU, network, "
        "disk and FPS over a sampling window, with analysis and recommendations."
    )
    error_prefix = "Performance monitoring failed"

    def __init__(
        self,
        capability_mode: CapabilityMode = "real",
        metrics_provider: MetricsProvider | None = None,
    ) -> None:
        super().__init__(capability_mode)
        self._provider = metrics_provider

    @property
    def provider(self) -> MetricsProvider:
        if self._provider is None:
            self._provider = (
                StubMetricsProvider() if self.capability_mode == "stub" else PsutilMetricsProvider()
            )
        return self._provider

    async def run(self, params: Params) -> ToolResult:
        metrics = list(dict.fromkeys(params.metrics))
        _logger.info(
            "Monitoring %s for %gs every %gs (%s)",
            params.target,
            params.duration,
            params.interval,
            ", ".join(metrics),
        )

        process = None
        if self.capability_mode == "real":
            process = await asyncio.to_thread(find_process, params.target)

        series = await collect_metrics(self.provider, metrics, params.duration, params.interval)
        analysis = analyze_performance(series)

        report = {
            "summary": analysis["summary"],
            "detailed_metrics": series.model_dump(include={"timestamp", *metrics}),
            "performance_analysis": {
                "trends": analysis["trends"],
                "bottlenecks": analysis["bottlenecks"],
            },
            "recommendations": generate_recommendations(analysis),
            "alerts": analysis["alerts"],
            "metadata": {
                "target": params.target,
                "process": process,
                "duration": params.duration,
                "interval": params.interval,
                "samples": len(series.timestamp),
                "capability_mode": self.capability_mode,
            },
        }
        return ToolResult.from_json(report)
