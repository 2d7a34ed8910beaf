"""
Sampling loop and analysis for the performance monitor.

Sampling is cooperative polling: one reading per requested metric per
tick, `interval` seconds apart, until `duration` has elapsed. Analysis is
plain statistics over the collected series (average, peak, least-squares
slope) against fixed thresholds; recommendations are a fixed lookup from
the resulting statuses and bottlenecks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from agent_toolbox.metrics import MetricsProvider
from agent_toolbox.toolbox_types import (
    CPUMetric,
    DiskMetric,
    GPUMetric,
    MemoryMetric,
    MetricSeries,
    NetworkMetric,
    PerformanceAlert,
    Recommendation,
)

_logger = logging.getLogger("agent_toolbox.performance_analysis")

# ── Thresholds ───────────────────────────────────────────────────────────────

CPU_CRITICAL = 80.0
CPU_WARNING = 60.0
CPU_SPIKE = 90.0
MEMORY_CRITICAL = 90.0
MEMORY_WARNING = 75.0
MEMORY_LEAK_SLOPE = 0.5
FPS_CRITICAL = 30.0
FPS_WARNING = 60.0
FPS_DROP = 30.0

_EXPECTED_TYPES: dict[str, type | tuple[type, ...]] = {
    "cpu": CPUMetric,
    "memory": MemoryMetric,
    "gpu": GPUMetric,
    "network": NetworkMetric,
    "disk": DiskMetric,
    "fps": (int, float),
}


# ── Statistics ───────────────────────────────────────────────────────────────


def average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def detect_spikes(values: Sequence[float], threshold: float) -> list[int]:
    """Indices of values above threshold."""
    return [i for i, v in enumerate(values) if v > threshold]


def detect_drops(values: Sequence[float], threshold: float) -> list[int]:
    """Indices of values below threshold."""
    return [i for i, v in enumerate(values) if v < threshold]


def calculate_trend(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values over their index (0 for < 2 points)."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = (n - 1) * n * (2 * n - 1) / 6
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


# ── Sampling ─────────────────────────────────────────────────────────────────


async def collect_metrics(
    provider: MetricsProvider,
    metrics: Sequence[str],
    duration: float,
    interval: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> MetricSeries:
    """
    Poll the provider until duration has elapsed.

    At least one tick is always taken, so duration=0 gives one instantaneous
    sample per metric. A failed reading is logged and skipped for that tick.
    """
    series = MetricSeries()
    deadline = clock() + duration

    while True:
        series.timestamp.append(datetime.now(timezone.utc).isoformat())
        for kind in metrics:
            try:
                reading = await provider.read(kind)
                if not isinstance(reading, _EXPECTED_TYPES[kind]):
                    raise TypeError(f"provider returned {type(reading).__name__}")
            except Exception as exc:  # noqa: BLE001
                _logger.warning("Error collecting %s metric: %s", kind, exc)
                continue
            getattr(series, kind).append(reading)

        if clock() + interval >= deadline:
            break
        await sleep(interval)

    return series


# ── Analysis ─────────────────────────────────────────────────────────────────


def _alert(type_: str, severity: str, message: str) -> dict[str, Any]:
    return PerformanceAlert(type=type_, severity=severity, message=message).model_dump()


def analyze_performance(metrics: MetricSeries) -> dict[str, Any]:
    """Summary, trends, alerts and bottlenecks for a collected series."""
    summary: dict[str, Any] = {}
    trends: dict[str, Any] = {}
    alerts: list[dict[str, Any]] = []
    bottlenecks: list[str] = []

    if metrics.cpu:
        cpu_values = [m.usage for m in metrics.cpu]
        avg_cpu = average(cpu_values)
        summary["cpu"] = {
            "average": round(avg_cpu),
            "peak": round(max(cpu_values)),
            "status": (
                "critical"
                if avg_cpu > CPU_CRITICAL
                else "warning" if avg_cpu > CPU_WARNING else "normal"
            ),
        }
        trends["cpu"] = {"slope": calculate_trend(cpu_values)}
        if avg_cpu > CPU_CRITICAL:
            alerts.append(
                _alert(
                    "high_cpu_usage",
                    "high",
                    f"Average CPU usage {avg_cpu:.1f}% is critically high",
                )
            )
            bottlenecks.append("CPU")

        spikes = detect_spikes(cpu_values, CPU_SPIKE)
        if spikes:
            alerts.append(
                _alert(
                    "cpu_spikes",
                    "medium",
                    f"Detected {len(spikes)} CPU usage spikes above {CPU_SPIKE:g}%",
                )
            )

    if metrics.memory:
        memory_values = [m.usage_percent for m in metrics.memory]
        avg_memory = average(memory_values)
        summary["memory"] = {
            "average": round(avg_memory),
            "peak": round(max(memory_values)),
            "status": (
                "critical"
                if avg_memory > MEMORY_CRITICAL
                else "warning" if avg_memory > MEMORY_WARNING else "normal"
            ),
        }
        if avg_memory > MEMORY_CRITICAL:
            alerts.append(
                _alert(
                    "high_memory_usage",
                    "high",
                    f"Average memory usage {avg_memory:.1f}% is critically high",
                )
            )
            bottlenecks.append("Memory")

        slope = calculate_trend(memory_values)
        trends["memory"] = {"slope": slope}
        if slope > MEMORY_LEAK_SLOPE:
            alerts.append(
                _alert(
                    "potential_memory_leak",
                    "medium",
                    "Memory usage shows increasing trend, possible memory leak",
                )
            )

    if metrics.fps:
        avg_fps = average(metrics.fps)
        summary["fps"] = {
            "average": round(avg_fps),
            "minimum": min(metrics.fps),
            "status": (
                "critical"
                if avg_fps < FPS_CRITICAL
                else "warning" if avg_fps < FPS_WARNING else "excellent"
            ),
        }
        if avg_fps < FPS_CRITICAL:
            alerts.append(
                _alert(
                    "low_fps",
                    "medium",
                    f"Average FPS {avg_fps:.1f} is below optimal threshold",
                )
            )
            bottlenecks.append("Rendering")

        drops = detect_drops(metrics.fps, FPS_DROP)
        if drops:
            alerts.append(
                _alert("fps_drops", "low", f"Detected {len(drops)} FPS drops below {FPS_DROP:g}")
            )

    return {"summary": summary, "trends": trends, "alerts": alerts, "bottlenecks": bottlenecks}


# ── Recommendations ──────────────────────────────────────────────────────────

_CPU_RECOMMENDATIONS: dict[str, Recommendation] = {
    "critical": Recommendation(
        category="cpu",
        priority="high",
        title="Optimize CPU Usage",
        description="CPU usage is critically high, consider optimization strategies",
        actions=[
            "Profile CPU-intensive functions using performance profilers",
            "Implement debouncing for frequent operations",
            "Move heavy calculations off the UI thread",
            "Optimize loops and algorithms",
            "Implement lazy loading for expensive operations",
        ],
    ),
    "warning": Recommendation(
        category="cpu",
        priority="medium",
        title="Monitor CPU Usage",
        description="CPU usage is elevated, monitor for patterns",
        actions=[
            "Identify peak usage times",
            "Consider caching frequently computed values",
            "Review background processes",
        ],
    ),
}

_MEMORY_RECOMMENDATIONS: dict[str, Recommendation] = {
    "critical": Recommendation(
        category="memory",
        priority="high",
        title="Reduce Memory Usage",
        description="Memory usage is critically high, implement memory optimization",
        actions=[
            "Check for memory leaks using heap profilers",
            "Implement object pooling for frequently created objects",
            "Optimize image and asset loading",
            "Review data structures for efficiency",
            "Implement proper cleanup in destructors/unmount",
        ],
    ),
    "warning": Recommendation(
        category="memory",
        priority="medium",
        title="Monitor Memory Usage",
        description="Memory usage is elevated, consider optimization",
        actions=[
            "Track memory growth across long sessions",
            "Release caches that are no longer needed",
        ],
    ),
}

_RENDERING_RECOMMENDATION = Recommendation(
    category="rendering",
    priority="medium",
    title="Improve Rendering Performance",
    description="Frame rate can be improved for better user experience",
    actions=[
        "Optimize animations using transform and opacity",
        "Reduce layout changes and batch updates",
        "Use GPU acceleration where available",
        "Implement virtual scrolling for long lists",
        "Debounce resize and scroll event handlers",
    ],
)


def generate_recommendations(analysis: dict[str, Any]) -> list[dict[str, Any]]:
    """Canned remediation lists for the statuses and bottlenecks found."""
    summary = analysis.get("summary", {})
    recommendations: list[Recommendation] = []

    cpu_status = summary.get("cpu", {}).get("status")
    if cpu_status in _CPU_RECOMMENDATIONS:
        recommendations.append(_CPU_RECOMMENDATIONS[cpu_status])

    memory_status = summary.get("memory", {}).get("status")
    if memory_status in _MEMORY_RECOMMENDATIONS:
        recommendations.append(_MEMORY_RECOMMENDATIONS[memory_status])

    if "fps" in summary and summary["fps"]["status"] != "excellent":
        recommendations.append(_RENDERING_RECOMMENDATION)

    bottlenecks = analysis.get("bottlenecks", [])
    if bottlenecks:
        recommendations.append(
            Recommendation(
                category="general",
                priority="high",
                title="Address Performance Bottlenecks",
                description=f"Identified bottlenecks: {', '.join(bottlenecks)}",
                actions=[
                    "Use performance profiling tools to identify specific issues",
                    "Consider implementing performance budgets",
                    "Set up continuous performance monitoring",
                    "Review architecture for scalability issues",
                ],
            )
        )

    return [r.model_dump() for r in recommendations]
