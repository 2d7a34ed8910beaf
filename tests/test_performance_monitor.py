"""Tests for the performance_monitor tool."""

from __future__ import annotations

import json

import pytest

from agent_toolbox.metrics import StubMetricsProvider
from agent_toolbox.tools.performance_monitor import PerformanceMonitorTool


def _make_tool(**readings: float) -> PerformanceMonitorTool:
    return PerformanceMonitorTool("stub", metrics_provider=StubMetricsProvider(**readings))


async def test_high_cpu_reports_critical() -> None:
    """A constant 95% CPU reading is critical with a high_cpu_usage alert."""
    tool = _make_tool(cpu_usage=95)
    result = await tool.execute(
        {"target": "myapp", "duration": 0.2, "interval": 0.1, "metrics": ["cpu"]}
    )

    assert result.is_error is False
    report = json.loads(result.text)
    assert report["summary"]["cpu"]["status"] == "critical"
    assert report["summary"]["cpu"]["average"] == 95
    assert "high_cpu_usage" in {a["type"] for a in report["alerts"]}
    assert "CPU" in report["performance_analysis"]["bottlenecks"]
    assert report["recommendations"][0]["title"] == "Optimize CPU Usage"


async def test_report_shape() -> None:
    tool = _make_tool()
    report = json.loads((await tool.execute({"target": "myapp", "duration": 0})).text)

    assert set(report) == {
        "summary",
        "detailed_metrics",
        "performance_analysis",
        "recommendations",
        "alerts",
        "metadata",
    }
    assert set(report["detailed_metrics"]) == {"timestamp", "cpu", "memory"}
    metadata = report["metadata"]
    assert metadata["target"] == "myapp"
    assert metadata["samples"] == 1
    assert metadata["capability_mode"] == "stub"
    assert metadata["process"] is None


async def test_normal_readings_have_no_alerts() -> None:
    tool = _make_tool(cpu_usage=20, memory_percent=40)
    report = json.loads(
        (await tool.execute({"target": "x", "duration": 0, "metrics": ["cpu", "memory"]})).text
    )
    assert report["alerts"] == []
    assert report["recommendations"] == []


async def test_fps_metric() -> None:
    tool = _make_tool(fps=20)
    report = json.loads(
        (await tool.execute({"target": "game", "duration": 0, "metrics": ["fps"]})).text
    )
    assert report["summary"]["fps"]["status"] == "critical"
    assert "Rendering" in report["performance_analysis"]["bottlenecks"]


async def test_all_metric_kinds_sampled() -> None:
    tool = _make_tool()
    kinds = ["cpu", "memory", "gpu", "network", "disk", "fps"]
    report = json.loads(
        (await tool.execute({"target": "x", "duration": 0, "metrics": kinds})).text
    )
    for kind in kinds:
        assert len(report["detailed_metrics"][kind]) == 1


@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"target": "x", "interval": 0},
        {"target": "x", "duration": -1},
        {"target": "x", "metrics": ["temperature"]},
    ],
)
async def test_invalid_arguments(arguments: dict) -> None:
    result = await _make_tool().execute(arguments)
    assert result.is_error is True
    assert result.text.startswith("Performance monitoring failed: Invalid arguments")


async def test_stub_mode_uses_stub_provider() -> None:
    tool = PerformanceMonitorTool("stub")
    assert isinstance(tool.provider, StubMetricsProvider)


def test_metadata() -> None:
    definition = PerformanceMonitorTool("stub").definition
    assert definition.name == "performance_monitor"
    props = definition.input_schema["properties"]
    assert props["duration"]["default"] == 30
    assert props["interval"]["default"] == 1
    assert definition.input_schema["required"] == ["target"]
