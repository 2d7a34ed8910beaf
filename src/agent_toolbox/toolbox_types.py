"""
Shared Pydantic models for the toolbox.

Named toolbox_types.py (NOT types.py) to avoid shadowing the stdlib types module.
Tools and capability providers import their shared data models from here.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---- Screen geometry ---------------------------------------------------------


class Region(BaseModel):
    """Rectangular region on screen, in pixels.

    Sizes are not range-checked here; cropping reports bad geometry.
    """

    x: int = Field(description="X coordinate of the top-left corner")
    y: int = Field(description="Y coordinate of the top-left corner")
    width: int = Field(description="Width of the region in pixels")
    height: int = Field(description="Height of the region in pixels")


class Position(BaseModel):
    x: int
    y: int


class Size(BaseModel):
    width: int
    height: int


# ---- UI hierarchy ------------------------------------------------------------


class UIElement(BaseModel):
    """A node of an application's UI element tree."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Element identifier, unique among its siblings")
    type: str = Field(description="Element role (window, toolbar, button, text, ...)")
    text: str | None = None
    label: str | None = None
    alt_text: str | None = Field(default=None, alias="altText")
    position: Position | None = None
    size: Size | None = None
    style: dict[str, Any] | None = None
    properties: dict[str, Any] | None = None
    font_size: float | None = Field(default=None, alias="fontSize")
    font_family: str | None = Field(default=None, alias="fontFamily")
    color: str | None = None
    background: str | None = None
    children: list[UIElement] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


Severity = Literal["high", "medium", "low"]


class AccessibilityIssue(BaseModel):
    type: str
    element: str
    severity: Severity
    description: str


class PerformanceConcern(BaseModel):
    type: str
    severity: Severity
    description: str
    recommendation: str


# ---- Performance metrics -----------------------------------------------------

MetricKind = Literal["cpu", "memory", "gpu", "network", "disk", "fps"]


class CPUMetric(BaseModel):
    usage: float
    user: float
    system: float


class MemoryMetric(BaseModel):
    used: int
    free: int
    usage_percent: float


class GPUMetric(BaseModel):
    utilization: float
    memory_used: float


class NetworkMetric(BaseModel):
    rx_bytes: int
    tx_bytes: int


class DiskMetric(BaseModel):
    read_bytes: float
    write_bytes: float


class MetricSeries(BaseModel):
    """Samples collected during one monitoring run, one list per metric kind."""

    timestamp: list[str] = Field(default_factory=list)
    cpu: list[CPUMetric] = Field(default_factory=list)
    memory: list[MemoryMetric] = Field(default_factory=list)
    gpu: list[GPUMetric] = Field(default_factory=list)
    network: list[NetworkMetric] = Field(default_factory=list)
    disk: list[DiskMetric] = Field(default_factory=list)
    fps: list[float] = Field(default_factory=list)


class PerformanceAlert(BaseModel):
    type: str
    severity: Severity
    message: str


class Recommendation(BaseModel):
    category: str
    priority: Severity
    title: str
    description: str
    actions: list[str] = Field(default_factory=list)
