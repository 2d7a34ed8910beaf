"""
UI hierarchy extraction and analysis.

Extraction is delegated to platform utilities: xwininfo (via xdotool to
find the window) on Linux and System Events through osascript on macOS.
The stub provider returns a fixed illustrative window. Analysis walks the
resulting UIElement tree for accessibility issues, common design
patterns, structural performance concerns and a compliance verdict.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from typing import Any, Protocol

from agent_toolbox.mcp_base import CapabilityError, NotFoundError, PlatformUnsupportedError
from agent_toolbox.shell import DEFAULT_TIMEOUT, current_platform, run_command
from agent_toolbox.toolbox_types import (
    AccessibilityIssue,
    PerformanceConcern,
    Position,
    Size,
    UIElement,
)

_logger = logging.getLogger("agent_toolbox.ui_tree")

WCAG_AA_CONTRAST = 4.5
MAX_ELEMENTS = 1000
MAX_NESTING = 10

ALWAYS_KEPT_FIELDS = frozenset({"id", "type", "children"})


class HierarchyProvider(Protocol):
    async def extract(self, target: str) -> UIElement: ...


# ── Stub provider ────────────────────────────────────────────────────────────


def create_mock_hierarchy(target: str) -> UIElement:
    """A small illustrative window used when no accessibility source is available."""
    return UIElement(
        id="root",
        type="window",
        text=target,
        position=Position(x=0, y=0),
        size=Size(width=1920, height=1080),
        children=[
            UIElement(
                id="toolbar",
                type="toolbar",
                position=Position(x=0, y=0),
                size=Size(width=1920, height=60),
                children=[
                    UIElement(
                        id="btn-file",
                        type="button",
                        text="File",
                        position=Position(x=10, y=10),
                        size=Size(width=60, height=40),
                    ),
                    UIElement(
                        id="btn-edit",
                        type="button",
                        text="Edit",
                        position=Position(x=80, y=10),
                        size=Size(width=60, height=40),
                    ),
                ],
            ),
            UIElement(
                id="content",
                type="container",
                position=Position(x=0, y=60),
                size=Size(width=1920, height=1020),
                children=[
                    UIElement(
                        id="main-text",
                        type="text",
                        text="Main content area",
                        font_size=14,
                        font_family="Arial",
                        color="#000000",
                        background="#ffffff",
                    )
                ],
            ),
        ],
    )


class StubHierarchyProvider:
    async def extract(self, target: str) -> UIElement:
        return create_mock_hierarchy(target)


# ── Real provider ────────────────────────────────────────────────────────────

# 0x2a00007 "Title": ("res" "Class")  800x600+10+20  +10+20
_XWININFO_LINE = re.compile(
    r"^(?P<indent>\s*)(?P<wid>0x[0-9a-fA-F]+)\s+(?P<name>\(has no name\)|\".*?\")"
    r"(?::\s+\((?P<cls>[^)]*)\))?\s+(?P<w>\d+)x(?P<h>\d+)[+-]-?\d+[+-]-?\d+\s+"
    r"\+(?P<x>-?\d+)\+(?P<y>-?\d+)"
)

_APPLESCRIPT_ELEMENTS = """
on run argv
    set targetName to item 1 of argv
    set output to ""
    tell application "System Events"
        tell process targetName
            set win to window 1
            set {wx, wy} to position of win
            set {ww, wh} to size of win
            set output to "window|" & (name of win) & "|" & wx & "," & wy & "|" & ww & "," & wh & linefeed
            repeat with el in UI elements of win
                try
                    set {ex, ey} to position of el
                    set {ew, eh} to size of el
                    set output to output & (role of el) & "|" & (name of el as text) & "|" & ex & "," & ey & "|" & ew & "," & eh & linefeed
                end try
            end repeat
        end tell
    end tell
    return output
end run
"""


def parse_xwininfo_tree(output: str) -> UIElement:
    """Build the full UIElement tree from `xwininfo -tree` output (root window first)."""
    root: UIElement | None = None
    stack: list[tuple[int, UIElement]] = []

    for line in output.splitlines():
        if root is None and "Window id:" in line:
            match = re.search(r"Window id:\s+(0x[0-9a-fA-F]+)\s*(.*)", line)
            if match:
                root = UIElement(id=match.group(1), type="window", text=match.group(2).strip('" '))
                stack = [(-1, root)]
            continue

        match = _XWININFO_LINE.match(line)
        if match is None or root is None:
            continue

        indent = len(match.group("indent"))
        while stack and stack[-1][0] >= indent:
            stack.pop()
        parent = stack[-1][1] if stack else root
        level = len(stack)

        name = match.group("name")
        element = UIElement(
            id=match.group("wid"),
            type="window" if level == 1 else "child_window",
            text=None if name == "(has no name)" else name.strip('"'),
            position=Position(x=int(match.group("x")), y=int(match.group("y"))),
            size=Size(width=int(match.group("w")), height=int(match.group("h"))),
            properties={"class": match.group("cls")} if match.group("cls") else None,
        )
        parent.children.append(element)
        stack.append((indent, element))

    if root is None:
        raise CapabilityError("Could not parse xwininfo output")
    return root


def parse_applescript_elements(output: str, target: str) -> UIElement:
    """Build a one-level tree from the role|name|x,y|w,h lines the AppleScript prints."""
    root: UIElement | None = None
    for index, line in enumerate(row for row in output.splitlines() if row.strip()):
        parts = line.split("|")
        if len(parts) != 4:
            continue
        role, name, pos, size = parts
        try:
            x, y = (int(float(v)) for v in pos.split(","))
            w, h = (int(float(v)) for v in size.split(","))
        except ValueError:
            continue
        element = UIElement(
            id="root" if root is None else f"{role.lower()}-{index}",
            type=role.removeprefix("AX").lower() or "element",
            text=name if name and name != "missing value" else None,
            position=Position(x=x, y=y),
            size=Size(width=w, height=h),
        )
        if root is None:
            root = element
        else:
            root.children.append(element)

    if root is None:
        raise CapabilityError(f"No window found for process '{target}'")
    return root


class SystemHierarchyProvider:
    """Reads the live window tree through platform utilities."""

    def __init__(self, command_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = command_timeout

    async def extract(self, target: str) -> UIElement:
        platform = current_platform()
        if platform == "linux":
            return await self._extract_linux(target)
        if platform == "darwin":
            return await self._extract_macos(target)
        raise PlatformUnsupportedError(
            f"UI inspection is not supported on platform: {platform}. "
            "Set AGENT_TOOLBOX_UI_INSPECT_MODE=stub for illustrative output."
        )

    async def _extract_linux(self, target: str) -> UIElement:
        search = await run_command(
            ["xdotool", "search", "--onlyvisible", "--name", target],
            timeout=self._timeout,
            check=False,
        )
        window_ids = search.stdout.split()
        if not window_ids:
            raise NotFoundError(f"No window matching '{target}'")

        tree = await run_command(
            ["xwininfo", "-tree", "-id", window_ids[0]], timeout=self._timeout
        )
        root = parse_xwininfo_tree(tree.stdout)
        root.id = "root"
        root.text = root.text or target
        return root

    async def _extract_macos(self, target: str) -> UIElement:
        result = await run_command(
            ["osascript", "-e", _APPLESCRIPT_ELEMENTS, target], timeout=self._timeout
        )
        return parse_applescript_elements(result.stdout, target)


# ── Tree utilities ───────────────────────────────────────────────────────────


def traverse(element: UIElement, depth: int = 0) -> Iterator[tuple[UIElement, int]]:
    """Pre-order walk yielding (element, depth)."""
    yield element, depth
    for child in element.children:
        yield from traverse(child, depth + 1)


def count_elements(element: UIElement) -> int:
    return sum(1 for _ in traverse(element))


def find_element(root: UIElement, element_path: str) -> UIElement:
    """Resolve a slash-separated id path, e.g. 'root/toolbar/btn-file'."""
    parts = [p for p in element_path.strip("/").split("/") if p]
    if parts and parts[0] == root.id:
        parts = parts[1:]

    current = root
    for part in parts:
        current = next((c for c in current.children if c.id == part), None)  # type: ignore[assignment]
        if current is None:
            raise NotFoundError(f"Element path not found: {element_path}")
    return current


def prune(element: UIElement, max_depth: int, depth: int = 0) -> UIElement:
    """Copy of the tree without nodes deeper than max_depth (root is depth 0)."""
    children = [] if depth >= max_depth else [prune(c, max_depth, depth + 1) for c in element.children]
    return element.model_copy(update={"children": children})


def select_properties(element: UIElement, properties: list[str]) -> dict[str, Any]:
    """Serialized tree keeping only id, type, children and the requested keys."""
    keep = ALWAYS_KEPT_FIELDS | set(properties)
    data = {k: v for k, v in element.to_dict().items() if k in keep}
    data["children"] = [select_properties(c, properties) for c in element.children]
    return data


# ── Analysis ─────────────────────────────────────────────────────────────────


def _relative_luminance(hex_color: str) -> float:
    value = hex_color.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Unsupported color: {hex_color}")
    channels = [int(value[i : i + 2], 16) / 255 for i in (0, 2, 4)]
    linear = [c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4 for c in channels]
    return 0.2126 * linear[0] + 0.7152 * linear[1] + 0.0722 * linear[2]


def contrast_ratio(foreground: str, background: str) -> float:
    """WCAG 2 contrast ratio between two hex colors (1.0 to 21.0)."""
    l1 = _relative_luminance(foreground)
    l2 = _relative_luminance(background)
    lighter, darker = max(l1, l2), min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def check_accessibility(root: UIElement) -> list[AccessibilityIssue]:
    issues: list[AccessibilityIssue] = []
    for element, _ in traverse(root):
        if element.type == "image" and not element.alt_text:
            issues.append(
                AccessibilityIssue(
                    type="missing_alt_text",
                    element=element.id,
                    severity="high",
                    description="Image element missing alternative text",
                )
            )
        if element.type == "button" and not element.label and not element.text:
            issues.append(
                AccessibilityIssue(
                    type="unlabeled_button",
                    element=element.id,
                    severity="high",
                    description="Button element has no accessible label",
                )
            )
        if element.color and element.background:
            try:
                ratio = contrast_ratio(element.color, element.background)
            except ValueError:
                _logger.debug("Skipping contrast check for %s", element.id)
            else:
                if ratio < WCAG_AA_CONTRAST:
                    issues.append(
                        AccessibilityIssue(
                            type="insufficient_contrast",
                            element=element.id,
                            severity="medium",
                            description=(
                                f"Color contrast ratio {ratio:.2f} is below "
                                f"WCAG AA standard ({WCAG_AA_CONTRAST}:1)"
                            ),
                        )
                    )
        if element.type in ("input", "textfield") and not element.label:
            issues.append(
                AccessibilityIssue(
                    type="missing_form_label",
                    element=element.id,
                    severity="high",
                    description="Form input missing associated label",
                )
            )
    return issues


def _any(root: UIElement, predicate: Callable[[UIElement], bool]) -> bool:
    return any(predicate(el) for el, _ in traverse(root))


def identify_design_patterns(root: UIElement) -> list[str]:
    patterns: list[str] = []
    if _any(
        root,
        lambda e: e.type in ("drawer", "navigation-drawer")
        or (e.type == "container" and "drawer" in e.id),
    ):
        patterns.append("navigation_drawer")
    if _any(
        root,
        lambda e: e.type in ("tab", "tabbar") or (e.type == "container" and "tab" in e.id),
    ):
        patterns.append("tab_bar")
    if sum(1 for e, _ in traverse(root) if e.type == "card" or "card" in e.id) >= 2:
        patterns.append("card_layout")
    if _any(
        root,
        lambda e: e.type == "grid" or (e.style or {}).get("display") == "grid" or "grid" in e.id,
    ):
        patterns.append("grid_layout")
    if _any(root, lambda e: e.type == "toolbar" or "toolbar" in e.id):
        patterns.append("toolbar")
    if _any(root, lambda e: e.type in ("modal", "dialog") or "modal" in e.id):
        patterns.append("modal_dialog")
    return patterns


def analyze_structure(root: UIElement) -> list[PerformanceConcern]:
    element_count = 0
    max_depth = 0
    for _, depth in traverse(root):
        element_count += 1
        max_depth = max(max_depth, depth)

    concerns: list[PerformanceConcern] = []
    if element_count > MAX_ELEMENTS:
        concerns.append(
            PerformanceConcern(
                type="excessive_dom_elements",
                severity="high",
                description=f"UI has {element_count} elements, which may impact performance",
                recommendation="Consider implementing virtualization or lazy loading",
            )
        )
    if max_depth > MAX_NESTING:
        concerns.append(
            PerformanceConcern(
                type="deep_nesting",
                severity="medium",
                description=(
                    f"UI hierarchy depth is {max_depth}, which may impact rendering performance"
                ),
                recommendation="Consider flattening the component structure",
            )
        )
    return concerns


def check_compliance(issues: list[AccessibilityIssue]) -> dict[str, bool]:
    has_high = any(issue.severity == "high" for issue in issues)
    return {
        "wcag_aa": not has_high,
        "section_508": not has_high,
        "aria_compliance": not any(i.type == "unlabeled_button" for i in issues),
    }


def analyze_ui(root: UIElement) -> dict[str, Any]:
    issues = check_accessibility(root)
    return {
        "accessibility_issues": [i.model_dump() for i in issues],
        "design_patterns": identify_design_patterns(root),
        "performance_concerns": [c.model_dump() for c in analyze_structure(root)],
        "compliance": check_compliance(issues),
    }
