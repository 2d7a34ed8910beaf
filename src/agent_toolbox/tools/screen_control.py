"""
screen_control — Synthesize mouse and keyboard input.

Linux drives xdotool, macOS cliclick and Windows PowerShell. Commands are
planned as argv lists first and then executed one by one; in stub mode the
plan is reported instead of executed.

Destructive in the sense that it acts on the user's desktop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from pydantic import BaseModel, Field

from agent_toolbox.mcp_base import (
    CapabilityMode,
    MCPTool,
    PlatformUnsupportedError,
    ToolResult,
    ValidationError,
)
from agent_toolbox.shell import DEFAULT_TIMEOUT, current_platform, run_command
from agent_toolbox.validation import missing_fields

_logger = logging.getLogger("agent_toolbox.tools.screen_control")

Action = Literal[
    "click", "double_click", "right_click", "type", "key", "scroll", "drag", "move_mouse"
]
Button = Literal["left", "right", "middle"]
ScrollDirection = Literal["up", "down", "left", "right"]

COORDINATE_ACTIONS = frozenset({"click", "double_click", "right_click", "drag", "move_mouse"})


# ---- Params -----------------------------------------------------------------


class Params(BaseModel):
    """Parameters for screen_control."""

    action: Action = Field(description="Action to perform")
    x: int | None = Field(default=None, description="X coordinate for mouse actions")
    y: int | None = Field(default=None, description="Y coordinate for mouse actions")
    text: str | None = Field(default=None, description="Text to type (for type action)")
    key: str | None = Field(
        default=None, description='Key or key combination (e.g., "ctrl+c", "enter", "tab")'
    )
    scroll_direction: ScrollDirection = Field(default="down", description="Scroll direction")
    scroll_amount: int = Field(default=3, ge=1, description="Number of scroll steps")
    end_x: int | None = Field(default=None, description="End X coordinate for drag action")
    end_y: int | None = Field(default=None, description="End Y coordinate for drag action")
    button: Button = Field(default="left", description="Mouse button to use")
    delay: int = Field(default=100, ge=0, description="Delay after action in milliseconds")


# ---- Key translation --------------------------------------------------------

_LINUX_KEYS = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "cmd": "ctrl",
    "super": "super",
    "alt": "alt",
    "shift": "shift",
    "enter": "Return",
    "return": "Return",
    "esc": "Escape",
    "escape": "Escape",
    "del": "Delete",
    "delete": "Delete",
    "backspace": "BackSpace",
    "tab": "Tab",
    "space": "space",
    "home": "Home",
    "end": "End",
    "up": "Up",
    "down": "Down",
    "left": "Left",
    "right": "Right",
    "pageup": "Prior",
    "pagedown": "Next",
}

_MAC_MODIFIERS = {"ctrl": "cmd", "control": "ctrl", "cmd": "cmd", "alt": "alt", "shift": "shift"}

_MAC_KEYS = {
    "enter": "return",
    "return": "return",
    "esc": "esc",
    "escape": "esc",
    "del": "fwd-delete",
    "delete": "fwd-delete",
    "backspace": "delete",
    "tab": "tab",
    "space": "space",
    "home": "home",
    "end": "end",
    "up": "arrow-up",
    "down": "arrow-down",
    "left": "arrow-left",
    "right": "arrow-right",
    "pageup": "page-up",
    "pagedown": "page-down",
}

_WINDOWS_MODIFIERS = {"ctrl": "^", "control": "^", "cmd": "^", "alt": "%", "shift": "+"}

_WINDOWS_KEYS = {
    "enter": "{ENTER}",
    "return": "{ENTER}",
    "esc": "{ESC}",
    "escape": "{ESC}",
    "del": "{DELETE}",
    "delete": "{DELETE}",
    "backspace": "{BACKSPACE}",
    "tab": "{TAB}",
    "space": " ",
    "home": "{HOME}",
    "end": "{END}",
    "up": "{UP}",
    "down": "{DOWN}",
    "left": "{LEFT}",
    "right": "{RIGHT}",
    "pageup": "{PGUP}",
    "pagedown": "{PGDN}",
}


def _split_combo(key: str) -> list[str]:
    parts = [p.strip() for p in key.split("+")]
    if not all(parts):
        raise ValidationError(f"Invalid key combination: {key}")
    return parts


def to_xdotool_key(key: str) -> str:
    """'ctrl+enter' -> 'ctrl+Return'."""
    return "+".join(_LINUX_KEYS.get(p.lower(), p) for p in _split_combo(key))


def to_cliclick_args(key: str) -> list[str]:
    """Hold modifiers with kd/ku around a kp (special key) or t (character)."""
    *mods, main = _split_combo(key)
    modifiers = []
    for mod in mods:
        if mod.lower() not in _MAC_MODIFIERS:
            raise ValidationError(f"Unsupported modifier: {mod}")
        modifiers.append(_MAC_MODIFIERS[mod.lower()])

    special = _MAC_KEYS.get(main.lower())
    press = f"kp:{special}" if special else f"t:{main}"
    if not modifiers:
        return [press]
    held = ",".join(modifiers)
    return [f"kd:{held}", press, f"ku:{held}"]


def to_sendkeys(key: str) -> str:
    """'ctrl+shift+s' -> '^+s' in SendKeys notation."""
    *mods, main = _split_combo(key)
    prefix = ""
    for mod in mods:
        if mod.lower() not in _WINDOWS_MODIFIERS:
            raise ValidationError(f"Unsupported modifier: {mod}")
        prefix += _WINDOWS_MODIFIERS[mod.lower()]
    special = _WINDOWS_KEYS.get(main.lower())
    if special is None:
        special = "{" + main + "}" if len(main) == 1 and main in "+^%~(){}[]" else main
    return prefix + special


# ---- Command planning -------------------------------------------------------

_LINUX_BUTTONS = {"left": "1", "middle": "2", "right": "3"}
_LINUX_SCROLL_BUTTONS = {"up": "4", "down": "5", "left": "6", "right": "7"}
_MAC_CLICKS = {"left": "c", "right": "rc", "middle": "c"}

# Windows mouse input goes through user32 mouse_event
_WIN_PRELUDE = (
    "Add-Type -AssemblyName System.Windows.Forms; "
    "Add-Type -MemberDefinition '[DllImport(\"user32.dll\")] public static extern void "
    "mouse_event(int f, int x, int y, int d, int i);' -Name U32 -Namespace W; "
)
_WIN_BUTTON_FLAGS = {"left": (0x02, 0x04), "right": (0x08, 0x10), "middle": (0x20, 0x40)}
_WIN_WHEEL = {"up": (0x0800, 120), "down": (0x0800, -120), "left": (0x1000, -120), "right": (0x1000, 120)}


def _ps(script: str) -> list[str]:
    return ["powershell", "-NoProfile", "-Command", script]


def _win_move(x: int, y: int) -> str:
    return f"[System.Windows.Forms.Cursor]::Position = New-Object System.Drawing.Point({x}, {y}); "


def _win_click(button: str, times: int = 1) -> str:
    down, up = _WIN_BUTTON_FLAGS[button]
    return f"[W.U32]::mouse_event({down},0,0,0,0); [W.U32]::mouse_event({up},0,0,0,0); " * times


def plan_commands(params: Params, platform: str) -> tuple[list[list[str]], str]:
    """Commands to run for an action and the text describing it."""
    x, y, action = params.x, params.y, params.action
    button = "right" if action == "right_click" else params.button

    if platform not in ("linux", "darwin", "win32"):
        raise PlatformUnsupportedError(f"Platform {platform} not supported for screen control")

    if action in ("click", "right_click"):
        description = f"Clicked {button} button at ({x}, {y})"
        if platform == "linux":
            return [["xdotool", "mousemove", str(x), str(y), "click", _LINUX_BUTTONS[button]]], description
        if platform == "darwin":
            return [["cliclick", f"{_MAC_CLICKS[button]}:{x},{y}"]], description
        return [_ps(_WIN_PRELUDE + _win_move(x, y) + _win_click(button))], description

    if action == "double_click":
        description = f"Double-clicked at ({x}, {y})"
        if platform == "linux":
            return [["xdotool", "mousemove", str(x), str(y), "click", "--repeat", "2", "1"]], description
        if platform == "darwin":
            return [["cliclick", f"dc:{x},{y}"]], description
        return [_ps(_WIN_PRELUDE + _win_move(x, y) + _win_click("left", 2))], description

    if action == "type":
        text = params.text or ""
        description = f'Typed: "{text}"'
        if platform == "linux":
            return [["xdotool", "type", "--", text]], description
        if platform == "darwin":
            return [["cliclick", f"t:{text}"]], description
        escaped = "".join("{" + ch + "}" if ch in "+^%~(){}[]" else ch for ch in text)
        escaped = escaped.replace("'", "''")
        return [_ps(f"{_WIN_PRELUDE}[System.Windows.Forms.SendKeys]::SendWait('{escaped}')")], description

    if action == "key":
        key = params.key or ""
        description = f"Pressed key: {key}"
        if platform == "linux":
            return [["xdotool", "key", to_xdotool_key(key)]], description
        if platform == "darwin":
            return [["cliclick", *to_cliclick_args(key)]], description
        sendkeys = to_sendkeys(key).replace("'", "''")
        return [_ps(f"{_WIN_PRELUDE}[System.Windows.Forms.SendKeys]::SendWait('{sendkeys}')")], description

    if action == "scroll":
        direction, amount = params.scroll_direction, params.scroll_amount
        located = x is not None and y is not None
        description = f"Scrolled {direction} {amount} times" + (f" at ({x}, {y})" if located else "")
        if platform == "linux":
            argv = ["xdotool"]
            if located:
                argv += ["mousemove", str(x), str(y)]
            argv += ["click", "--repeat", str(amount), _LINUX_SCROLL_BUTTONS[direction]]
            return [argv], description
        if platform == "darwin":
            # cliclick has no wheel command; fall back to arrow keys
            argv = ["cliclick"]
            if located:
                argv.append(f"m:{x},{y}")
            argv += [f"kp:arrow-{direction}"] * amount
            return [argv], description
        flag, delta = _WIN_WHEEL[direction]
        script = _WIN_PRELUDE + (_win_move(x, y) if located else "")
        script += f"[W.U32]::mouse_event({flag},0,0,{delta * amount},0)"
        return [_ps(script)], description

    if action == "drag":
        ex, ey = params.end_x, params.end_y
        description = f"Dragged from ({x}, {y}) to ({ex}, {ey})"
        if platform == "linux":
            return [
                [
                    "xdotool", "mousemove", str(x), str(y), "mousedown", "1",
                    "mousemove", str(ex), str(ey), "mouseup", "1",
                ]
            ], description
        if platform == "darwin":
            return [["cliclick", f"m:{x},{y}", f"dd:{x},{y}", f"du:{ex},{ey}"]], description
        down, up = _WIN_BUTTON_FLAGS["left"]
        script = (
            _WIN_PRELUDE
            + _win_move(x, y)
            + f"[W.U32]::mouse_event({down},0,0,0,0); Start-Sleep -Milliseconds 100; "
            + _win_move(ex, ey)
            + f"[W.U32]::mouse_event({up},0,0,0,0)"
        )
        return [_ps(script)], description

    # move_mouse
    description = f"Moved mouse to ({x}, {y})"
    if platform == "linux":
        return [["xdotool", "mousemove", str(x), str(y)]], description
    if platform == "darwin":
        return [["cliclick", f"m:{x},{y}"]], description
    return [_ps(_WIN_PRELUDE + _win_move(x, y))], description


# ---- Tool Implementation ----------------------------------------------------


class ScreenControlTool(MCPTool[Params]):
    """Mouse and keyboard automation."""

    name = "screen_control"
    description = (
        "Control mouse and keyboard: click, double/right click, type text, press keys "
        "or combinations, scroll, drag and move the mouse to screen coordinates."
    )
    error_prefix = "Screen control failed"

    def __init__(
        self,
        capability_mode: CapabilityMode = "real",
        command_timeout: float = DEFAULT_TIMEOUT,
        platform: str | None = None,
    ) -> None:
        super().__init__(capability_mode)
        self._command_timeout = command_timeout
        self._platform = platform

    async def run(self, params: Params) -> ToolResult:
        self._check_required(params)

        platform = self._platform or current_platform()
        commands, description = plan_commands(params, platform)

        if self.capability_mode == "stub":
            planned = " && ".join(" ".join(argv) for argv in commands)
            _logger.info("Simulated %s: %s", params.action, planned)
            return ToolResult.from_text(f"Simulated: {description}")

        for argv in commands:
            await run_command(argv, timeout=self._command_timeout)

        if params.delay > 0:
            await asyncio.sleep(params.delay / 1000)
        return ToolResult.from_text(description)

    @staticmethod
    def _check_required(params: Params) -> None:
        required: list[str] = []
        if params.action in COORDINATE_ACTIONS:
            required += ["x", "y"]
        if params.action == "drag":
            required += ["end_x", "end_y"]
        if params.action == "type":
            required.append("text")
        if params.action == "key":
            required.append("key")

        missing = missing_fields(params, required)
        if params.action == "type" and params.text == "":
            missing.append("text")
        if missing:
            raise ValidationError(
                f"{', '.join(missing)} required for {params.action} action", missing
            )
