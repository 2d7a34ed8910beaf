"""The five toolbox tools, one module each."""

from agent_toolbox.tools.file_watcher import FileWatcherTool
from agent_toolbox.tools.performance_monitor import PerformanceMonitorTool
from agent_toolbox.tools.screen_control import ScreenControlTool
from agent_toolbox.tools.screenshot import ScreenshotTool
from agent_toolbox.tools.ui_inspect import UIInspectTool

__all__ = [
    "FileWatcherTool",
    "PerformanceMonitorTool",
    "ScreenControlTool",
    "ScreenshotTool",
    "UIInspectTool",
]
