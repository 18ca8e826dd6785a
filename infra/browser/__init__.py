from .dialog_sweeper import DialogSweeper
from .playwright_browser import PlaywrightBrowser

__all__ = ["PlaywrightBrowser", "DialogSweeper"]
