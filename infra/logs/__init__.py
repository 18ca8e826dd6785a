from .filesystem_screenshot_store import FileSystemScreenshotStore

__all__ = ["FileSystemScreenshotStore"]
