from .structured_logger import StructuredLogger
from .system_runtime import SystemClock, UuidIdGenerator

__all__ = ["SystemClock", "UuidIdGenerator", "StructuredLogger"]
