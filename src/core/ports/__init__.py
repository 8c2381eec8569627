# incentapply-core: ports (Protocol interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.time import ClockPort

__all__ = [
    "ClockPort",
]
