"""Background workers driving staging records through their lifecycle."""

from .lifecycle_worker import LifecycleTimings, LifecycleWorker, RandomProgressSource

__all__ = ["LifecycleTimings", "LifecycleWorker", "RandomProgressSource"]
