from .scheduler import AsyncioScheduler, Scheduler, VirtualScheduler

__all__ = ["AsyncioScheduler", "Scheduler", "VirtualScheduler"]
