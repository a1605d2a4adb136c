from noteweave.srs.scheduler import DEFAULT_MATURE_INTERVAL, Scheduler

__all__ = ["DEFAULT_MATURE_INTERVAL", "Scheduler"]
