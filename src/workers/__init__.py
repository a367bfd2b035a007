from src.workers.scheduler import BackgroundScheduler

__all__ = ["BackgroundScheduler"]
