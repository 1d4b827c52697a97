from .cleanup_job import start_cleanup_job

__all__ = ['start_cleanup_job']
