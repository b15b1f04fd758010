from functools import lru_cache

from app.database.session import get_db
from app.services.job_runner import ImportJobRunner


@lru_cache
def get_job_runner() -> ImportJobRunner:
    """One runner per process, shared by every request."""
    return ImportJobRunner()


__all__ = ["get_db", "get_job_runner"]
