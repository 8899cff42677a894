from datetime import datetime

from app.utils.clock import local_now


def get_now() -> datetime:
    """Dependency supplying the current moment; tests override it with a fixed one."""
    return local_now()
