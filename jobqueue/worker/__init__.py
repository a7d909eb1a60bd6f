"""
Worker module.
Contains the polling worker and the job handler registry.
"""

from jobqueue.worker.handlers import execute_job, get_handler, list_handlers, register_handler
from jobqueue.worker.main import Worker, run

__all__ = ["Worker", "run", "execute_job", "register_handler", "get_handler", "list_handlers"]
