"""
couchsweep

Page through a CouchDB database, run task functions over every document
and write the changes back in bulk.
"""

from .couchdb_io import CouchDBConnection
from .documents import BulkResult
from .hashing import hash_document
from .runner import flush_queue, report, run_tasks
from .tasks import TaskFileError, load_tasks
from .util import TaskUtil

__version__ = "0.1.0"
__all__ = [
    "CouchDBConnection",
    "BulkResult",
    "hash_document",
    "flush_queue",
    "report",
    "run_tasks",
    "TaskFileError",
    "load_tasks",
    "TaskUtil",
]
