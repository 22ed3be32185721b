"""
TaskUtil is handed to every task function together with the document.

It holds the run's counters, the audit list and the queue of documents
waiting for the next bulk update.
"""

import logging
from typing import Any, Dict, List, Optional

from .documents import Document
from .hashing import hash_document
from .log import TASK_LOGGER

SAVE_STAT = '_couchsweep_save'
REMOVE_STAT = '_couchsweep_remove'


class TaskUtil:
    """
    Run state shared by all task calls.

    get_stat(), get_audit() and get_queue() return the live containers, so
    changes made through them are seen by the runner.
    """

    def __init__(
        self,
        stat: Optional[Dict[str, int]] = None,
        queue: Optional[List[Document]] = None,
        driver=None
    ):
        """
        Args:
            stat: Initial counters
            queue: Initial queue of documents to update
            driver: The CouchDBConnection, for tasks that need to run their
                own database operations
        """
        self.stat = stat if stat is not None else {}
        self.queue = queue if queue is not None else []
        self.driver = driver
        self.audit_items: List[Any] = []
        self.logger = logging.getLogger(TASK_LOGGER)

    def increment(self, key: str, increment: int) -> None:
        """
        Add increment to the counter at key, creating it at increment if absent.
        """
        if key in self.stat:
            self.stat[key] += increment
        else:
            self.stat[key] = increment

    def count(self, key: str) -> None:
        self.increment(key, 1)

    def audit(self, record: Any) -> None:
        """Append a record to the audit list."""
        self.audit_items.append(record)

    def hash(self, doc: Any) -> str:
        """Return the content fingerprint of doc (see couchsweep.hashing)."""
        return hash_document(doc)

    def save(self, doc: Document) -> None:
        """Queue a document for saving."""
        self.count(SAVE_STAT)
        self.queue.append(doc)

    def remove(self, doc: Document) -> None:
        """Mark a document deleted and queue it."""
        self.count(REMOVE_STAT)
        doc['_deleted'] = True
        self.queue.append(doc)

    def log(self, message: Any) -> None:
        """Write an INFO line to the log file."""
        self.logger.info(message)

    def get_stat(self) -> Dict[str, int]:
        return self.stat

    def get_audit(self) -> List[Any]:
        return self.audit_items

    def get_queue(self) -> List[Document]:
        return self.queue

    def reset_queue(self) -> None:
        """Empty the queue after it has been written."""
        self.queue = []
