"""
Run task functions over every document of a CouchDB database.

Each page of documents is passed through all tasks, then whatever the
tasks queued is written back with one bulk update before the next page
is fetched.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .couchdb_io import CouchDBConnection
from .documents import BulkResult, is_design_doc
from .tasks import TaskFunction
from .util import TaskUtil

logger = logging.getLogger(__name__)

PAGES_STAT = '_couchsweep_pages'
DOCS_STAT = '_couchsweep_docs'
DESIGN_SKIPPED_STAT = '_couchsweep_design_skipped'
UPDATE_OK_STAT = '_couchsweep_update_ok'
UPDATE_ERROR_STAT = '_couchsweep_update_error'
DRY_RUN_STAT = '_couchsweep_dry_run'


def flush_queue(
    connection: CouchDBConnection,
    util: TaskUtil,
    dry_run: bool = False
) -> List[BulkResult]:
    """
    Write the queued documents back and empty the queue.

    If the bulk request fails the exception propagates and the queue is
    left as it was.

    Returns:
        Per-document results (empty for an empty queue or a dry run)
    """
    queue = util.get_queue()
    if not queue:
        return []

    if dry_run:
        util.increment(DRY_RUN_STAT, len(queue))
        logger.info("[DRY RUN] Skipping bulk update of %d documents", len(queue))
        util.reset_queue()
        return []

    results = connection.update(queue)
    for result in results:
        if result.ok:
            util.count(UPDATE_OK_STAT)
        else:
            util.count(UPDATE_ERROR_STAT)
            logger.warning("Update of %s failed: %s", result.id, result.error)

    util.reset_queue()
    return results


def run_tasks(
    connection: CouchDBConnection,
    tasks: Dict[str, TaskFunction],
    page_size: int,
    num_pages: Optional[int] = None,
    skip: int = 0,
    start_key: Optional[str] = None,
    end_key: Optional[str] = None,
    interval: float = 0.0,
    dry_run: bool = False,
    util: Optional[TaskUtil] = None,
    verbosity: int = 1
) -> TaskUtil:
    """
    Page through the database and apply every task to every document.

    The document that overlaps two pages is only given to the tasks once.
    Design documents are skipped. An exception from a fetch, an update or
    a task aborts the run and is raised; util then holds the counts of the
    work done so far.

    Args:
        connection: Database to migrate
        tasks: Task name to callable (util, doc), run in order
        page_size: Documents per page
        num_pages: Stop after this many pages (None for all)
        skip: Documents to skip at the start
        start_key: First document ID (inclusive), or view key for a design view
        end_key: Last document ID (inclusive), or view key for a design view
        interval: Seconds to wait between pages
        dry_run: Run tasks but never write
        util: TaskUtil to accumulate into (a new one by default)
        verbosity: Verbosity level (0=silent, 1=info, 2=debug)

    Returns:
        The TaskUtil holding stats, audit records and the (empty) queue
    """
    if util is None:
        util = TaskUtil(driver=connection)

    pages = connection.iter_pages(skip, start_key, end_key, page_size, interval)
    previous_last_id = None
    try:
        for page_number, docs in enumerate(pages, start=1):
            util.count(PAGES_STAT)
            # Rows of deleted documents come back without a doc
            docs = [doc for doc in docs if doc is not None]
            if page_number > 1 and docs and docs[0].get('_id') == previous_last_id:
                docs = docs[1:]
            if docs:
                previous_last_id = docs[-1].get('_id')

            for doc in docs:
                if is_design_doc(doc):
                    util.count(DESIGN_SKIPPED_STAT)
                    continue
                util.count(DOCS_STAT)
                for func in tasks.values():
                    func(util, doc)

            flush_queue(connection, util, dry_run)

            if verbosity >= 1:
                print(f"  Page {page_number}: {len(docs)} documents "
                      f"({util.get_stat().get(DOCS_STAT, 0)} total)")

            if num_pages and page_number >= num_pages:
                logger.info("Stopping after %d pages", page_number)
                break
    except Exception:
        logger.exception("Run aborted after %d pages", util.get_stat().get(PAGES_STAT, 0))
        raise
    finally:
        pages.close()

    return util


def report(
    util: TaskUtil,
    audit_file: Optional[str] = None,
    verbosity: int = 1
) -> Optional[Path]:
    """
    Print the stat summary and write the audit records as JSON.

    Args:
        util: TaskUtil of a finished (or aborted) run
        audit_file: Where to write the audit records (None to skip)
        verbosity: Verbosity level (0=silent, 1=info, 2=debug)

    Returns:
        Path of the audit file, or None when nothing was written
    """
    stat = util.get_stat()
    audit = util.get_audit()

    for key in sorted(stat):
        logger.info("%s: %s", key, stat[key])

    if verbosity >= 1:
        print(f"\n{'='*70}")
        print("Summary")
        print(f"{'='*70}")
        width = max((len(key) for key in stat), default=0)
        for key in sorted(stat):
            print(f"{key + ':':<{width + 1}} {stat[key]}")
        print(f"Audit records: {len(audit)}")

    if not audit_file or not audit:
        return None

    path = Path(audit_file)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(audit, f, indent=2, default=str)

    if verbosity >= 1:
        print(f"Audit written to {path}")
    return path
