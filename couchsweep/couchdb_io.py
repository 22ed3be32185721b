"""
CouchDB I/O for couchsweep: page through a database and write changes back in bulk
"""

import logging
import time
from typing import Callable, Iterator, List, Optional, Sequence

import couchdb

from .documents import BulkResult, Document, to_bulk_result

logger = logging.getLogger(__name__)

ALL_DOCS = '_all_docs'


class CouchDBConnection:
    """
    Manages a CouchDB connection and provides the paging and bulk update
    operations the runner is built on.

    The connection is opened lazily and only once; every method may be
    called repeatedly on the same instance.
    """

    def __init__(
        self,
        couchdb_url: str,
        database: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        view: str = ALL_DOCS
    ):
        """
        Initialize CouchDB connection parameters.

        Args:
            couchdb_url: CouchDB server URL (e.g., "http://localhost:5984")
            database: Database name
            username: Optional username for authentication
            password: Optional password for authentication
            view: '_all_docs' or a design view as 'design/view'
        """
        self.couchdb_url = couchdb_url
        self.database = database
        self.username = username
        self.password = password
        self.view = view
        self._server = None
        self._db = None

        # Number of bulk updates currently being sent
        self.in_progress = 0
        self._paging = False

    def _connect(self):
        """
        Idempotent connection method that returns a CouchDB server object.

        Returns:
            couchdb.Server: Connected CouchDB server object
        """
        if self._server is None:
            self._server = couchdb.Server(self.couchdb_url)
            if self.username and self.password:
                self._server.resource.credentials = (self.username, self.password)

        if self._db is None:
            self._db = self._server[self.database]

        return self._server

    @property
    def db(self):
        """Get the database object, connecting if necessary."""
        if self._db is None:
            self._connect()
        return self._db

    @property
    def by_doc_id(self) -> bool:
        """True when view keys are document IDs (the _all_docs case)."""
        return self.view == ALL_DOCS

    def _fetch_page(
        self,
        start_key,
        start_doc_id: Optional[str],
        end_key_doc_id: Optional[str],
        limit: int,
        skip: int
    ) -> list:
        """
        Fetch one page of view rows, documents included.

        Returns:
            List of couchdb.client.Row objects, in key order
        """
        options = {'limit': limit, 'include_docs': True}
        if start_key is not None:
            options['startkey'] = start_key
        if start_doc_id is not None:
            options['startkey_docid'] = start_doc_id
        if end_key_doc_id is not None:
            options['endkey'] = end_key_doc_id
            if self.by_doc_id:
                options['endkey_docid'] = end_key_doc_id
        if skip:
            options['skip'] = skip

        logger.debug("Fetching %s page: %s", self.view, options)
        return list(self.db.view(self.view, **options))

    def iter_pages(
        self,
        skip: int,
        start_key_doc_id: Optional[str],
        end_key_doc_id: Optional[str],
        page_size: int,
        interval: float = 0.0
    ) -> Iterator[List[Document]]:
        """
        Yield pages of documents between two keys.

        Every request asks for page_size + 1 rows. The extra row is the first
        row of the next page, so consecutive pages overlap by one document and
        no document is lost at a page boundary. A short page is the last one.

        The next page is not fetched until the consumer asks for it, so work
        done on a page (including a bulk update) finishes before the cursor
        moves on.

        Args:
            skip: Rows to skip on the first request only
            start_key_doc_id: Inclusive start document ID, or view key when
                paging a design view (None starts at the beginning)
            end_key_doc_id: Inclusive end document ID, or view key when
                paging a design view (None runs to the end)
            page_size: Number of new documents wanted per page
            interval: Seconds to wait before each request after the first

        Yields:
            Lists of documents, overlap document included

        Raises:
            ValueError: If page_size is not a positive integer
            Whatever the couchdb client raises when a request fails
        """
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ValueError(f"page_size must be a positive integer, got {page_size}")

        limit = page_size + 1
        start_key = start_key_doc_id
        start_doc_id = start_key_doc_id if self.by_doc_id else None

        self._paging = True
        try:
            while True:
                rows = self._fetch_page(start_key, start_doc_id, end_key_doc_id, limit, skip)
                if not rows:
                    logger.debug("Empty page, pagination finished")
                    return

                yield [row.doc for row in rows]

                if len(rows) < limit:
                    logger.debug("Short page (%d rows), pagination finished", len(rows))
                    return

                last = rows[-1]
                start_key, start_doc_id = last.key, last.id
                skip = 0

                if interval:
                    time.sleep(interval)
        finally:
            self._paging = False

    def paginate(
        self,
        skip: int,
        start_key_doc_id: Optional[str],
        end_key_doc_id: Optional[str],
        page_size: int,
        on_page: Callable[[List[Document]], None],
        interval: float = 0.0
    ) -> int:
        """
        Hand every page between two keys to on_page.

        Errors from a fetch are raised unchanged; the failed page never
        reaches on_page.

        Returns:
            Number of pages handed to on_page
        """
        pages = 0
        for docs in self.iter_pages(skip, start_key_doc_id, end_key_doc_id, page_size, interval):
            on_page(docs)
            pages += 1
        return pages

    def update(self, docs: Sequence[Document]) -> List[BulkResult]:
        """
        Write documents back with a single bulk request.

        Documents carrying '_deleted': True are deleted. The request is
        neither split nor retried.

        Args:
            docs: Documents to write

        Returns:
            One BulkResult per document, in input order. Conflicts are
            reported here, not raised.

        Raises:
            Whatever the couchdb client raises when the request fails
        """
        if not docs:
            return []

        self.in_progress += 1
        try:
            logger.debug("Bulk updating %d documents in %s", len(docs), self.database)
            results = self.db.update(list(docs))
        finally:
            self.in_progress -= 1

        return [to_bulk_result(result) for result in results]

    def done(self) -> bool:
        """True when no bulk update is running and no pagination is under way."""
        return self.in_progress == 0 and not self._paging
