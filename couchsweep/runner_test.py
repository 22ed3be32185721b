"""
Tests for runner.py module.

Run with: pytest couchsweep/runner_test.py -v
"""

import json
from unittest.mock import MagicMock

import pytest
from couchdb.client import Row
from couchdb.http import ResourceConflict

from .couchdb_io import CouchDBConnection
from .runner import (
    DESIGN_SKIPPED_STAT,
    DOCS_STAT,
    DRY_RUN_STAT,
    PAGES_STAT,
    UPDATE_ERROR_STAT,
    UPDATE_OK_STAT,
    flush_queue,
    report,
    run_tasks,
)
from .util import TaskUtil


def make_rows(*doc_ids, rev='1-abc'):
    return [
        Row(id=doc_id, key=doc_id, value={'rev': rev}, doc={'_id': doc_id, '_rev': rev})
        for doc_id in doc_ids
    ]


def accept_all(docs):
    """Fake couchdb Database.update that accepts every document."""
    return [(True, doc['_id'], '2-new') for doc in docs]


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.update.side_effect = accept_all
    return db


@pytest.fixture
def conn(mock_db):
    connection = CouchDBConnection(
        couchdb_url="http://localhost:5984",
        database="somedb"
    )
    connection._db = mock_db
    connection._server = MagicMock()
    return connection


class TestRunTasks:
    """Tests for run_tasks."""

    def test_overlap_document_is_processed_once(self, conn, mock_db):
        """Test that tasks see the page boundary document only once."""
        mock_db.view.side_effect = [
            make_rows('1', '2', '3'),
            make_rows('3', '4'),
        ]
        seen = []

        util = run_tasks(conn, {'record': lambda util, doc: seen.append(doc['_id'])},
                         page_size=2, verbosity=0)

        assert seen == ['1', '2', '3', '4']
        assert util.get_stat()[DOCS_STAT] == 4
        assert util.get_stat()[PAGES_STAT] == 2

    def test_overlap_document_with_new_revision(self, conn, mock_db):
        """Test that a boundary document updated by the previous page is not reprocessed."""
        mock_db.view.side_effect = [
            make_rows('1', '2'),
            make_rows('2', rev='2-new'),
        ]
        seen = []

        run_tasks(conn, {'record': lambda util, doc: seen.append(doc['_id'])},
                  page_size=1, verbosity=0)

        assert seen == ['1', '2']

    def test_tasks_run_in_order(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a')
        calls = []

        run_tasks(conn, {
            'first': lambda util, doc: calls.append('first'),
            'second': lambda util, doc: calls.append('second'),
        }, page_size=10, verbosity=0)

        assert calls == ['first', 'second']

    def test_queue_is_flushed_after_each_page(self, conn, mock_db):
        """Test that saved documents are written before the next page is fetched."""
        pages = iter([
            make_rows('1', '2'),
            make_rows('2', '3'),
            make_rows('3'),
        ])
        events = []

        def tracking_view(*args, **kwargs):
            events.append('fetch')
            return next(pages)

        def tracking_update(docs):
            events.append(('update', [doc['_id'] for doc in docs]))
            return accept_all(docs)

        mock_db.view.side_effect = tracking_view
        mock_db.update.side_effect = tracking_update

        def touch(util, doc):
            doc['touched'] = True
            util.save(doc)

        util = run_tasks(conn, {'touch': touch}, page_size=1, verbosity=0)

        assert events == [
            'fetch', ('update', ['1', '2']),
            'fetch', ('update', ['3']),
            'fetch',
        ]
        assert util.get_queue() == []
        assert util.get_stat()[UPDATE_OK_STAT] == 3

    def test_no_update_without_saved_documents(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a', 'b')

        run_tasks(conn, {'noop': lambda util, doc: None}, page_size=10, verbosity=0)

        mock_db.update.assert_not_called()

    def test_removed_documents_are_written_as_deletions(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a', 'b')

        def drop_b(util, doc):
            if doc['_id'] == 'b':
                util.remove(doc)

        util = run_tasks(conn, {'drop_b': drop_b}, page_size=10, verbosity=0)

        sent = mock_db.update.call_args[0][0]
        assert [doc['_id'] for doc in sent] == ['b']
        assert sent[0]['_deleted'] is True
        assert util.get_stat()['_couchsweep_remove'] == 1

    def test_update_errors_are_counted(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a', 'b')
        mock_db.update.side_effect = None
        mock_db.update.return_value = [
            (True, 'a', '2-a'),
            (False, 'b', ResourceConflict(('conflict', 'Document update conflict.'))),
        ]

        util = run_tasks(conn, {'save': lambda util, doc: util.save(doc)},
                         page_size=10, verbosity=0)

        assert util.get_stat()[UPDATE_OK_STAT] == 1
        assert util.get_stat()[UPDATE_ERROR_STAT] == 1

    def test_dry_run_never_writes(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a', 'b')

        util = run_tasks(conn, {'save': lambda util, doc: util.save(doc)},
                         page_size=10, dry_run=True, verbosity=0)

        mock_db.update.assert_not_called()
        assert util.get_stat()[DRY_RUN_STAT] == 2
        assert util.get_queue() == []

    def test_num_pages_limits_the_run(self, conn, mock_db):
        mock_db.view.side_effect = [
            make_rows('1', '2'),
            make_rows('2', '3'),
            make_rows('3', '4'),
        ]

        util = run_tasks(conn, {'noop': lambda util, doc: None},
                         page_size=1, num_pages=2, verbosity=0)

        assert mock_db.view.call_count == 2
        assert util.get_stat()[PAGES_STAT] == 2
        assert conn.done() is True

    def test_design_documents_are_skipped(self, conn, mock_db):
        mock_db.view.return_value = make_rows('_design/app', 'a')
        seen = []

        util = run_tasks(conn, {'record': lambda util, doc: seen.append(doc['_id'])},
                         page_size=10, verbosity=0)

        assert seen == ['a']
        assert util.get_stat()[DESIGN_SKIPPED_STAT] == 1

    def test_paging_options_are_passed_through(self, conn, mock_db):
        mock_db.view.return_value = []

        run_tasks(conn, {'noop': lambda util, doc: None}, page_size=50,
                  skip=5, start_key='b', end_key='m', verbosity=0)

        kwargs = mock_db.view.call_args[1]
        assert kwargs['limit'] == 51
        assert kwargs['skip'] == 5
        assert kwargs['startkey_docid'] == 'b'
        assert kwargs['endkey_docid'] == 'm'

    def test_design_view_keys_are_passed_through(self, mock_db):
        connection = CouchDBConnection(
            couchdb_url="http://localhost:5984",
            database="somedb",
            view="app/by_type"
        )
        connection._db = mock_db
        mock_db.view.return_value = []

        run_tasks(connection, {'noop': lambda util, doc: None}, page_size=50,
                  start_key='invoice', end_key='order', verbosity=0)

        args, kwargs = mock_db.view.call_args
        assert args == ('app/by_type',)
        assert kwargs['startkey'] == 'invoice'
        assert kwargs['endkey'] == 'order'
        assert 'startkey_docid' not in kwargs
        assert 'endkey_docid' not in kwargs

    def test_uses_given_util(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a')
        util = TaskUtil({'carried': 1}, driver=conn)

        result = run_tasks(conn, {'noop': lambda util, doc: None},
                           page_size=10, util=util, verbosity=0)

        assert result is util
        assert util.get_stat()['carried'] == 1

    def test_driver_is_the_connection(self, conn, mock_db):
        mock_db.view.return_value = make_rows('a')
        drivers = []

        run_tasks(conn, {'grab': lambda util, doc: drivers.append(util.driver)},
                  page_size=10, verbosity=0)

        assert drivers == [conn]

    def test_task_error_aborts_run(self, conn, mock_db):
        """Test that a task exception stops the run with the counts so far."""
        mock_db.view.return_value = make_rows('a', 'b', 'c')
        util = TaskUtil(driver=conn)

        def fail_on_b(util, doc):
            if doc['_id'] == 'b':
                raise KeyError('missing field')
            util.save(doc)

        with pytest.raises(KeyError):
            run_tasks(conn, {'fail_on_b': fail_on_b}, page_size=10, util=util, verbosity=0)

        mock_db.update.assert_not_called()
        assert util.get_stat()[DOCS_STAT] == 2
        assert [doc['_id'] for doc in util.get_queue()] == ['a']
        assert conn.done() is True

    def test_fetch_error_aborts_run(self, conn, mock_db):
        error = ConnectionError('refused')
        mock_db.view.side_effect = [make_rows('1', '2'), error]
        util = TaskUtil(driver=conn)

        with pytest.raises(ConnectionError) as exc_info:
            run_tasks(conn, {'noop': lambda util, doc: None}, page_size=1, util=util, verbosity=0)

        assert exc_info.value is error
        assert util.get_stat()[PAGES_STAT] == 1

    def test_prints_progress(self, conn, mock_db, capsys):
        mock_db.view.return_value = make_rows('a', 'b')

        run_tasks(conn, {'noop': lambda util, doc: None}, page_size=10, verbosity=1)

        assert "Page 1: 2 documents" in capsys.readouterr().out


class TestFlushQueue:
    """Tests for flush_queue."""

    def test_empty_queue(self, conn, mock_db):
        assert flush_queue(conn, TaskUtil()) == []
        mock_db.update.assert_not_called()

    def test_failed_flush_keeps_queue(self, conn, mock_db):
        """Test that the queue is left intact when the bulk request fails."""
        mock_db.update.side_effect = ConnectionError('refused')
        util = TaskUtil()
        util.save({'_id': 'a'})

        with pytest.raises(ConnectionError):
            flush_queue(conn, util)

        assert [doc['_id'] for doc in util.get_queue()] == ['a']

    def test_results_are_returned(self, conn, mock_db):
        util = TaskUtil()
        util.save({'_id': 'a'})
        util.save({'_id': 'b'})

        results = flush_queue(conn, util)

        assert [result.id for result in results] == ['a', 'b']
        assert util.get_queue() == []


class TestReport:
    """Tests for report."""

    def test_summary_is_printed(self, capsys):
        util = TaskUtil({'_couchsweep_docs': 4, 'type_book': 2})

        report(util, verbosity=1)

        out = capsys.readouterr().out
        assert "Summary" in out
        assert "_couchsweep_docs: 4" in out
        assert "type_book:" in out
        assert "Audit records: 0" in out

    def test_audit_is_written(self, tmp_path):
        util = TaskUtil()
        util.audit({'_id': 'a', 'action': 'renamed'})
        util.audit('plain note')
        audit_file = tmp_path / 'audit.json'

        path = report(util, str(audit_file), verbosity=0)

        assert path == audit_file
        assert json.loads(audit_file.read_text()) == [
            {'_id': 'a', 'action': 'renamed'},
            'plain note',
        ]

    def test_no_audit_file_without_records(self, tmp_path):
        audit_file = tmp_path / 'audit.json'

        assert report(TaskUtil(), str(audit_file), verbosity=0) is None
        assert not audit_file.exists()

    def test_silent(self, capsys):
        report(TaskUtil({'x': 1}), verbosity=0)
        assert capsys.readouterr().out == ''
