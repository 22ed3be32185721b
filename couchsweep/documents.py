"""
Document helpers shared by the pager, the bulk writer and the runner.

Documents are plain dictionaries (couchdb.client.Document when they come
from the server) carrying '_id' and '_rev' plus any other fields.
"""

from typing import Any, Dict, NamedTuple, Optional, Tuple

Document = Dict[str, Any]

DESIGN_PREFIX = '_design/'


class BulkResult(NamedTuple):
    """Outcome of one document in a bulk update, in request order."""
    ok: bool
    id: Optional[str]
    rev: Optional[str]
    error: Optional[Exception] = None


def is_design_doc(doc: Document) -> bool:
    return str(doc.get('_id', '')).startswith(DESIGN_PREFIX)


def to_bulk_result(result: Tuple[bool, str, Any]) -> BulkResult:
    """
    Convert one (success, docid, rev_or_exc) tuple from
    couchdb.Database.update() into a BulkResult.
    """
    success, doc_id, rev_or_exc = result
    if success:
        return BulkResult(ok=True, id=doc_id, rev=rev_or_exc)
    return BulkResult(ok=False, id=doc_id, rev=None, error=rev_or_exc)
