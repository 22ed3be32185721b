"""
Content fingerprints for documents.

Tasks use these to tell whether a document really changed before queueing
it for an update. The fingerprint is a sha256 over a canonical, type-tagged
rendering of the value:

- dictionary keys are sorted, so insertion order does not matter
- list, tuple and set elements are sorted after rendering
- scalars keep their type, so 1, 1.0, '1' and True all differ
"""

import hashlib
from typing import Any


def canonical(value: Any) -> str:
    """Render a value as a canonical string. Types are never coerced."""
    if value is None:
        return 'null'
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return f'bool:{value}'
    if isinstance(value, int):
        return f'int:{value}'
    if isinstance(value, float):
        return f'float:{value!r}'
    if isinstance(value, str):
        return f'str:{value!r}'
    if isinstance(value, bytes):
        return f'bytes:{value.hex()}'
    if isinstance(value, dict):
        items = sorted((canonical(key), canonical(item)) for key, item in value.items())
        return 'dict:{' + ','.join(f'{key}={item}' for key, item in items) + '}'
    if isinstance(value, (list, tuple)):
        return 'list:[' + ','.join(sorted(canonical(item) for item in value)) + ']'
    if isinstance(value, (set, frozenset)):
        return 'set:[' + ','.join(sorted(canonical(item) for item in value)) + ']'
    return f'{type(value).__name__}:{value!r}'


def hash_document(doc: Any) -> str:
    """
    Return the sha256 hex fingerprint of a document.

    Args:
        doc: Any document (usually a dict); nested values are allowed

    Returns:
        64 character hex digest
    """
    return hashlib.sha256(canonical(doc).encode('utf-8')).hexdigest()
