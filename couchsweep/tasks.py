"""
Loading and scaffolding of task files.

A task file is a plain Python module defining TASKS, a mapping of task
name to a callable taking (util, doc). Tasks run in the order they are
listed.
"""

import importlib.util
from pathlib import Path
from typing import Callable, Dict, Union

DEFAULT_TASKS_FILE = 'couchsweep_tasks.py'

SAMPLE_TASKS = '''"""
couchsweep task file.

Every function in TASKS is called once per document with (util, doc).

util.count(key)           increment a counter by 1
util.increment(key, n)    increment a counter by n
util.save(doc)            queue doc for the next bulk update
util.remove(doc)          mark doc deleted and queue it
util.audit(record)        keep a record for the audit report
util.hash(doc)            content fingerprint, to detect real changes
util.log(message)         write a line to the log file
util.driver               the CouchDBConnection, for anything else
"""


def count_by_type(util, doc):
    util.count('type_' + str(doc.get('type', 'none')))


def add_schema_version(util, doc):
    before = util.hash(doc)
    doc.setdefault('schema_version', 1)
    if util.hash(doc) != before:
        util.audit({'_id': doc['_id'], 'action': 'add_schema_version'})
        util.save(doc)


TASKS = {
    'count_by_type': count_by_type,
    'add_schema_version': add_schema_version,
}
'''

TaskFunction = Callable[..., None]


class TaskFileError(Exception):
    """Raised when a task file is missing or does not define usable tasks."""


def load_tasks(path: Union[str, Path]) -> Dict[str, TaskFunction]:
    """
    Import a task file by path and return its TASKS mapping.

    Args:
        path: Path of the task file

    Returns:
        Mapping of task name to callable, in file order

    Raises:
        TaskFileError: If the file is missing, TASKS is missing or empty,
            or a task is not callable
    """
    path = Path(path)
    if not path.is_file():
        raise TaskFileError(f"Task file '{path}' not found")

    spec = importlib.util.spec_from_file_location(f"couchsweep_tasks_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise TaskFileError(f"Task file '{path}' cannot be imported")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    tasks = getattr(module, 'TASKS', None)
    if not isinstance(tasks, dict) or not tasks:
        raise TaskFileError(f"Task file '{path}' must define a non-empty TASKS dict")

    for name, func in tasks.items():
        if not callable(func):
            raise TaskFileError(f"Task '{name}' in '{path}' is not callable")

    return dict(tasks)


def write_sample_tasks(path: Union[str, Path] = DEFAULT_TASKS_FILE) -> Path:
    """
    Write a sample task file.

    Raises:
        FileExistsError: If the file already exists
    """
    path = Path(path)
    if path.exists():
        raise FileExistsError(f"'{path}' already exists")
    path.write_text(SAMPLE_TASKS, encoding='utf-8')
    return path
