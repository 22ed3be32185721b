"""
Logging setup for couchsweep.

The CLI calls configure_logging() once per process. Library modules only
create module-level loggers and never configure handlers themselves.
"""

import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
TASK_LOGGER = 'couchsweep.task'


def configure_logging(log_file: Optional[str] = 'couchsweep.log', verbosity: int = 1) -> None:
    """
    Send couchsweep log records to a file, and to the console at verbosity >= 2.

    Args:
        log_file: Path of the log file (None for no file)
        verbosity: Verbosity level (0=silent, 1=info, 2=debug)
    """
    handlers = []
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)
    if verbosity >= 2:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        handlers.append(console_handler)
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    # The couchdb client is chatty at DEBUG
    logging.getLogger('couchdb').setLevel(logging.INFO)
