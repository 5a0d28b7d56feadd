"""Customer ledger engine for a small retail counter.

Importing the package sets up the shared ``log`` used by every layer: one
rotating file under ``.logs/`` at the project root for the audit trail of
postings and payments, and one stderr stream for whoever is at the till.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / ".logs"
LOG_FILE = LOG_DIR / "retail_ledger.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUPS = 5


def _build_ledger_logger() -> logging.Logger:
    """Attach the audit file and the console stream to the package logger.

    Safe to call twice; a logger that already has handlers is returned as-is.
    Without a writable log directory the ledger still runs, logging only to
    stderr.
    """

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        audit_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    except OSError as exc:
        print(
            f"Ledger audit log disabled, cannot write to '{LOG_FILE}': {exc}",
            file=sys.stderr,
        )
    else:
        audit_handler.setLevel(logging.INFO)
        audit_handler.setFormatter(formatter)
        logger.addHandler(audit_handler)

    till_handler = logging.StreamHandler(sys.stderr)
    till_handler.setLevel(logging.INFO)
    till_handler.setFormatter(formatter)
    logger.addHandler(till_handler)

    return logger


log = _build_ledger_logger()
log.debug("Ledger logging ready (audit file: %s)", LOG_FILE)
