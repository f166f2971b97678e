import logging
import os
from datetime import datetime


def setup_logger(log_dir: str = ".confpatch/logs") -> logging.Logger:
    """Creates a file logger for the ``confpatch`` package.

    Nothing in the library calls this on import; hosts that want the
    engine's debug trail on disk call it once at startup.
    """
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"confpatch_{timestamp}.log")

    logger = logging.getLogger("confpatch")
    logger.setLevel(logging.DEBUG)

    # Everything at DEBUG goes to the file
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger
