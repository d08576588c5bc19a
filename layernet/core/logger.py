import logging
import os


DEFAULT_LOG_FILENAME = 'layernet-log.txt'

LINE_FORMAT = ("[%(asctime)s] [%(name)s:%(lineno)d] "
               "%(levelname)-8s %(message)s")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(filename=None, stdout=True, level=logging.DEBUG):
    """ Sets up logging formatting, etc

    Parameters
    ----------
    filename: str, default=None
        The log file. If None, a file named `DEFAULT_LOG_FILENAME` in the
        current directory is used. An existing file is replaced.

    stdout: bool, default=True
        If True, log records are also written to the console.

    level: int, default=logging.DEBUG
        The level for the root logger.

    Returns
    -------
    root_logger: logging.Logger
    """
    filename = filename or os.path.join(os.path.curdir,
                                        DEFAULT_LOG_FILENAME)

    formatter = logging.Formatter(fmt=LINE_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fhandler = logging.FileHandler(filename, mode='w')
    fhandler.setFormatter(formatter)
    root_logger.addHandler(fhandler)

    if stdout:
        shandler = logging.StreamHandler()
        shandler.setFormatter(formatter)
        root_logger.addHandler(shandler)

    return root_logger


def log_progress(logger, msg, i, n):
    """ Log `msg` at info level prefixed by a zero-padded `(i / n)` counter
    """
    msg = "(%%0%dd / %d) %s" % (len(str(n)), n, msg)
    logger.info(msg % i)
