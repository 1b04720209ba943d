""" CLI logger """
import logging

import requests
from rich.logging import RichHandler


def init_logger(debug=False):
    """Initialize the logger"""

    logger = logging.getLogger(__name__.split(".")[0])
    for handler in list(logger.handlers):  # pragma: no cover
        logger.removeHandler(handler)

    logger.addHandler(
        RichHandler(
            rich_tracebacks=True,
            show_level=debug,
            show_path=debug,
            tracebacks_show_locals=debug,
        )
    )
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    if debug:  # pragma: no cover
        urllib3_logger = logging.getLogger(requests.packages.urllib3.__name__)
        for handler in list(urllib3_logger.handlers):
            urllib3_logger.removeHandler(handler)
        urllib3_logger.addHandler(RichHandler())
        urllib3_logger.setLevel(logging.DEBUG)
        urllib3_logger.debug("Added rich.logging.RichHandler to logger: urllib3")
