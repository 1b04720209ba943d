import os
import sys
from importlib.metadata import PackageNotFoundError, version

__location__ = os.path.dirname(os.path.realpath(__file__))

try:
    __version__ = version("forcesource")
except PackageNotFoundError:
    with open(os.path.join(__location__, "version.txt")) as f:
        __version__ = f.read().strip()

if sys.version_info < (3, 8):  # pragma: no cover
    raise Exception("forcesource requires Python 3.8+.")
