import contextlib
import logging
import os
import shutil
import tempfile

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def cd(path):
    """Context manager that changes to another directory"""
    if not path:
        yield
        return
    cwd = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(cwd)


@contextlib.contextmanager
def temporary_dir(chdir=True):
    """Context manager that creates a temporary directory and chdirs to it.

    When the context manager exits it returns to the previous cwd
    and deletes the temporary directory.
    """
    d = tempfile.mkdtemp()
    try:
        with contextlib.ExitStack() as stack:
            if chdir:
                stack.enter_context(cd(d))
            yield d
    finally:
        if os.path.exists(d):
            try:
                shutil.rmtree(d)
            except OSError as e:  # pragma: no cover
                logger.warning(f"Cannot remove temporary directory {d} because: {e}")


def ensure_dir(path):
    os.makedirs(path, exist_ok=True)


def delete_if_exists(path):
    """Remove a file or a directory tree, ignoring missing paths."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def walk_files(root):
    """Yield every file below root in a stable order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            yield os.path.join(dirpath, filename)
