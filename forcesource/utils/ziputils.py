import os
import zipfile

from forcesource.core.exceptions import ForceSourceFailure


def zip_directory(directory, zip_path):
    """Write every file below ``directory`` into a new archive at ``zip_path``.

    Entry names are relative to ``directory`` and use forward slashes."""
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames.sort()
            for filename in sorted(filenames):
                full_path = os.path.join(dirpath, filename)
                rel_name = os.path.relpath(full_path, directory).replace(os.sep, "/")
                zf.write(full_path, rel_name)
    return zip_path


def extract_archive(zip_path, target_dir):
    """Extract an archive, refusing entries that would escape ``target_dir``."""
    try:
        with zipfile.ZipFile(zip_path) as zf:
            target = os.path.realpath(target_dir)
            for name in zf.namelist():
                dest = os.path.realpath(os.path.join(target, name))
                if not (dest == target or dest.startswith(os.path.join(target, ""))):
                    raise ForceSourceFailure(f"Unsafe path {name} in archive {zip_path}")
            zf.extractall(target_dir)
    except zipfile.BadZipFile as e:
        raise ForceSourceFailure(f"Unable to extract archive {zip_path}: {e}") from e
    return target_dir
