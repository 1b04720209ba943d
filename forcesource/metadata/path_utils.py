"""Helpers for the naming conventions of source format paths."""
import os
from typing import List, Optional
from urllib.parse import quote

from forcesource.metadata.registry import METADATA_FILE_EXT


def remove_metadata_file_ext(file_path: str) -> str:
    return file_path.replace(METADATA_FILE_EXT, "")


def get_file_name(file_path: str) -> str:
    """Base name without ``-meta.xml`` and without the type extension."""
    base = os.path.basename(remove_metadata_file_ext(file_path))
    return os.path.splitext(base)[0]


def get_parent_directory_name(file_path: str) -> str:
    return os.path.basename(os.path.dirname(file_path))


def get_grandparent_directory_name(file_path: str) -> str:
    return os.path.basename(os.path.dirname(os.path.dirname(file_path)))


def get_path_to_dir(file_path: str, dir_name: str) -> Optional[str]:
    """The prefix of ``file_path`` ending in the first ``dir_name`` segment."""
    parts = file_path.split(os.sep)
    if dir_name not in parts:
        return None
    return os.sep.join(parts[: parts.index(dir_name) + 1])


def remove_parent_dir_from_path(file_path: str) -> str:
    return os.path.join(
        os.path.dirname(os.path.dirname(file_path)), os.path.basename(file_path)
    )


def replace_forward_slashes(value: str) -> str:
    return value.replace("/", os.sep)


def encode_metadata_string(value: str) -> str:
    # the org reports names URI encoded, with spaces left alone
    return quote(value, safe="-_.!~*'()").replace("%20", " ")


def file_names_without_extensions_match(left: str, right: str) -> bool:
    return os.path.splitext(os.path.basename(left))[0] == os.path.splitext(os.path.basename(right))[0]


def get_content_path_with_non_std_ext(metadata_file_path: str) -> Optional[str]:
    """Find the content file beside a metadata file whose extension is unknown.

    ``logo.document-meta.xml`` pairs with ``logo.png``, ``logo.jpg`` or
    whatever else shares the name."""
    directory = os.path.dirname(metadata_file_path) or "."
    name = get_file_name(metadata_file_path)
    if not os.path.isdir(directory):
        return None
    for entry in sorted(os.listdir(directory)):
        if not entry.startswith(name) or entry.endswith(METADATA_FILE_EXT):
            continue
        if file_names_without_extensions_match(entry, name):
            return os.path.abspath(os.path.join(directory, entry))
    return None


def get_nested_directory_paths(root: str) -> List[str]:
    return [dirpath for dirpath, _, _ in os.walk(root)]


def clean_empty_dirs(root: str):
    """Remove directories below and including ``root`` that hold nothing."""
    for path in sorted(get_nested_directory_paths(root), key=lambda p: -p.count(os.sep)):
        if os.path.isdir(path) and not os.listdir(path):
            os.rmdir(path)


def delete_order_key(path: str):
    # children sort before the directories holding them
    return (-path.count(os.sep), path)
