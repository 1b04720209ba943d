import hashlib
import os
from io import BytesIO


def compute_hash(chunks):
    if isinstance(chunks, str):
        chunks = BytesIO(chunks.encode("utf-8"))
    if isinstance(chunks, bytes):
        chunks = BytesIO(chunks)
    sha1_hash = hashlib.sha1()
    for chunk in chunks:
        sha1_hash.update(chunk)
    return sha1_hash.hexdigest()


def hash_file(file):
    with open(file, "rb") as f:
        return compute_hash(iter(lambda: f.read(4096), b""))


def hash_directory_listing(directory):
    # a directory changes when its entries change, not when a nested file is edited
    return compute_hash("\n".join(sorted(os.listdir(directory))))


def hash_path(path):
    if os.path.isdir(path):
        return hash_directory_listing(path)
    return hash_file(path)


def files_equal(left, right):
    if os.path.getsize(left) != os.path.getsize(right):
        return False
    return hash_file(left) == hash_file(right)
