"""On-disk shapes of static resource content.

A static resource is stored either as one file named after its mime type
(``logo.png``), as a legacy ``<name>.resource`` file, or, for zip and jar
archives, as an exploded directory ``<name>/`` holding the archive entries.
"""
import logging
import mimetypes
import os
import shutil
import tempfile
from typing import List, Optional, Tuple

from forcesource.decomposition.commit import DUP_SUFFIX
from forcesource.decomposition.document import MetadataDocument
from forcesource.metadata.registry import METADATA_FILE_EXT
from forcesource.utils import delete_if_exists, walk_files
from forcesource.utils.hashing import files_equal
from forcesource.utils.ziputils import extract_archive, zip_directory

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# extensions used when the mime type is missing from the platform database
FALLBACK_MIME_TYPE_EXTENSIONS = {
    "application/octet-stream": ["bin"],
    "application/zip": ["zip"],
    "application/x-zip-compressed": ["zip"],
    "application/java-archive": ["jar"],
    "application/javascript": ["js"],
    "application/x-javascript": ["js"],
    "text/javascript": ["js"],
    "application/json": ["json"],
    "application/pdf": ["pdf"],
    "application/xml": ["xml"],
    "text/xml": ["xml"],
    "text/css": ["css"],
    "text/html": ["html"],
    "text/plain": ["txt"],
    "text/csv": ["csv"],
    "image/png": ["png"],
    "image/jpeg": ["jpeg", "jpg"],
    "image/gif": ["gif"],
    "image/svg+xml": ["svg"],
    "image/x-icon": ["ico"],
    "font/woff": ["woff"],
    "font/woff2": ["woff2"],
}
ARCHIVE_MIME_TYPES = ("application/zip", "application/java-archive")


class StaticResource:
    def __init__(
        self,
        metadata_path,
        ext="resource",
        retrieved_metadata_file_path=None,
        unsupported_mime_types: Optional[List[str]] = None,
    ):
        self.metadata_path = metadata_path
        self.ext = ext
        self.resources_dir = os.path.dirname(metadata_path)
        base = os.path.basename(metadata_path)
        suffix = f".{ext}{METADATA_FILE_EXT}"
        self.full_name = base[: -len(suffix)] if base.endswith(suffix) else base
        self.mime_type = get_mime_type(retrieved_metadata_file_path or metadata_path)
        self.file_extensions = self._mime_type_extensions(unsupported_mime_types)

    @property
    def legacy_file_path(self):
        return os.path.join(self.resources_dir, f"{self.full_name}.{self.ext}")

    @property
    def exploded_folder_path(self):
        return os.path.join(self.resources_dir, self.full_name)

    def single_file_path(self, ext=None):
        return os.path.join(self.resources_dir, f"{self.full_name}.{ext or self.file_extensions[0]}")

    def single_file_path_prefer_existing(self):
        for ext in self.file_extensions:
            if os.path.exists(self.single_file_path(ext)):
                return self.single_file_path(ext)
        return self.single_file_path()

    def is_archive_mime_type(self):
        fallback = FALLBACK_MIME_TYPE_EXTENSIONS.get(self.mime_type)
        return self.mime_type in ARCHIVE_MIME_TYPES or bool(fallback and fallback[0] == "zip")

    def is_exploded_archive(self):
        single_file_exists = os.path.exists(self.single_file_path()) or os.path.exists(
            self.legacy_file_path
        )
        return self.is_archive_mime_type() and not single_file_exists

    def get_content_paths(self) -> List[str]:
        if self.is_exploded_archive():
            if os.path.isdir(self.exploded_folder_path):
                return list(walk_files(self.exploded_folder_path))
            return []
        if os.path.exists(self.legacy_file_path):
            return [self.legacy_file_path]
        content_path = self.single_file_path_prefer_existing()
        return [content_path] if os.path.exists(content_path) else []

    def export_resource(self, target_path):
        """Write the Metadata API form of the resource to ``target_path``.

        Exploded archives are zipped back up; single files are copied."""
        if self.is_exploded_archive():
            return zip_directory(self.exploded_folder_path, target_path)
        for candidate in (
            self.legacy_file_path,
            self.single_file_path_prefer_existing(),
            self.metadata_path[: -len(METADATA_FILE_EXT)],
        ):
            if os.path.exists(candidate):
                shutil.copyfile(candidate, target_path)
                return target_path
        return None

    def save_resource(self, source_path, create_duplicates=False) -> Tuple[List[str], List[str], List[str]]:
        """Store retrieved content; returns ``(updated, duplicates, deleted)``."""
        if self.is_exploded_archive():
            return self._expand_archive(source_path, create_duplicates)
        if os.path.exists(self.legacy_file_path):
            return self._copy_single_file(source_path, self.legacy_file_path, create_duplicates)
        return self._copy_single_file(
            source_path, self.single_file_path_prefer_existing(), create_duplicates
        )

    def _expand_archive(self, source_path, create_duplicates):
        updated, duplicates, deleted = [], [], []
        exploded = self.exploded_folder_path
        temp_dir = tempfile.mkdtemp(prefix=f"forcesource_staticresource_{self.full_name}_")
        try:
            extract_archive(source_path, temp_dir)
            incoming = {os.path.relpath(f, temp_dir) for f in walk_files(temp_dir)}
            existing = set()
            if os.path.isdir(exploded):
                existing = {os.path.relpath(f, exploded) for f in walk_files(exploded)}

            for relative in sorted(incoming):
                new_file = os.path.join(temp_dir, relative)
                workspace_file = os.path.join(exploded, relative)
                if relative not in existing:
                    updated.append(workspace_file)
                elif not files_equal(new_file, workspace_file):
                    if create_duplicates:
                        # keep the workspace copy and put the retrieved one beside it
                        shutil.copyfile(new_file, new_file + DUP_SUFFIX)
                        shutil.copyfile(workspace_file, new_file)
                        duplicates.append(workspace_file + DUP_SUFFIX)
                    else:
                        updated.append(workspace_file)
            deleted = [os.path.join(exploded, relative) for relative in sorted(existing - incoming)]

            delete_if_exists(exploded)
            shutil.copytree(temp_dir, exploded)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
        return updated, duplicates, deleted

    @staticmethod
    def _copy_single_file(source_path, dest_path, create_duplicates):
        if not os.path.exists(dest_path):
            shutil.copyfile(source_path, dest_path)
            return [dest_path], [], []
        if files_equal(source_path, dest_path):
            return [], [], []
        if create_duplicates:
            shutil.copyfile(source_path, dest_path + DUP_SUFFIX)
            return [], [dest_path + DUP_SUFFIX], []
        shutil.copyfile(source_path, dest_path)
        return [dest_path], [], []

    def _mime_type_extensions(self, unsupported_mime_types):
        extensions = list(FALLBACK_MIME_TYPE_EXTENSIONS.get(self.mime_type, []))
        for guessed in mimetypes.guess_all_extensions(self.mime_type, strict=False):
            guessed = guessed.lstrip(".")
            if guessed not in extensions:
                extensions.append(guessed)
        if extensions:
            return extensions
        logger.debug(f"No file extension known for mime type {self.mime_type}")
        if unsupported_mime_types is not None:
            unsupported_mime_types.append(self.mime_type)
        return [self.ext]


def get_mime_type(metadata_path) -> str:
    if os.path.exists(metadata_path):
        content_type = MetadataDocument.from_file(metadata_path).get_child_text("contentType")
        if content_type:
            return content_type
    return DEFAULT_MIME_TYPE
