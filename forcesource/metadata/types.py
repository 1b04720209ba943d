"""Per-type naming rules for source format and Metadata API format paths.

Every metadata type answers the same questions: what is the full name of
a file, which aggregate does it belong to, where does its metadata file
live in the project, and where do its files go in a Metadata API
directory. ``DefaultMetadataType`` gives the common answers and the
subclasses below override them for types laid out differently.
``MetadataTypeFactory`` picks the class for a type name or a path.
"""
import glob
import logging
import os
import re
from typing import Dict, List, Optional

from forcesource.core.exceptions import MissingContentError, MissingMetadataFileError
from forcesource.metadata import path_utils
from forcesource.metadata.registry import METADATA_FILE_EXT, MetadataRegistry, TypeDefObj
from forcesource.metadata.static_resource import StaticResource
from forcesource.tracking.workspace import WorkspaceElement, WorkspaceFileState

logger = logging.getLogger(__name__)

STATIC_RESOURCES_DIR = "staticresources"
TERRITORY2_MODELS_DIR = "territory2Models"
EXPERIENCE_META_SUFFIX = ".site" + METADATA_FILE_EXT
WAVE_TEMPLATE_DEFINITION_FILE = "template-info.json"

FLOW_DEPRECATION = (
    "Flow version numbers in file names are deprecated. "
    "Rename the file without the version suffix."
)
FLOW_DEFINITION_DEPRECATION = (
    "FlowDefinition is deprecated. Set the active flow version "
    "in the Flow metadata file instead."
)


class DefaultMetadataType:
    """Naming rules for a type with one metadata file and at most one content file."""

    def __init__(self, type_def: TypeDefObj):
        self.type_def = type_def

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.metadata_name}>"

    @property
    def metadata_name(self) -> str:
        return self.type_def.metadata_name

    @property
    def aggregate_metadata_name(self) -> str:
        return self.metadata_name

    @property
    def ext(self) -> Optional[str]:
        return self.type_def.ext

    @property
    def has_content(self) -> bool:
        return self.type_def.has_content

    @property
    def is_addressable(self) -> bool:
        return self.type_def.is_addressable

    @property
    def decomposition_config(self):
        return self.type_def.decomposition_config

    @property
    def has_parent(self) -> bool:
        return self.metadata_name != self.aggregate_metadata_name

    @property
    def child_metadata_types(self) -> List[str]:
        return list(self.type_def.child_xml_names or [])

    # Full names

    def get_full_name_from_file_path(self, file_path) -> str:
        return path_utils.get_file_name(file_path)

    def get_aggregate_full_name_from_file_path(self, file_path) -> str:
        return path_utils.get_file_name(file_path)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name) -> str:
        return path_utils.encode_metadata_string(source_member_name)

    def get_aggregate_full_name_from_workspace_full_name(self, workspace_full_name) -> str:
        return workspace_full_name

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None) -> str:
        return file_property["fullName"]

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path) -> str:
        return path_utils.get_file_name(mdapi_package_path)

    # Workspace paths

    def resolve_source_path(self, source_path) -> str:
        return source_path

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path) -> str:
        if file_path.endswith(METADATA_FILE_EXT):
            return file_path
        return file_path + METADATA_FILE_EXT

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ) -> str:
        return self.get_aggregate_metadata_path_in_dir(default_source_dir, full_name)

    def get_aggregate_metadata_path_in_dir(self, dir_name, full_name) -> str:
        file_name = f"{full_name}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(dir_name, self.type_def.default_directory, file_name)

    def get_workspace_content_file_path(self, metadata_file_path, retrieved_content_file_path):
        return os.path.join(
            os.path.dirname(metadata_file_path), os.path.basename(retrieved_content_file_path)
        )

    def get_workspace_elements_to_delete(self, aggregate_metadata_path, file_property) -> list:
        return []

    # Metadata API paths

    def get_mdapi_metadata_path(self, metadata_file_path, aggregate_full_name, md_dir) -> str:
        return os.path.join(
            self._get_path_to_mdapi_source_dir(aggregate_full_name, md_dir),
            self._get_mdapi_formatted_metadata_file_name(metadata_file_path),
        )

    def get_mdapi_content_path_for_source_convert(
        self, origin_content_path, aggregate_full_name, md_dir
    ) -> str:
        return os.path.join(
            self._get_path_to_mdapi_source_dir(aggregate_full_name, md_dir),
            self._get_mdapi_formatted_content_file_name(origin_content_path, aggregate_full_name),
        )

    def _get_path_to_mdapi_source_dir(self, aggregate_full_name, md_dir) -> str:
        return os.path.join(md_dir, self.type_def.default_directory)

    def _get_mdapi_formatted_metadata_file_name(self, metadata_file_path) -> str:
        file_name = os.path.basename(metadata_file_path)
        if not self.has_content:
            return path_utils.remove_metadata_file_ext(file_name)
        return file_name

    def _get_mdapi_formatted_content_file_name(self, origin_content_path, aggregate_full_name):
        return os.path.basename(origin_content_path)

    # Retrieved (Metadata API format) files

    def get_retrieved_metadata_path(
        self, file_property, retrieve_root, bundle_file_properties=None
    ) -> Optional[str]:
        file_name = file_property["fileName"]
        if self.has_content:
            file_name += METADATA_FILE_EXT
        return self._validate_retrieved_metadata_path_exists(os.path.join(retrieve_root, file_name))

    @staticmethod
    def _validate_retrieved_metadata_path_exists(retrieved_metadata_path):
        if not os.path.exists(retrieved_metadata_path):
            raise MissingMetadataFileError(retrieved_metadata_path)
        return retrieved_metadata_path

    def get_retrieved_content_path(self, file_property, retrieve_root) -> Optional[str]:
        if self.has_content:
            retrieved_content_path = os.path.join(retrieve_root, file_property["fileName"])
            if os.path.exists(retrieved_content_path):
                return retrieved_content_path
        return None

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ) -> List[str]:
        return [path_utils.remove_metadata_file_ext(metadata_file_path)]

    # Predicates

    def is_standard_member(self, workspace_full_name) -> bool:
        return self.type_def.has_standard_members and "__" not in workspace_full_name

    def delete_supported(self, workspace_full_name) -> bool:
        return self.type_def.delete_supported and not self.is_standard_member(workspace_full_name)

    def is_folder_type(self) -> bool:
        return False

    def has_individually_addressable_child_workspace_elements(self) -> bool:
        return False

    def requires_individually_addressable_members_in_package(self) -> bool:
        return False

    def should_get_metadata_translation(self) -> bool:
        return True

    def main_content_file_exists(self, metadata_file_path) -> bool:
        return os.path.exists(path_utils.remove_metadata_file_ext(metadata_file_path))

    def entity_exists_in_workspace(self, metadata_file_path) -> bool:
        return os.path.exists(metadata_file_path)

    def is_content_path(self, source_path) -> bool:
        return self.has_content and not source_path.endswith(METADATA_FILE_EXT)

    def is_container_valid(self, container) -> bool:
        return True

    def should_delete_workspace_aggregate(self, metadata_name) -> bool:
        return metadata_name == self.aggregate_metadata_name

    def validate_deleted_content_path(self, deleted_content_path, content_paths, registry):
        pass

    # Remote changes

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ) -> bool:
        return path_utils.encode_metadata_string(source_member_full_name) == workspace_full_name

    def track_remote_change_for_source_member_name(self, source_member_name) -> bool:
        return True

    def handle_slashes_for_source_member_name(self, source_member_full_name) -> str:
        return source_member_full_name

    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ) -> Dict:
        return {
            "fullName": source_member_name,
            "type": source_member_type,
            "isNameObsolete": is_name_obsolete,
        }

    def get_display_name_for_remote_change(self, source_member_type) -> str:
        return self.metadata_name

    def get_deprecation_message(self, full_name=None) -> Optional[str]:
        return None


class ApexClassMetadataType(DefaultMetadataType):
    pass


# Bundles: a directory of content files named after the component.


def _last_index(parts, value) -> Optional[int]:
    for index in range(len(parts) - 1, -1, -1):
        if parts[index] == value:
            return index
    return None


def _scan_file_path_for_aggregate_full_name(file_path, default_directory) -> Optional[str]:
    directory, file_name = os.path.split(file_path)
    if os.path.basename(directory) == default_directory and not os.path.splitext(file_name)[1]:
        return file_name
    parts = directory.split(os.sep)
    index = _last_index(parts, default_directory)
    if index is None:
        return None
    if index + 1 >= len(parts):
        return None
    return parts[index + 1]


def _build_full_name_from_file_path(file_path, default_directory) -> str:
    """The path of a bundle file relative to the type directory."""
    parts = path_utils.remove_metadata_file_ext(file_path).split(os.sep)
    index = _last_index(parts[:-1], default_directory)
    if index is not None:
        return os.path.join(*parts[index + 1 :])
    return os.path.join(*parts[-2:])


def _find_bundle_dir(file_path, default_directory) -> Optional[str]:
    parts = file_path.split(os.sep)
    index = _last_index(parts[:-1], default_directory)
    if index is None:
        return None
    return os.sep.join(parts[: index + 2])


def _find_metadata_file_in_bundle_dir(bundle_dir) -> Optional[str]:
    matches = sorted(glob.glob(os.path.join(glob.escape(bundle_dir), "*" + METADATA_FILE_EXT)))
    return matches[0] if matches else None


def _all_nested_bundle_content_paths(bundle_dir, forceignore) -> List[str]:
    paths = []
    for dirpath, _, filenames in os.walk(bundle_dir):
        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            if path.endswith(METADATA_FILE_EXT):
                continue
            if forceignore is None or forceignore.accepts(path):
                paths.append(path)
    return sorted(paths)


def _metadata_file_name_from_bundle_file_properties(full_name, bundle_file_properties) -> str:
    bundle_name = full_name.split(os.sep)[0]
    for file_property in bundle_file_properties or []:
        if file_property["fullName"].split(os.sep)[0] == bundle_name:
            return os.path.basename(file_property["fileName"]) + METADATA_FILE_EXT
    raise MissingMetadataFileError(full_name)


class BundleMetadataType(DefaultMetadataType):
    """``lwc/myCmp/myCmp.js-meta.xml`` plus every other file below ``lwc/myCmp``."""

    @property
    def default_directory(self):
        return self.type_def.default_directory

    def get_full_name_from_file_path(self, file_path):
        return _build_full_name_from_file_path(file_path, self.default_directory)

    def get_aggregate_full_name_from_file_path(self, file_path):
        return _scan_file_path_for_aggregate_full_name(file_path, self.default_directory)

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        return mdapi_package_path.split(os.sep)[1]

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        if file_path.endswith(METADATA_FILE_EXT):
            return file_path
        bundle_dir = _find_bundle_dir(file_path, self.default_directory)
        if bundle_dir is None:
            return file_path
        return _find_metadata_file_in_bundle_dir(bundle_dir) or file_path

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        bundle_name = full_name.split(os.sep)[0]
        file_name = _metadata_file_name_from_bundle_file_properties(
            full_name, bundle_file_properties
        )
        return os.path.join(default_source_dir, self.default_directory, bundle_name, file_name)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return source_member_name.split("/")[0]

    def get_aggregate_full_name_from_workspace_full_name(self, workspace_full_name):
        return workspace_full_name.split(os.sep)[0]

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        return file_property["fullName"].split(os.sep)[0]

    def get_retrieved_metadata_path(self, file_property, retrieve_root, bundle_file_properties=None):
        bundle_dir = _find_bundle_dir(
            os.path.join(retrieve_root, file_property["fileName"]), self.default_directory
        )
        if bundle_dir is None:
            return None
        return _find_metadata_file_in_bundle_dir(bundle_dir)

    def get_definition_file_property(self, file_property, retrieve_root) -> Optional[dict]:
        """The file property of the bundle file that carries the bundle metadata."""
        bundle_dir = _find_bundle_dir(
            os.path.join(retrieve_root, file_property["fileName"]), self.default_directory
        )
        metadata_path = bundle_dir and _find_metadata_file_in_bundle_dir(bundle_dir)
        if not metadata_path:
            return None
        definition_path = path_utils.remove_metadata_file_ext(metadata_path)
        return {
            "type": self.metadata_name,
            "fileName": os.path.relpath(definition_path, retrieve_root),
            "fullName": os.path.splitext(os.path.basename(definition_path))[0],
        }

    def get_workspace_content_file_path(self, metadata_file_path, retrieved_content_file_path):
        bundle_name = _scan_file_path_for_aggregate_full_name(
            retrieved_content_file_path, self.default_directory
        )
        return os.path.join(
            os.path.dirname(metadata_file_path),
            self._get_mdapi_formatted_content_file_name(retrieved_content_file_path, bundle_name),
        )

    def _get_path_to_mdapi_source_dir(self, aggregate_full_name, md_dir):
        return os.path.join(md_dir, self.default_directory, aggregate_full_name)

    def _get_mdapi_formatted_content_file_name(self, origin_content_path, aggregate_full_name):
        parts = os.path.dirname(origin_content_path).split(os.sep)
        index = _last_index(parts, aggregate_full_name)
        if index is None:
            return os.path.basename(origin_content_path)
        return os.path.relpath(origin_content_path, os.sep.join(parts[: index + 1]) or os.sep)

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        return _all_nested_bundle_content_paths(os.path.dirname(metadata_file_path), forceignore)

    def handle_slashes_for_source_member_name(self, source_member_full_name):
        return path_utils.replace_forward_slashes(source_member_full_name)

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ):
        return source_member_full_name == workspace_full_name

    def track_remote_change_for_source_member_name(self, source_member_name):
        # the org reports the bundle and each file in it; only the files count
        return len(source_member_name.split("/")) > 1

    def should_delete_workspace_aggregate(self, metadata_name):
        return False


class AuraDefinitionBundleMetadataType(BundleMetadataType):
    def get_full_name_from_file_path(self, file_path):
        return os.path.join(
            path_utils.get_parent_directory_name(file_path),
            path_utils.remove_metadata_file_ext(os.path.basename(file_path)),
        )

    def get_aggregate_full_name_from_file_path(self, file_path):
        return path_utils.get_parent_directory_name(file_path)

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        bundle_dir = os.path.dirname(metadata_file_path)
        paths = sorted(glob.glob(os.path.join(glob.escape(bundle_dir), "*")))
        return [
            path
            for path in paths
            if os.path.isfile(path)
            and not path.endswith(METADATA_FILE_EXT)
            and (forceignore is None or forceignore.accepts(path))
        ]

    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ):
        return super().parse_source_member_for_metadata_retrieve(
            path_utils.replace_forward_slashes(source_member_name),
            source_member_type,
            is_name_obsolete,
        )

    def validate_deleted_content_path(self, deleted_content_path, content_paths, registry):
        """A definition file cannot be deleted while the rest of its bundle remains."""
        lightning_def = registry.get_lightning_def_by_file_name(deleted_content_path)
        if lightning_def and lightning_def.get("hasMetadata"):
            suffix = lightning_def["fileSuffix"]
            if any(not path.endswith(suffix) for path in content_paths):
                raise MissingContentError(deleted_content_path)


class LightningComponentBundleMetadataType(BundleMetadataType):
    pass


class WaveTemplateBundleMetadataType(BundleMetadataType):
    """Wave templates have no metadata file; the bundle directory stands in for it."""

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        bundle_name = self.get_aggregate_full_name_from_file_path(file_path)
        return os.path.join(path_utils.get_path_to_dir(file_path, self.default_directory), bundle_name)

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        return os.path.join(default_source_dir, self.default_directory, full_name)

    def get_retrieved_metadata_path(self, file_property, retrieve_root, bundle_file_properties=None):
        return None

    def get_definition_file_property(self, file_property, retrieve_root):
        return dict(file_property)

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        return _all_nested_bundle_content_paths(metadata_file_path, forceignore)

    def get_workspace_content_file_path(self, metadata_file_path, retrieved_content_file_path):
        bundle_name = _scan_file_path_for_aggregate_full_name(
            retrieved_content_file_path, self.default_directory
        )
        return os.path.join(
            metadata_file_path,
            self._get_mdapi_formatted_content_file_name(retrieved_content_file_path, bundle_name),
        )

    def get_mdapi_metadata_path(self, metadata_file_path, aggregate_full_name, md_dir):
        return self._get_path_to_mdapi_source_dir(aggregate_full_name, md_dir)

    def main_content_file_exists(self, metadata_file_path):
        return os.path.exists(os.path.join(metadata_file_path, WAVE_TEMPLATE_DEFINITION_FILE))

    def should_get_metadata_translation(self):
        return False

    def track_remote_change_for_source_member_name(self, source_member_name):
        return True

    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ):
        return {
            "fullName": self.get_aggregate_full_name_from_source_member_name(source_member_name),
            "type": source_member_type,
            "isNameObsolete": is_name_obsolete,
        }


class ExperienceBundleMetadataType(DefaultMetadataType):
    """``experiences/site1.site-meta.xml`` with JSON content below ``experiences/site1/``."""

    CONTENT_FILE_FORMAT = ".json"

    @property
    def default_directory(self):
        return self.type_def.default_directory

    def _split_on_default_directory(self, file_path):
        marker = f"{os.sep}{self.default_directory}{os.sep}"
        if file_path.startswith(self.default_directory + os.sep):
            return "", file_path[len(self.default_directory) + 1 :]
        head, _, tail = file_path.rpartition(marker)
        return head, tail

    def get_relative_content_path(self, content_path) -> str:
        return self._split_on_default_directory(content_path)[1]

    def get_meta_file_name(self, full_name) -> str:
        bundle_name = full_name.lstrip(os.sep).split(os.sep)[0]
        return os.path.basename(bundle_name) + EXPERIENCE_META_SUFFIX

    def get_full_name_from_file_path(self, file_path):
        return os.path.join(
            path_utils.get_grandparent_directory_name(file_path),
            path_utils.get_parent_directory_name(file_path),
            path_utils.remove_metadata_file_ext(os.path.basename(file_path)),
        )

    def get_aggregate_full_name_from_file_path(self, file_path):
        if file_path.endswith(EXPERIENCE_META_SUFFIX):
            return os.path.basename(file_path)[: -len(EXPERIENCE_META_SUFFIX)]
        if os.path.splitext(file_path)[1] == self.CONTENT_FILE_FORMAT:
            return path_utils.get_grandparent_directory_name(file_path)
        return path_utils.get_file_name(file_path)

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        return mdapi_package_path.split(os.sep)[1].split(".")[0]

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        if file_path.endswith(EXPERIENCE_META_SUFFIX):
            return file_path
        head, relative = self._split_on_default_directory(file_path)
        return os.path.join(head, self.default_directory, self.get_meta_file_name(relative))

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        return os.path.join(
            default_source_dir, self.default_directory, self.get_meta_file_name(full_name)
        )

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        return path_utils.get_grandparent_directory_name(file_property["fullName"])

    def get_retrieved_metadata_path(self, file_property, retrieve_root, bundle_file_properties=None):
        folder_path = os.path.dirname(file_property["fileName"]).split(os.sep)
        bundle_path = os.path.join(*folder_path[:2])
        return self._validate_retrieved_metadata_path_exists(
            os.path.join(
                retrieve_root, bundle_path, self.get_meta_file_name(file_property["fullName"])
            )
        )

    def get_workspace_content_file_path(self, metadata_file_path, retrieved_content_file_path):
        return os.path.join(
            os.path.dirname(metadata_file_path),
            self.get_relative_content_path(retrieved_content_file_path),
        )

    def get_mdapi_content_path_for_source_convert(
        self, origin_content_path, aggregate_full_name, md_dir
    ):
        return os.path.join(
            self._get_path_to_mdapi_source_dir(aggregate_full_name, md_dir),
            self.get_relative_content_path(origin_content_path),
        )

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        bundle_name = os.path.basename(metadata_file_path)[: -len(EXPERIENCE_META_SUFFIX)]
        bundle_dir = os.path.join(os.path.dirname(metadata_file_path), bundle_name)
        return _all_nested_bundle_content_paths(bundle_dir, forceignore)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return source_member_name.split("/")[0]

    def track_remote_change_for_source_member_name(self, source_member_name):
        return len(source_member_name.split("/")) > 1

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ):
        return source_member_full_name == workspace_full_name

    def main_content_file_exists(self, metadata_file_path):
        return os.path.exists(metadata_file_path)


# Types decomposed into one directory per entity.


class _DecomposedParentMetadataType(DefaultMetadataType):
    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        return path_utils.remove_parent_dir_from_path(file_path)

    def entity_exists_in_workspace(self, metadata_file_path):
        aggregate_full_name = self.get_aggregate_full_name_from_file_path(metadata_file_path)
        return os.path.exists(os.path.join(os.path.dirname(metadata_file_path), aggregate_full_name))


class CustomObjectMetadataType(_DecomposedParentMetadataType):
    def has_individually_addressable_child_workspace_elements(self):
        return True

    def is_container_valid(self, container):
        # an empty <CustomObject/> container only exists because fields were retrieved
        return container is not None and len(container.child_elements()) > 0


class BotMetadataType(CustomObjectMetadataType):
    pass


class CustomObjectTranslationMetadataType(_DecomposedParentMetadataType):
    pass


class _DecomposedSubtypeMetadataType(DefaultMetadataType):
    """A fragment of a decomposed parent; it is named ``<Parent>.<Fragment>``."""

    @property
    def aggregate_metadata_name(self):
        return self.type_def.parent.metadata_name

    def _aggregate_dir_name(self, file_path):
        return path_utils.get_grandparent_directory_name(file_path)

    def get_full_name_from_file_path(self, file_path):
        return f"{self._aggregate_dir_name(file_path)}.{path_utils.get_file_name(file_path)}"

    def get_aggregate_full_name_from_file_path(self, file_path):
        return self._aggregate_dir_name(file_path)

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        parent = self.type_def.parent
        path_to_default_dir = path_utils.get_path_to_dir(file_path, parent.default_directory)
        file_name = (
            f"{self.get_aggregate_full_name_from_file_path(file_path)}"
            f".{parent.ext}{METADATA_FILE_EXT}"
        )
        return os.path.join(path_to_default_dir, file_name)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return source_member_name.split(".")[0]

    def get_aggregate_full_name_from_workspace_full_name(self, workspace_full_name):
        return workspace_full_name.split(".")[0]


class CustomObjectSubtypeMetadataType(_DecomposedSubtypeMetadataType):
    """``objects/Account/fields/Name__c.field-meta.xml`` is ``Account.Name__c``."""


class BotSubtypeMetadataType(_DecomposedSubtypeMetadataType):
    """Bot versions sit directly in the bot directory."""

    def _aggregate_dir_name(self, file_path):
        return path_utils.get_parent_directory_name(file_path)


class CustomObjectTranslationSubtypeMetadataType(_DecomposedSubtypeMetadataType):
    def _aggregate_dir_name(self, file_path):
        return path_utils.get_parent_directory_name(file_path)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return path_utils.encode_metadata_string(source_member_name)

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ):
        return source_member_full_name == self.get_aggregate_full_name_from_workspace_full_name(
            workspace_full_name
        )


# Folders and the types stored in them.


def _parent_folder_below(file_path, default_directory):
    parts = file_path.split(os.sep)
    index = _last_index(parts, default_directory)
    start = 0 if index is None else index + 1
    return os.sep.join(parts[start:-1])


def _name_below_default_directory(file_path, default_directory):
    return os.path.join(
        _parent_folder_below(file_path, default_directory), path_utils.get_file_name(file_path)
    )


def _name_from_mdapi_folder_path(mdapi_package_path):
    parts = mdapi_package_path.split(os.sep)
    return os.path.join(os.sep.join(parts[1:-1]), path_utils.get_file_name(mdapi_package_path))


class FolderMetadataType(DefaultMetadataType):
    """``reports/Sales.reportFolder-meta.xml`` in source, ``reports/Sales-meta.xml`` in mdapi."""

    def get_full_name_from_file_path(self, file_path):
        return self.get_aggregate_full_name_from_file_path(file_path)

    def get_aggregate_full_name_from_file_path(self, file_path):
        return _name_below_default_directory(file_path, self.type_def.default_directory)

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        return _name_from_mdapi_folder_path(mdapi_package_path)

    def _get_mdapi_formatted_metadata_file_name(self, metadata_file_path):
        parent_folder = _parent_folder_below(metadata_file_path, self.type_def.default_directory)
        file_name = os.path.basename(metadata_file_path).split(".")[0] + METADATA_FILE_EXT
        return os.path.join(parent_folder, file_name)

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        file_name = f"{full_name}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(default_source_dir, self.type_def.default_directory, file_name)

    def get_retrieved_metadata_path(self, file_property, retrieve_root, bundle_file_properties=None):
        file_name = file_property["fileName"]
        if not file_name.endswith(METADATA_FILE_EXT):
            file_name += METADATA_FILE_EXT
        return self._validate_retrieved_metadata_path_exists(os.path.join(retrieve_root, file_name))

    def is_folder_type(self):
        return True

    @staticmethod
    def create_empty_folder(workspace_elements, metadata_file_path, ext) -> Optional[str]:
        """Create the directory for a folder that was just added to the workspace."""
        is_new = any(
            element.source_path == metadata_file_path and element.state is WorkspaceFileState.NEW
            for element in workspace_elements
        )
        if not is_new:
            return None
        folder_path = metadata_file_path[: metadata_file_path.index(f".{ext}{METADATA_FILE_EXT}")]
        if os.path.exists(folder_path):
            return None
        os.makedirs(folder_path)
        return folder_path


class InFolderMetadataType(DefaultMetadataType):
    """Types like Report whose full name includes their folder: ``Sales/Pipeline``."""

    def get_full_name_from_file_path(self, file_path):
        return self.get_aggregate_full_name_from_file_path(file_path)

    def get_aggregate_full_name_from_file_path(self, file_path):
        return _name_below_default_directory(file_path, self.type_def.default_directory)

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        file_name = f"{path_utils.replace_forward_slashes(full_name)}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(default_source_dir, self.type_def.default_directory, file_name)

    def _get_path_to_mdapi_source_dir(self, aggregate_full_name, md_dir):
        parent_folder = os.sep.join(aggregate_full_name.split(os.sep)[:-1])
        return os.path.join(md_dir, self.type_def.default_directory, parent_folder)

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        return _name_from_mdapi_folder_path(mdapi_package_path)

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return source_member_name

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ):
        return source_member_full_name == workspace_full_name

    def handle_slashes_for_source_member_name(self, source_member_full_name):
        return path_utils.replace_forward_slashes(source_member_full_name)


class DocumentMetadataType(InFolderMetadataType):
    """Documents keep their real extension: ``logo.png`` beside ``logo.document-meta.xml``."""

    def _get_mdapi_formatted_metadata_file_name(self, metadata_file_path):
        content_path = path_utils.get_content_path_with_non_std_ext(metadata_file_path)
        if content_path is None:
            raise MissingContentError(metadata_file_path)
        return os.path.basename(content_path) + METADATA_FILE_EXT

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        metadata_file_name = f"{path_utils.get_file_name(file_path)}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(os.path.dirname(file_path), metadata_file_name)

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        return file_property["fullName"].split(".")[0]

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        return super().get_aggregate_full_name_from_mdapi_package_path(mdapi_package_path).split(".")[0]

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        return super().get_default_aggregate_metadata_path(
            full_name.split(".")[0], default_source_dir, bundle_file_properties
        )

    def get_workspace_elements_to_delete(self, aggregate_metadata_path, file_property):
        """The old content file when a retrieved document changed its extension."""
        if not aggregate_metadata_path:
            return []
        existing_path = path_utils.get_content_path_with_non_std_ext(aggregate_metadata_path)
        if existing_path is None:
            return []
        existing_ext = os.path.splitext(existing_path)[1].lstrip(".")
        retrieved_ext = os.path.splitext(file_property["fileName"])[1].lstrip(".")
        if existing_ext == retrieved_ext:
            return []
        return [
            WorkspaceElement(
                self.metadata_name,
                self.get_aggregate_full_name_from_file_property(file_property),
                existing_path,
                WorkspaceFileState.DELETED,
                delete_supported=True,
            )
        ]

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        content_path = path_utils.get_content_path_with_non_std_ext(metadata_file_path)
        return [content_path] if content_path else []

    def main_content_file_exists(self, metadata_file_path):
        return path_utils.get_content_path_with_non_std_ext(metadata_file_path) is not None


class StaticResourceMetadataType(DefaultMetadataType):
    """Content is one file named after the mime type, or an exploded archive directory."""

    def _slice_path(self, file_path, modifier=1) -> List[str]:
        parts = file_path.split(os.sep)
        index = _last_index(parts, STATIC_RESOURCES_DIR)
        if index is None:
            return parts
        return parts[: min(index + modifier, len(parts))]

    @staticmethod
    def _remove_extensions(file_path):
        while os.path.splitext(file_path)[1]:
            file_path = os.path.splitext(file_path)[0]
        return file_path

    def resolve_source_path(self, source_path):
        return os.sep.join(self._slice_path(source_path, 2))

    def get_full_name_from_file_path(self, file_path):
        return self.get_aggregate_full_name_from_file_path(file_path)

    def get_aggregate_full_name_from_file_path(self, file_path):
        if file_path.endswith(f"{self.ext}{METADATA_FILE_EXT}"):
            return os.path.basename(self._remove_extensions(path_utils.remove_metadata_file_ext(file_path)))
        return self._remove_extensions(self._slice_path(file_path, 2)[-1])

    def get_aggregate_metadata_file_path_from_workspace_path(self, file_path):
        static_resources_path = os.sep.join(self._slice_path(file_path))
        full_name = self.get_full_name_from_file_path(file_path)
        return os.path.join(static_resources_path, f"{full_name}.{self.ext}{METADATA_FILE_EXT}")

    def get_origin_content_paths_for_source_convert(
        self, metadata_file_path, forceignore=None, unsupported_mime_types=None, work_dir=None
    ):
        static_resource = StaticResource(
            metadata_file_path, self.ext, unsupported_mime_types=unsupported_mime_types
        )
        target_path = os.path.join(
            work_dir or os.path.dirname(metadata_file_path),
            f"{static_resource.full_name}.{self.ext}",
        )
        exported = static_resource.export_resource(target_path)
        if exported is None:
            raise MissingContentError(metadata_file_path)
        return [exported]

    def _get_mdapi_formatted_content_file_name(self, origin_content_path, aggregate_full_name):
        return f"{aggregate_full_name}.{self.ext}"

    def main_content_file_exists(self, metadata_file_path):
        return bool(StaticResource(metadata_file_path, self.ext).get_content_paths())

    def should_delete_workspace_aggregate(self, metadata_name):
        return False


# Types whose children are tracked by the org but stored in the parent file.


class NondecomposedTypesWithChildrenMetadataType(DefaultMetadataType):
    def requires_individually_addressable_members_in_package(self):
        return True

    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        parts = source_member_name.split(".")
        # a bare child name means the whole type
        return self.metadata_name if len(parts) == 1 else parts[0]

    def get_display_name_for_remote_change(self, source_member_type):
        return source_member_type

    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ):
        return {
            "fullName": self.get_aggregate_full_name_from_source_member_name(source_member_name),
            "type": self.metadata_name,
        }


class CustomLabelsMetadataType(NondecomposedTypesWithChildrenMetadataType):
    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ):
        if source_member_type == "CustomLabel":
            return {"fullName": "*", "type": self.metadata_name}
        return DefaultMetadataType.parse_source_member_for_metadata_retrieve(
            self, source_member_name, source_member_type, is_name_obsolete
        )


class SharingRulesMetadataType(NondecomposedTypesWithChildrenMetadataType):
    RULE_TYPES = (
        "SharingOwnerRule",
        "SharingCriteriaRule",
        "SharingGuestRule",
        "SharingTerritoryRule",
    )

    def source_member_full_name_corresponds_with_workspace_full_name(
        self, source_member_full_name, workspace_full_name
    ):
        return source_member_full_name.split(".")[0] == workspace_full_name

    def get_display_name_for_remote_change(self, source_member_type):
        return self.metadata_name

    def parse_source_member_for_metadata_retrieve(
        self, source_member_name, source_member_type, is_name_obsolete=False
    ):
        if source_member_type in self.RULE_TYPES:
            full_name = self.get_aggregate_full_name_from_source_member_name(source_member_name)
            return {"fullName": f"{full_name}.*", "type": source_member_type}
        return DefaultMetadataType.parse_source_member_for_metadata_retrieve(
            self, source_member_name, source_member_type, is_name_obsolete
        )


class WorkflowMetadataType(NondecomposedTypesWithChildrenMetadataType):
    def get_aggregate_full_name_from_source_member_name(self, source_member_name):
        return source_member_name.split(".")[0]


# Territories are stored below the model they belong to.


class Territory2AndTerritory2RuleMetadataType(DefaultMetadataType):
    """``territory2Models/FY21/territories/West.territory2-meta.xml`` is ``FY21.West``."""

    def get_full_name_from_file_path(self, file_path):
        return self.get_aggregate_full_name_from_file_path(file_path)

    def get_aggregate_full_name_from_file_path(self, file_path):
        model_name = path_utils.get_grandparent_directory_name(file_path)
        name = path_utils.get_file_name(file_path)
        return f"{model_name}.{name}" if model_name else name

    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        model_name, _, name = full_name.rpartition(".")
        file_name = f"{name}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(
            default_source_dir,
            TERRITORY2_MODELS_DIR,
            model_name,
            self.type_def.default_directory,
            file_name,
        )

    def _get_path_to_mdapi_source_dir(self, aggregate_full_name, md_dir):
        return os.path.join(
            md_dir,
            TERRITORY2_MODELS_DIR,
            aggregate_full_name.split(".")[0],
            self.type_def.default_directory,
        )

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        if file_property.get("fullName"):
            return file_property["fullName"]
        file_name = path_utils.replace_forward_slashes(file_property["fileName"])
        model_name = file_name.split(os.sep)[2]
        return f"{model_name}.{os.path.basename(file_name).split('.')[0]}"

    def get_aggregate_full_name_from_mdapi_package_path(self, mdapi_package_path):
        parts = mdapi_package_path.split(os.sep)
        if len(parts) != 4:
            return None
        return f"{parts[1]}.{path_utils.get_file_name(parts[3])}"


class Territory2ModelMetadataType(DefaultMetadataType):
    def get_default_aggregate_metadata_path(
        self, full_name, default_source_dir, bundle_file_properties=None
    ):
        file_name = f"{full_name}.{self.ext}{METADATA_FILE_EXT}"
        return os.path.join(default_source_dir, self.type_def.default_directory, full_name, file_name)

    def _get_path_to_mdapi_source_dir(self, aggregate_full_name, md_dir):
        return os.path.join(md_dir, self.type_def.default_directory, aggregate_full_name)

    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        base = os.path.basename(file_property["fileName"])
        suffix = f".{self.ext}"
        return base[: -len(suffix)] if base.endswith(suffix) else base


class FlowMetadataType(DefaultMetadataType):
    def get_deprecation_message(self, full_name=None):
        if full_name and re.search(r"-[0-9]$", full_name):
            return FLOW_DEPRECATION
        return None


class FlowDefinitionMetadataType(DefaultMetadataType):
    def get_deprecation_message(self, full_name=None):
        return FLOW_DEFINITION_DEPRECATION


class CustomPageWeblinkMetadataType(DefaultMetadataType):
    def _get_mdapi_formatted_metadata_file_name(self, metadata_file_path):
        file_name = os.path.basename(metadata_file_path)
        return file_name.replace(f".{self.ext}{METADATA_FILE_EXT}", ".weblink")


class SamlSsoConfigMetadataType(DefaultMetadataType):
    def get_aggregate_full_name_from_file_property(self, file_property, namespace=None):
        if namespace:
            return file_property["fullName"].replace(f"{namespace}__", "")
        return file_property["fullName"]


# Type names the org reports that are stored under another type.
TYPE_DEF_NAME_ALIASES = {
    "LightningComponentResource": "LightningComponentBundle",
    "AuraDefinition": "AuraDefinitionBundle",
    "ExperienceResource": "ExperienceBundle",
    "CustomLabel": "CustomLabels",
    "AssignmentRule": "AssignmentRules",
    "AutoResponseRule": "AutoResponseRules",
    "EscalationRule": "EscalationRules",
    "MatchingRule": "MatchingRules",
    "WorkflowFieldUpdate": "Workflow",
    "WorkflowKnowledgePublish": "Workflow",
    "WorkflowTask": "Workflow",
    "WorkflowAlert": "Workflow",
    "WorkflowSend": "Workflow",
    "WorkflowOutboundMessage": "Workflow",
    "WorkflowRule": "Workflow",
    "SharingOwnerRule": "SharingRules",
    "SharingCriteriaRule": "SharingRules",
    "SharingGuestRule": "SharingRules",
    "SharingTerritoryRule": "SharingRules",
}

METADATA_TYPE_CLASSES = {
    "ApexClass": ApexClassMetadataType,
    "CustomObject": CustomObjectMetadataType,
    "CustomObjectTranslation": CustomObjectTranslationMetadataType,
    "AuraDefinitionBundle": AuraDefinitionBundleMetadataType,
    "CustomPageWebLink": CustomPageWeblinkMetadataType,
    "Document": DocumentMetadataType,
    "LightningComponentBundle": LightningComponentBundleMetadataType,
    "WaveTemplateBundle": WaveTemplateBundleMetadataType,
    "Territory2": Territory2AndTerritory2RuleMetadataType,
    "Territory2Rule": Territory2AndTerritory2RuleMetadataType,
    "Territory2Model": Territory2ModelMetadataType,
    "SamlSsoConfig": SamlSsoConfigMetadataType,
    "CustomLabels": CustomLabelsMetadataType,
    "AssignmentRules": NondecomposedTypesWithChildrenMetadataType,
    "AutoResponseRules": NondecomposedTypesWithChildrenMetadataType,
    "EscalationRules": NondecomposedTypesWithChildrenMetadataType,
    "MatchingRules": NondecomposedTypesWithChildrenMetadataType,
    "Workflow": WorkflowMetadataType,
    "SharingRules": SharingRulesMetadataType,
    "StaticResource": StaticResourceMetadataType,
    "FlowDefinition": FlowDefinitionMetadataType,
    "Flow": FlowMetadataType,
    "ExperienceBundle": ExperienceBundleMetadataType,
    "Bot": BotMetadataType,
}

SUBTYPE_CLASSES = {
    "CustomObject": CustomObjectSubtypeMetadataType,
    "CustomObjectTranslation": CustomObjectTranslationSubtypeMetadataType,
    "Bot": BotSubtypeMetadataType,
}


class MetadataTypeFactory:
    """Builds the ``DefaultMetadataType`` subclass for a name, path or file property."""

    def __init__(self, registry: MetadataRegistry):
        self.registry = registry

    @staticmethod
    def get_type_def_name(metadata_name) -> str:
        return TYPE_DEF_NAME_ALIASES.get(metadata_name, metadata_name)

    def get_metadata_type_from_metadata_name(self, metadata_name) -> Optional[DefaultMetadataType]:
        type_def_name = self.get_type_def_name(metadata_name)
        if not self.registry.is_supported(type_def_name):
            return None
        type_def = self.registry.get_type_definition_by_metadata_name(type_def_name)
        if type_def is None:
            return None
        if type_def.parent is not None and type_def.parent.metadata_name in SUBTYPE_CLASSES:
            return SUBTYPE_CLASSES[type_def.parent.metadata_name](type_def)
        if type_def_name.endswith("Folder"):
            return FolderMetadataType(type_def)
        if type_def.in_folder and type_def_name != "Document":
            return InFolderMetadataType(type_def)
        return METADATA_TYPE_CLASSES.get(type_def_name, DefaultMetadataType)(type_def)

    def get_metadata_type_from_source_path(self, source_path) -> Optional[DefaultMetadataType]:
        type_def = self.registry.get_type_definition_by_file_name(source_path, use_true_ext_type=True)
        if type_def is None:
            return None
        return self.get_metadata_type_from_metadata_name(type_def.metadata_name)

    def get_metadata_type_from_file_property(self, file_property) -> Optional[DefaultMetadataType]:
        type_def = self.registry.get_type_definition_by_metadata_name(file_property["type"])
        if type_def is not None and type_def.in_folder:
            type_name = type_def.metadata_name.lower()
            is_report_folder = type_name in ("report", "dashboard") and not file_property[
                "fileName"
            ].endswith(type_name)
            if is_report_folder or len(file_property["fullName"].split(os.sep)) == 1:
                type_def = type_def.folder_type_def
        if type_def is None:
            return None
        return self.get_metadata_type_from_metadata_name(type_def.metadata_name)

    def get_aggregate_metadata_type(self, metadata_name) -> Optional[DefaultMetadataType]:
        metadata_type = self.get_metadata_type_from_metadata_name(metadata_name)
        if metadata_type is not None and metadata_type.has_parent:
            return self.get_metadata_type_from_metadata_name(metadata_type.aggregate_metadata_name)
        return metadata_type

    def get_metadata_type_from_mdapi_package_path(self, package_path) -> Optional[DefaultMetadataType]:
        """Resolve ``<type-dir>/[<container-dir>/]<file>`` relative to a package root."""
        parts = package_path.split(os.sep)
        if len(parts) < 2:
            return None
        type_dir, file_name = parts[0], parts[-1]
        possible = self.registry.get_type_definitions_by_directory_name(type_dir)
        type_def = None
        if len(possible) == 1:
            type_def = possible[0]
        else:
            in_folder_type = next((t for t in possible if t.in_folder), None)
            if in_folder_type is not None:
                if len(parts) == 2:
                    type_def = in_folder_type.folder_type_def
                elif type_dir == "reports" and not file_name.endswith("report"):
                    type_def = in_folder_type.folder_type_def
                elif type_dir == "dashboards" and not file_name.endswith("dashboard"):
                    type_def = in_folder_type.folder_type_def
                else:
                    type_def = in_folder_type
            else:
                type_def = self.registry.get_type_definition_by_file_name(file_name)

        type_defs = self.registry.type_defs
        if type_def is type_defs.get("Territory2Model") and len(parts) == 4:
            if parts[2] == type_defs["Territory2"].default_directory:
                type_def = type_defs["Territory2"]
            else:
                type_def = type_defs["Territory2Rule"]

        if type_def is None:
            logger.debug(f"No type definition found for {package_path}")
            return None
        return self.get_metadata_type_from_metadata_name(type_def.metadata_name)
