"""Convert a Metadata API package directory into source format."""
import glob
import logging
import os
from typing import List, Optional

from pydantic import Field, model_validator

from forcesource.core.exceptions import MissingContentError, PathDoesNotExist
from forcesource.metadata import path_utils
from forcesource.metadata.manifest import ManifestEntry, manifest_entries_from_file
from forcesource.metadata.registry import METADATA_FILE_EXT
from forcesource.metadata.types import BundleMetadataType
from forcesource.source.workspace_adapter import SourceElements, SourceWorkspaceAdapter
from forcesource.tracking.forceignore import ForceIgnore
from forcesource.utils import ensure_dir, walk_files
from forcesource.utils.models import ForceSourceModel

logger = logging.getLogger(__name__)


class MdapiConvertOptions(ForceSourceModel):
    root_dir: str
    output_dir: Optional[str] = None
    manifest: Optional[str] = None
    metadata: List[str] = Field(default_factory=list)
    metadata_paths: List[str] = Field(default_factory=list)
    unsupported_mime_types: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def one_selector(self):
        selectors = [s for s in (self.manifest, self.metadata, self.metadata_paths) if s]
        if len(selectors) > 1:
            raise ValueError("Specify only one of manifest, metadata or metadata_paths.")
        return self


def find_package_root(root_dir) -> str:
    """The directory holding ``package.xml``, at ``root_dir`` or anywhere below it."""
    if os.path.exists(os.path.join(root_dir, "package.xml")):
        return root_dir
    pattern = os.path.join(glob.escape(root_dir), "**", "package.xml")
    logger.debug(f"Looking for package.xml here {pattern}")
    matches = sorted(glob.glob(pattern, recursive=True))
    if not matches:
        raise PathDoesNotExist(os.path.join(root_dir, "package.xml"))
    return os.path.dirname(matches[0])


class MdapiConvertApi:
    """Walks a retrieved package and writes each entity into the project.

    Files are matched to types by their path relative to the package root.
    Entities already in the default package are updated in place; anything
    else lands in ``output_dir``.
    """

    def __init__(self, context):
        self.context = context
        self.registry = context.registry
        self.type_factory = context.type_factory
        self.package_root = None
        self.forceignore = None

    def convert_source(self, options: MdapiConvertOptions) -> List[dict]:
        root_dir = os.path.abspath(options.root_dir.strip().rstrip(os.sep))
        if not os.path.isdir(root_dir):
            raise PathDoesNotExist(root_dir)
        project = self.context.project
        output_dir = os.path.abspath(options.output_dir or project.default_package_path)
        ensure_dir(output_dir)
        self.package_root = find_package_root(root_dir)
        self.forceignore = ForceIgnore(self.package_root)
        logger.debug(f"Processing mdapi convert with package root: {self.package_root}")
        logger.debug(f"Processing mdapi convert with outputdir: {output_dir}")

        manifest_entries = manifest_entries_from_file(options.manifest) if options.manifest else None
        metadata_paths = [os.path.abspath(p.strip()) for p in options.metadata_paths]
        adapter = SourceWorkspaceAdapter(
            self.context,
            default_package_path=os.path.relpath(output_dir, project.root),
            from_convert=True,
        )

        elements: SourceElements = {}
        for item_path in walk_files(self.package_root):
            if not self.is_valid_source_path(item_path):
                continue
            if metadata_paths and not self.check_metadata_from_path(item_path, metadata_paths):
                continue
            if manifest_entries is not None and not self.check_metadata_from_manifest(
                manifest_entries, item_path
            ):
                continue
            if options.metadata and not self.check_metadata_from_type(item_path, options.metadata):
                continue
            self.process_path(item_path, adapter, elements)

        if elements:
            adapter.update_source(
                elements,
                check_for_duplicates=True,
                unsupported_mime_types=options.unsupported_mime_types,
            )
        return self._to_output_rows(elements)

    def is_valid_source_path(self, source_path) -> bool:
        return self.forceignore.accepts(source_path) and not os.path.basename(source_path).startswith(".")

    # Filters

    @staticmethod
    def check_metadata_from_path(item_path, metadata_paths) -> bool:
        return any(path in item_path for path in metadata_paths)

    @staticmethod
    def _is_folder(item_path, name) -> bool:
        return bool(name) and item_path.endswith(f"{os.sep}{name.split(os.sep)[0]}{METADATA_FILE_EXT}")

    def check_metadata_from_type(self, item_path, metadata: List[str]) -> bool:
        """Match ``Type`` or ``Type:Name`` selectors against a file."""
        type_def = self.registry.get_type_definition_by_file_name(item_path)
        for selector in metadata:
            metadata_name, _, name = selector.partition(":")
            if name:
                if name in item_path or self._is_folder(item_path, name):
                    return True
            elif type_def is not None and type_def.metadata_name == metadata_name:
                return True
        return False

    def check_metadata_from_manifest(self, entries: List[ManifestEntry], item_path) -> bool:
        type_def = self.registry.get_type_definition_by_file_name(item_path)
        file_name = path_utils.get_file_name(item_path)
        for entry in entries:
            if "*" in entry.name:
                if type_def is not None and type_def.metadata_name == entry.type:
                    return True
            elif file_name == entry.name or entry.name in item_path:
                return True
        return False

    # Processing

    def process_path(self, item_path, adapter: SourceWorkspaceAdapter, elements: SourceElements):
        package_path = os.path.relpath(item_path, self.package_root)
        metadata_type = self.type_factory.get_metadata_type_from_mdapi_package_path(package_path)
        if metadata_type is None:
            logger.warning(f"The type definition cannot be found for {item_path}")
            return

        if item_path.endswith(METADATA_FILE_EXT) and not metadata_type.is_folder_type():
            # metadata files are picked up with their content file
            if metadata_type.has_content:
                content_path = item_path[: item_path.index(METADATA_FILE_EXT)]
                if not os.path.exists(content_path):
                    raise MissingContentError(content_path)
            return

        file_property = {
            "type": metadata_type.metadata_name,
            "fileName": os.path.join(os.path.basename(self.package_root), package_path),
            "fullName": metadata_type.get_aggregate_full_name_from_mdapi_package_path(package_path),
        }
        retrieve_root = os.path.dirname(self.package_root)
        bundle_file_properties = []
        if isinstance(metadata_type, BundleMetadataType):
            definition = metadata_type.get_definition_file_property(file_property, retrieve_root)
            if definition is not None:
                bundle_file_properties.append(definition)

        element = adapter.process_mdapi_file_property(
            elements, retrieve_root, file_property, bundle_file_properties
        )
        if element is None:
            logger.warning(f"Unsupported type: {metadata_type.metadata_name} path: {package_path}")

    def _to_output_rows(self, elements: SourceElements) -> List[dict]:
        rows = []
        for element in elements.values():
            for workspace_element in element.workspace_elements:
                rows.append(
                    {
                        "fullName": workspace_element.full_name,
                        "type": workspace_element.metadata_name,
                        "filePath": os.path.relpath(
                            workspace_element.source_path, self.context.project.root
                        ),
                        "state": workspace_element.state.readable,
                    }
                )
        return rows
