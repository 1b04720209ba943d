"""Convert source format into a Metadata API package directory."""
import copy
import logging
import os
import re
import shutil
from typing import Dict, List, Optional, Tuple

from pydantic import Field, model_validator

from forcesource.core.exceptions import (
    MissingContentError,
    NoSourceFound,
    PathDoesNotExist,
    UnsupportedMetadataType,
)
from forcesource.metadata.manifest import (
    ManifestEntry,
    create_manifest,
    manifest_entries_from_file,
    parse_manifest_entries,
)
from forcesource.metadata.registry import get_metadata_key
from forcesource.source.aggregate import AggregateSourceElement
from forcesource.source.workspace_adapter import SourceElements, SourceWorkspaceAdapter
from forcesource.tracking.nondecomposed_index import NonDecomposedElementsIndex
from forcesource.tracking.workspace import WorkspaceFileState
from forcesource.utils import delete_if_exists, ensure_dir, temporary_dir
from forcesource.utils.models import ForceSourceModel

logger = logging.getLogger(__name__)

PACKAGE_MANIFEST = "package.xml"
DESTRUCTIVE_CHANGES_MANIFEST = "destructiveChangesPost.xml"


class SourceConvertOptions(ForceSourceModel):
    output_dir: str
    root_dir: Optional[str] = None
    package_name: Optional[str] = None
    manifest: Optional[str] = None
    source_paths: List[str] = Field(default_factory=list)
    metadata: Optional[str] = None
    unsupported_mime_types: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def one_selector(self):
        selectors = [s for s in (self.manifest, self.source_paths, self.metadata) if s]
        if len(selectors) > 1:
            raise ValueError("Specify only one of manifest, source_paths or metadata.")
        return self


def add_no_dupes(pairs: List[ManifestEntry], pair: ManifestEntry, keys: set):
    key = f"{pair.type}#{pair.name}"
    if key not in keys:
        pairs.append(pair)
        keys.add(key)


def _base_type_name(metadata_name):
    return re.sub("Folder$", "", metadata_name)


class SourceConvertApi:
    """Writes the metadata and content of aggregate source elements to an mdapi directory."""

    def __init__(self, context, adapter: SourceWorkspaceAdapter = None):
        self.context = context
        self.registry = context.registry
        self.type_factory = context.type_factory
        self.adapter = adapter

    def _get_adapter(self) -> SourceWorkspaceAdapter:
        if self.adapter is None:
            self.adapter = SourceWorkspaceAdapter(self.context, from_convert=True)
        return self.adapter

    def do_convert(self, options: SourceConvertOptions) -> List[dict]:
        """Convert the selected source and return a row per converted file."""
        root_dir = options.root_dir and os.path.abspath(options.root_dir)
        if root_dir and not os.path.exists(root_dir):
            raise PathDoesNotExist(root_dir)
        adapter = self._get_adapter()

        if options.manifest:
            elements = self.get_source_elements_from_manifest(options.manifest)
        elif options.source_paths:
            elements = self.get_source_elements_from_source_paths(options.source_paths)
        elif options.metadata:
            elements = self.resolve_manifest_entries(parse_manifest_entries(options.metadata))
        else:
            elements = adapter.get_aggregate_source_elements(False, package_directory=root_dir)
        if not elements:
            raise NoSourceFound("No source-backed components present in the package.")

        updated_elements, _ = self.convert_source_to_mdapi(
            options.output_dir,
            options.package_name,
            elements,
            unsupported_mime_types=options.unsupported_mime_types,
        )
        rows = []
        for element in updated_elements:
            for workspace_element in element.workspace_elements:
                rows.append(
                    {
                        "fullName": workspace_element.full_name,
                        "type": workspace_element.metadata_name,
                        "filePath": os.path.relpath(
                            workspace_element.source_path, self.context.project.root
                        ),
                    }
                )
        return rows

    # Selecting source

    def get_source_elements_from_manifest(self, manifest_path) -> SourceElements:
        return self.resolve_manifest_entries(manifest_entries_from_file(manifest_path))

    def get_source_elements_from_source_paths(self, source_paths) -> SourceElements:
        adapter = self._get_adapter()
        elements: SourceElements = {}
        for source_path in source_paths:
            source_path = os.path.abspath(source_path.strip())
            if not os.path.exists(source_path):
                raise PathDoesNotExist(source_path)
            metadata_type = self.type_factory.get_metadata_type_from_source_path(source_path)
            if metadata_type is not None:
                source_path = metadata_type.resolve_source_path(source_path)
            found = adapter.get_aggregate_source_elements(False, source_path=source_path)
            self._merge(elements, found)
        return elements

    def resolve_manifest_entries(self, entries: List[ManifestEntry]) -> SourceElements:
        """Pick the workspace elements a list of manifest entries names.

        Types match fuzzily so ``Document`` also selects ``DocumentFolder``;
        a child member such as ``CustomField:Account.Name`` selects only that
        file of its parent.
        """
        all_elements = self._get_adapter().get_aggregate_source_elements(False)
        resolved: SourceElements = {}
        for entry in entries:
            metadata_type = self.type_factory.get_metadata_type_from_metadata_name(entry.type)
            if metadata_type is None:
                raise UnsupportedMetadataType(entry.type)
            key_type = entry.type
            if metadata_type.type_def.in_folder:
                key_type = _base_type_name(metadata_type.metadata_name)

            if "*" in entry.name:
                if metadata_type.has_parent:
                    key_type = metadata_type.aggregate_metadata_name
                logger.debug(f"Matching source with wildcard metadata: {key_type}")
                self._merge(resolved, self._filter_by_type(all_elements, key_type))
            elif metadata_type.has_parent:
                parent_name = metadata_type.get_aggregate_full_name_from_workspace_full_name(entry.name)
                parent_key = get_metadata_key(metadata_type.aggregate_metadata_name, parent_name)
                logger.debug(f"Matching source with metadata: {parent_key}__{key_type}.{entry.name}")
                element = self._find_parent_element(all_elements, parent_key, key_type, entry.name)
                if element is not None:
                    self._merge(resolved, {element.key: element})
            else:
                logger.debug(f"Matching source with metadata: {key_type}.{entry.name}")
                self._merge(resolved, self._filter_by_type(all_elements, key_type, entry.name))
        return resolved

    @staticmethod
    def _filter_by_type(elements: SourceElements, key_type, name=None) -> SourceElements:
        filtered = {}
        for key, element in elements.items():
            element_type, _, element_name = key.partition("__")
            if key_type not in element_type:
                continue
            if name is None:
                filtered[key] = element
            elif key_type == "CustomLabel":
                if NonDecomposedElementsIndex.belongs_to(
                    element.metadata_file_path, get_metadata_key("CustomLabels", name)
                ):
                    filtered[key] = element
            elif element_name == name:
                filtered[key] = element
        return filtered

    @staticmethod
    def _find_parent_element(
        elements: SourceElements, parent_key, child_type, child_name
    ) -> Optional[AggregateSourceElement]:
        parent = elements.get(parent_key)
        if parent is None:
            return None
        match = next(
            (
                element
                for element in parent.workspace_elements
                if element.full_name == child_name and element.metadata_name == child_type
            ),
            None,
        )
        if match is None:
            return None
        # a copy holding only the matched child
        clone = copy.copy(parent)
        clone.workspace_elements = [match]
        clone.pending_deleted_workspace_elements = []
        return clone

    @staticmethod
    def _merge(target: SourceElements, found: SourceElements):
        for key, element in found.items():
            existing = target.get(key)
            if existing is None or existing is element:
                target[key] = element
                continue
            known = {e.source_path for e in existing.workspace_elements}
            for workspace_element in element.workspace_elements:
                if workspace_element.source_path not in known:
                    existing.add_workspace_element(workspace_element)

    # Writing the mdapi directory

    def convert_source_to_mdapi(
        self,
        target_path,
        package_name,
        elements: SourceElements,
        create_destructive_changes_manifest=False,
        unsupported_mime_types=None,
        tooling=None,
    ) -> Tuple[List[AggregateSourceElement], List[ManifestEntry]]:
        """Populate ``target_path`` and write its manifests.

        With ``create_destructive_changes_manifest`` the deleted members are
        listed in ``destructiveChangesPost.xml``. When a ``tooling`` client
        is given only members the org still knows about are kept.
        """
        destructive_pairs, updated_elements = self.sort_source_elements_for_md_deploy(
            list(elements.values())
        )
        self.populate_md_dir(target_path, updated_elements, unsupported_mime_types)

        if not create_destructive_changes_manifest:
            destructive_pairs = []
        elif destructive_pairs and tooling is not None:
            destructive_pairs = self._filter_deletes_known_to_org(destructive_pairs, tooling)
        self.create_package_manifests(target_path, package_name, destructive_pairs, updated_elements)
        return updated_elements, destructive_pairs

    @staticmethod
    def _filter_deletes_known_to_org(pairs: List[ManifestEntry], tooling) -> List[ManifestEntry]:
        names = ",".join(f"'{pair.name}'" for pair in pairs)
        records = tooling.query_all(
            "SELECT MemberType, MemberName, IsNameObsolete FROM SourceMember "
            f"WHERE MemberName IN ({names})"
        )["records"]
        live = {
            (record["MemberType"], record["MemberName"])
            for record in records
            if not record["IsNameObsolete"]
        }
        return [pair for pair in pairs if (pair.type, pair.name) in live]

    def sort_source_elements_for_md_deploy(
        self, elements: List[AggregateSourceElement]
    ) -> Tuple[List[ManifestEntry], List[AggregateSourceElement]]:
        """Split elements into destructive ``(type, name)`` pairs and elements to write."""
        destructive_pairs: List[ManifestEntry] = []
        updated_elements: List[AggregateSourceElement] = []
        for element in elements:
            if element.is_deleted():
                if element.metadata_type.delete_supported(element.aggregate_full_name):
                    destructive_pairs.append(
                        ManifestEntry(element.metadata_name, element.aggregate_full_name)
                    )
                continue

            changed = False
            if not element.metadata_type.has_individually_addressable_child_workspace_elements():
                changed = True
            else:
                for workspace_element in element.workspace_elements:
                    child_type = self.type_factory.get_metadata_type_from_metadata_name(
                        workspace_element.metadata_name
                    )
                    if (
                        workspace_element.delete_supported
                        and workspace_element.state is WorkspaceFileState.DELETED
                        and child_type is not None
                        and child_type.is_addressable
                    ):
                        destructive_pairs.append(
                            ManifestEntry(workspace_element.metadata_name, workspace_element.full_name)
                        )
                    else:
                        changed = True
            if changed:
                updated_elements.append(element)
        return destructive_pairs, updated_elements

    def populate_md_dir(self, target_path, elements: List[AggregateSourceElement], unsupported_mime_types=None):
        """Copy every translated file into ``target_path``.

        The first source written to an mdapi path wins. On any failure
        ``target_path`` is removed before the error propagates.
        """
        ensure_dir(target_path)
        translations: Dict[str, str] = {}
        try:
            with temporary_dir(chdir=False) as decomposition_dir, temporary_dir(chdir=False) as work_dir:
                for element in elements:
                    for translation in element.get_file_path_translations(
                        target_path, decomposition_dir, unsupported_mime_types, work_dir
                    ):
                        mdapi_path = translation["mdapiPath"]
                        if mdapi_path in translations:
                            continue
                        translations[mdapi_path] = translation["sourcePath"]
                        self._copy(translation["sourcePath"], mdapi_path)
        except Exception:
            delete_if_exists(target_path)
            raise

    @staticmethod
    def _copy(source_path, mdapi_path):
        if not os.path.exists(source_path):
            raise MissingContentError(source_path)
        ensure_dir(os.path.dirname(mdapi_path))
        if os.path.isdir(source_path):
            shutil.copytree(source_path, mdapi_path, dirs_exist_ok=True)
        else:
            shutil.copyfile(source_path, mdapi_path)

    def create_package_manifests(
        self,
        output_dir,
        package_name,
        destructive_pairs: List[ManifestEntry],
        updated_elements: List[AggregateSourceElement],
    ):
        api_version = self.context.api_version
        create_manifest(
            os.path.join(output_dir, PACKAGE_MANIFEST),
            self.get_updated_source_type_name_pairs(updated_elements),
            api_version,
            package_name,
        )
        if destructive_pairs:
            create_manifest(
                os.path.join(output_dir, DESTRUCTIVE_CHANGES_MANIFEST),
                destructive_pairs,
                api_version,
                package_name,
            )

    def get_updated_source_type_name_pairs(
        self, elements: List[AggregateSourceElement]
    ) -> List[ManifestEntry]:
        keys = set()
        pairs: List[ManifestEntry] = []
        for element in elements:
            metadata_type = element.metadata_type
            if metadata_type.has_individually_addressable_child_workspace_elements():
                for workspace_element in element.workspace_elements:
                    child_type = self.type_factory.get_metadata_type_from_metadata_name(
                        workspace_element.metadata_name
                    )
                    if (
                        workspace_element.state is not WorkspaceFileState.DELETED
                        and child_type is not None
                        and child_type.is_addressable
                    ):
                        add_no_dupes(
                            pairs,
                            ManifestEntry(workspace_element.metadata_name, workspace_element.full_name),
                            keys,
                        )
                continue
            add_no_dupes(pairs, ManifestEntry(element.metadata_name, element.aggregate_full_name), keys)
            if metadata_type.requires_individually_addressable_members_in_package():
                for child_type_name in metadata_type.child_metadata_types:
                    add_no_dupes(pairs, ManifestEntry(child_type_name, "*"), keys)
        return pairs
