"""Index of elements that share one file with their siblings.

The org tracks single ``CustomLabel`` revisions while the workspace keeps
every label in one ``CustomLabels.labels-meta.xml``. This index maps each
such element to the file holding it, persisted in
``.sfdx/orgs/<username>/nonDecomposedElementsIndex.json``.
"""
import json
import logging
import os
from typing import Dict, List, NamedTuple, Optional

from pydantic import Field

from forcesource.core.exceptions import ForceSourceException
from forcesource.metadata.registry import get_metadata_key
from forcesource.utils.models import ForceSourceModel
from forcesource.utils.xml import metadata_tree

logger = logging.getLogger(__name__)

NON_DECOMPOSED_ELEMENTS_INDEX_FILE = "nonDecomposedElementsIndex.json"


class NonDecomposedConfig(NamedTuple):
    child_type: str
    xml_tag: str
    name_path: str


NON_DECOMPOSED_CONFIGS = {
    "CustomLabels": [NonDecomposedConfig("CustomLabel", "labels", "fullName")],
}


class NonDecomposedElement(ForceSourceModel):
    full_name: str = Field(alias="fullName")
    type: str
    metadata_file_path: str = Field(alias="metadataFilePath")


class ChangeElement(NamedTuple):
    type: str
    name: str
    deleted: bool = False


def _element_names(source_path, metadata_name) -> List[str]:
    root = metadata_tree.parse(source_path)
    names = []
    for config in NON_DECOMPOSED_CONFIGS[metadata_name]:
        for element in root.findall(config.xml_tag):
            name = element.find(config.name_path)
            if name is not None and name.text:
                names.append(name.text)
    return names


class NonDecomposedElementsIndex:
    def __init__(self, project, username, registry, package_info, max_revision=None):
        self.registry = registry
        self.package_info = package_info
        self.max_revision = max_revision
        self.path = os.path.join(project.org_state_dir(username), NON_DECOMPOSED_ELEMENTS_INDEX_FILE)
        self.elements: Dict[str, NonDecomposedElement] = {}
        self.has_changes = False
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                for key, data in json.load(f).items():
                    self.elements[key] = NonDecomposedElement.parse_data(data, self.path)
        self.included_files = {element.metadata_file_path for element in self.elements.values()}

    @staticmethod
    def is_supported(metadata_name) -> bool:
        return metadata_name in NON_DECOMPOSED_CONFIGS

    def is_non_decomposed_element(self, metadata_name) -> bool:
        return self.is_supported(metadata_name)

    def is_included_file(self, source_path) -> bool:
        return source_path in self.included_files

    # Map access

    def get(self, key) -> Optional[NonDecomposedElement]:
        return self.elements.get(key)

    def has(self, key) -> bool:
        return key in self.elements

    def set(self, key, element: NonDecomposedElement):
        self.elements[key] = element
        self.included_files.add(element.metadata_file_path)
        self.has_changes = True

    def unset(self, key):
        if self.elements.pop(key, None) is not None:
            self.has_changes = True

    def values(self) -> List[NonDecomposedElement]:
        return list(self.elements.values())

    def get_metadata_file_path(self, key) -> Optional[str]:
        element = self.get(key)
        return element.metadata_file_path if element else None

    # Updates

    def add_element(self, metadata_name, full_name, source_path):
        key = get_metadata_key(metadata_name, full_name)
        if not self.has(key):
            self.set(
                key,
                NonDecomposedElement(
                    fullName=full_name, type=metadata_name, metadataFilePath=source_path
                ),
            )

    def _should_skip(self, source_path_info) -> bool:
        return not (
            source_path_info.is_changed() or source_path_info.is_new()
        ) and self.is_included_file(source_path_info.source_path)

    def handle_decomposed_elements(self, source_path_info, refresh=False):
        """Index every element found in a changed or new file."""
        if not refresh and self._should_skip(source_path_info):
            return
        self._index_file(source_path_info.source_path)
        self.write()

    def _index_file(self, source_path):
        type_def = self.registry.get_type_definition_by_file_name(source_path)
        for name in _element_names(source_path, type_def.metadata_name):
            self.add_element(type_def.metadata_name, name, source_path)

    def get_elements_by_metadata_file_path(self, metadata_file_path) -> List[NonDecomposedElement]:
        if not self.is_included_file(metadata_file_path):
            return []
        return [e for e in self.values() if e.metadata_file_path == metadata_file_path]

    def clear_elements(self, source_path):
        for element in self.get_elements_by_metadata_file_path(source_path):
            self.unset(get_metadata_key(element.type, element.full_name))

    def delete_entry_by_source_path(self, source_path):
        self.clear_elements(source_path)
        self.included_files.discard(source_path)

    def refresh_index(self, source_paths=None):
        for source_path in list(source_paths if source_paths is not None else self.included_files):
            if os.path.exists(source_path):
                self.clear_elements(source_path)
                self._index_file(source_path)
            else:
                self.delete_entry_by_source_path(source_path)
        self.write()

    def maybe_refresh_index(self, inbound_files):
        """Reindex after a retrieve whose results include a supported type."""
        source_paths = [
            row["filePath"]
            for row in inbound_files
            if "xml" not in row["fullName"] and self.is_supported(row["fullName"])
        ]
        if source_paths:
            self.refresh_index(source_paths)

    @staticmethod
    def belongs_to(source_path, metadata_key) -> bool:
        """Whether the file at ``source_path`` holds the element ``metadata_key``."""
        metadata_name, _, name = metadata_key.partition("__")
        if metadata_name not in NON_DECOMPOSED_CONFIGS:
            logger.debug(f"Unsupported NonDecomposedIndex type: {metadata_name}")
            return False
        try:
            return name in _element_names(source_path, metadata_name)
        except (OSError, ForceSourceException) as e:
            logger.debug(f"Could not read {source_path} for {metadata_key}: {e}")
            return False

    def get_related_non_decomposed_elements(self, change_elements: List[ChangeElement]) -> List[ChangeElement]:
        """Siblings sharing a file with a changed element.

        Retrieving one label rewrites the whole file, so every other label
        stored in it must be retrieved too. A label the index has never
        seen pulls in the labels of the default package.
        """
        related = []
        seen = set()
        for change in change_elements:
            type_def = self.registry.get_type_definition_by_metadata_name(change.type)
            if type_def is None or not self.is_supported(type_def.metadata_name):
                continue
            key = get_metadata_key(type_def.metadata_name, change.name)
            element = self.get(key)
            tracked = self.max_revision.get_source_member(key) if self.max_revision else None
            deleted = tracked.is_name_obsolete if tracked else False
            for item in self.values():
                if item.full_name in seen:
                    continue
                if element is not None:
                    should_add = (
                        item.metadata_file_path == element.metadata_file_path
                        and item.full_name != element.full_name
                    )
                else:
                    should_add = self._belongs_to_default_package(item)
                if should_add:
                    seen.add(item.full_name)
                    related.append(ChangeElement(change.type, item.full_name, deleted))
        return related

    def _belongs_to_default_package(self, element: NonDecomposedElement) -> bool:
        return (
            self.package_info.get_package_name_from_source_path(element.metadata_file_path)
            == self.package_info.default_package_name
        )

    def write(self):
        if not self.has_changes:
            return
        self.has_changes = False
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({key: e.to_json_data() for key, e in self.elements.items()}, f, indent=4)
