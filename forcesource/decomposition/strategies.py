"""Splitting aggregate documents into fragments and putting them back together."""
import os
from typing import Dict, List, Optional, Tuple

from forcesource.decomposition.config import DecomposedSubtypeConfig, DecompositionConfig
from forcesource.decomposition.document import MetadataDocument, MetadataDocumentAnnotation
from forcesource.utils.xml import local_name

Decompositions = Dict[DecomposedSubtypeConfig, List[MetadataDocument]]


def manifest_members(manifest, metadata_name) -> List[str]:
    """All members listed for one type in a parsed package.xml."""
    members = []
    for type_entry in manifest["Package"]["types"]:
        if type_entry["name"] == metadata_name:
            members.extend(type_entry["members"])
    return members


class NonDecomposedMetadataStrategy:
    """Documents are stored exactly as the Metadata API returns them."""

    def __init__(self, decomposition_config: DecompositionConfig):
        self.decomposition_config = decomposition_config

    def new_document(self, metadata_name, xml_attributes=None):
        return MetadataDocument(metadata_name, xml_attributes)

    def compose(self, container, decompositions):
        return container

    def decompose(
        self, composed, name, manifest=None, metadata_type=None
    ) -> Tuple[Optional[MetadataDocument], Decompositions]:
        return composed, {}

    def is_composable(self):
        return False


class DescribeMetadataDecomposition(NonDecomposedMetadataStrategy):
    """Decomposition driven by the child types of a describeMetadata entry.

    Every root child whose tag is the ``xml_fragment_name`` of a subtype
    becomes one subtype document; everything else stays in the container.
    ``compose`` writes the container children first and then the fragments
    grouped by subtype, so ``compose(decompose(d))`` is equivalent to ``d``
    only when ``d`` is already in that order. Interleaved documents come
    back reordered with the same content.
    """

    def compose(
        self, container: Optional[MetadataDocument], decompositions: Decompositions
    ) -> MetadataDocument:
        composed = self.new_document(
            self.decomposition_config.metadata_name,
            _xml_attributes_from_decomposed_source(container, decompositions),
        )
        if container is not None:
            for child in container.child_elements():
                composed.append_child(child)

        for subtype_config, documents in (decompositions or {}).items():
            for document in documents:
                fragment = composed.append_element(subtype_config.xml_fragment_name)
                for child in document.child_elements():
                    composed.append_child(child, parent=fragment)
        return composed

    def decompose(self, composed, name, manifest=None, metadata_type=None):
        xml_attributes = composed.xml_attributes
        container = self.new_document(self.decomposition_config.metadata_name, xml_attributes)
        decompositions: Decompositions = {}
        for child in composed.child_elements():
            subtype_config = self.decomposition_config.subtype_for_fragment(local_name(child))
            if subtype_config is None:
                container.append_child(child)
                continue
            decomposition = self.new_document(subtype_config.metadata_name, xml_attributes)
            for element in child:
                if isinstance(element.tag, str):
                    decomposition.append_child(element)
            decomposition.annotation = self.get_annotation(decomposition, subtype_config)
            decompositions.setdefault(subtype_config, []).append(decomposition)

        container = self._prune_container(container, name, manifest, metadata_type)
        decompositions = self._prune_documents(decompositions, name, manifest)
        return container, decompositions

    def is_composable(self):
        return True

    @staticmethod
    def get_annotation(decomposition, subtype_config) -> MetadataDocumentAnnotation:
        return MetadataDocumentAnnotation(
            decomposition.get_child_text(subtype_config.metadata_entity_name_element)
        )

    def _prune_container(self, container, name, manifest, metadata_type):
        if metadata_type is not None and not metadata_type.is_container_valid(container):
            return None
        if manifest is None:
            return container
        # folder types are listed in the manifest under the type they contain
        container_type = self.decomposition_config.metadata_name
        if container_type.endswith("Folder"):
            container_type = container_type.replace("Folder", "")
        members = manifest_members(manifest, container_type)
        if any(member.replace("/", os.sep) == name for member in members):
            return container
        return None

    def _prune_documents(self, decompositions, parent_name, manifest):
        if manifest is None:
            return decompositions
        pruned = {}
        for subtype_config, documents in decompositions.items():
            if not subtype_config.is_addressable:
                pruned[subtype_config] = documents
                continue
            members = set(manifest_members(manifest, subtype_config.metadata_name))
            pruned[subtype_config] = [
                doc
                for doc in documents
                if f"{parent_name}.{doc.annotation.name}" in members
            ]
        return pruned


def _xml_attributes_from_decomposed_source(container, decompositions):
    if container is not None:
        return container.xml_attributes
    for documents in (decompositions or {}).values():
        if documents:
            return documents[0].xml_attributes
    return []
