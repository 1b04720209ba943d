"""Per-type decomposition configuration.

Each metadata type is wired to one choice of each of the four strategy
families here, and only here.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Strategy(Enum):
    DESCRIBE_METADATA = "describeMetadata"
    NON_DECOMPOSED = "nonDecomposed"


class WorkspaceStrategy(Enum):
    FOLDER_PER_SUBTYPE = "folderPerSubtype"
    IN_FOLDER = "inFolderMetadataType"
    NON_DECOMPOSED = "nonDecomposed"


class CommitStrategy(Enum):
    FINE_GRAIN_TRACKING = "fineGrainTracking"
    VIRTUAL_DECOMPOSITION = "virtualDecomposition"


class ContentStrategy(Enum):
    NON_DECOMPOSED = "nonDecomposedContent"
    STATIC_RESOURCE = "staticResource"
    EXPERIENCE_BUNDLE = "experienceBundle"


@dataclass(frozen=True)
class DecomposedSubtypeConfig:
    metadata_name: str
    ext: str
    default_directory: str
    has_standard_members: bool = False
    is_addressable: bool = True
    metadata_entity_name_element: str = "fullName"
    xml_fragment_name: Optional[str] = None


@dataclass(frozen=True)
class DecompositionConfig:
    metadata_name: str
    strategy: Strategy = Strategy.NON_DECOMPOSED
    workspace_strategy: WorkspaceStrategy = WorkspaceStrategy.NON_DECOMPOSED
    commit_strategy: CommitStrategy = CommitStrategy.FINE_GRAIN_TRACKING
    content_strategy: ContentStrategy = ContentStrategy.NON_DECOMPOSED
    is_global: bool = False
    is_empty_container: bool = False
    use_sparse_composition: bool = False
    decompositions: List[DecomposedSubtypeConfig] = field(default_factory=list)

    def subtype_for_fragment(self, xml_fragment_name) -> Optional[DecomposedSubtypeConfig]:
        for decomposition in self.decompositions:
            if decomposition.xml_fragment_name == xml_fragment_name:
                return decomposition
        return None


def get_decomposition_config(
    metadata_name,
    in_folder=False,
    is_global=False,
    is_empty_container=False,
    decompositions=None,
) -> DecompositionConfig:
    """Pick the strategy set for one type definition."""
    decompositions = list(decompositions or [])
    if in_folder:
        return DecompositionConfig(
            metadata_name,
            workspace_strategy=WorkspaceStrategy.IN_FOLDER,
            is_global=is_global,
        )
    if metadata_name == "CustomObjectTranslation":
        return DecompositionConfig(
            metadata_name,
            strategy=Strategy.DESCRIBE_METADATA,
            workspace_strategy=WorkspaceStrategy.FOLDER_PER_SUBTYPE,
            commit_strategy=CommitStrategy.VIRTUAL_DECOMPOSITION,
            is_global=is_global,
            is_empty_container=is_empty_container,
            decompositions=decompositions,
        )
    if metadata_name in ("Bot", "CustomObject"):
        return DecompositionConfig(
            metadata_name,
            strategy=Strategy.DESCRIBE_METADATA,
            workspace_strategy=WorkspaceStrategy.FOLDER_PER_SUBTYPE,
            commit_strategy=CommitStrategy.FINE_GRAIN_TRACKING,
            is_global=is_global,
            is_empty_container=is_empty_container,
            use_sparse_composition=True,
            decompositions=decompositions,
        )
    if metadata_name == "StaticResource":
        return DecompositionConfig(
            metadata_name,
            content_strategy=ContentStrategy.STATIC_RESOURCE,
            is_global=is_global,
        )
    if metadata_name == "ExperienceBundle":
        return DecompositionConfig(
            metadata_name,
            content_strategy=ContentStrategy.EXPERIENCE_BUNDLE,
            is_global=is_global,
        )
    return DecompositionConfig(metadata_name, is_global=is_global)
