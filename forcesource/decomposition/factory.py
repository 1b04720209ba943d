"""Resolve strategy implementations from a ``DecompositionConfig``."""
from forcesource.core.exceptions import ConfigurationError
from forcesource.decomposition.commit import (
    FineGrainTrackingCommitStrategy,
    VirtualDecompositionCommitStrategy,
)
from forcesource.decomposition.config import (
    CommitStrategy,
    ContentStrategy,
    DecompositionConfig,
    Strategy,
    WorkspaceStrategy,
)
from forcesource.decomposition.content import (
    ExperienceBundleContentStrategy,
    NonDecomposedContentStrategy,
    StaticResourceContentStrategy,
)
from forcesource.decomposition.strategies import (
    DescribeMetadataDecomposition,
    NonDecomposedMetadataStrategy,
)
from forcesource.decomposition.workspace import (
    FolderPerSubtypeWorkspaceDecomposition,
    InFolderMetadataWorkspaceDecomposition,
    NonDecomposedWorkspaceStrategy,
)

DECOMPOSITION_STRATEGIES = {
    Strategy.DESCRIBE_METADATA: DescribeMetadataDecomposition,
    Strategy.NON_DECOMPOSED: NonDecomposedMetadataStrategy,
}
WORKSPACE_STRATEGIES = {
    WorkspaceStrategy.FOLDER_PER_SUBTYPE: FolderPerSubtypeWorkspaceDecomposition,
    WorkspaceStrategy.IN_FOLDER: InFolderMetadataWorkspaceDecomposition,
    WorkspaceStrategy.NON_DECOMPOSED: NonDecomposedWorkspaceStrategy,
}
COMMIT_STRATEGIES = {
    CommitStrategy.FINE_GRAIN_TRACKING: FineGrainTrackingCommitStrategy,
    CommitStrategy.VIRTUAL_DECOMPOSITION: VirtualDecompositionCommitStrategy,
}
CONTENT_STRATEGIES = {
    ContentStrategy.NON_DECOMPOSED: NonDecomposedContentStrategy,
    ContentStrategy.STATIC_RESOURCE: StaticResourceContentStrategy,
    ContentStrategy.EXPERIENCE_BUNDLE: ExperienceBundleContentStrategy,
}


def _lookup(table, kind, config):
    try:
        return table[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown strategy {kind!r} configured for {config.metadata_name}"
        ) from None


def get_decomposition_strategy(config: DecompositionConfig):
    return _lookup(DECOMPOSITION_STRATEGIES, config.strategy, config)(config)


def get_workspace_strategy(config: DecompositionConfig, package_info=None, source_locations=None):
    return _lookup(WORKSPACE_STRATEGIES, config.workspace_strategy, config)(
        config, package_info=package_info, source_locations=source_locations
    )


def get_commit_strategy(config: DecompositionConfig):
    return _lookup(COMMIT_STRATEGIES, config.commit_strategy, config)(config)


def get_content_strategy(config: DecompositionConfig, metadata_type, registry=None, forceignore=None):
    return _lookup(CONTENT_STRATEGIES, config.content_strategy, config)(
        metadata_type, registry=registry, forceignore=forceignore
    )
