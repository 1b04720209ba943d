"""Where decomposed documents live in a source format project."""
import os
from typing import Dict, List, Optional

from forcesource.decomposition.config import DecomposedSubtypeConfig, DecompositionConfig
from forcesource.metadata.registry import METADATA_FILE_EXT, get_metadata_key


class NonDecomposedWorkspaceStrategy:
    """The metadata file is the container and nothing is split out of it."""

    def __init__(
        self,
        decomposition_config: DecompositionConfig = None,
        package_info=None,
        source_locations=None,
    ):
        self.decomposition_config = decomposition_config
        self.package_info = package_info
        self.source_locations = source_locations

    def get_decomposed_file_name(self, annotation, subtype_config) -> Optional[str]:
        return None

    def get_container_path(self, metadata_file_path, ext) -> Optional[str]:
        return metadata_file_path

    def find_decomposed_paths(self, metadata_file_path, ext) -> Dict[DecomposedSubtypeConfig, List[str]]:
        return {}

    def get_decomposed_subtype_dir_from_metadata_file(self, metadata_file_path, ext, subtype_config):
        return None

    def get_decomposed_subtype_dir_from_annotation(
        self, annotation, metadata_name, aggregate_full_name, subtype_config
    ):
        return None


class InFolderMetadataWorkspaceDecomposition(NonDecomposedWorkspaceStrategy):
    pass


class FolderPerSubtypeWorkspaceDecomposition(NonDecomposedWorkspaceStrategy):
    """One directory per aggregate entity, and one per subtype below it.

    ``objects/Account/Account.object-meta.xml`` holds the container and
    ``objects/Account/fields/Name.field-meta.xml`` one field. Global types
    skip the entity directory and types with a single subtype skip the
    subtype directory.
    """

    def get_decomposed_file_name(self, annotation, subtype_config):
        return f"{annotation.name}.{subtype_config.ext}{METADATA_FILE_EXT}"

    def get_container_path(self, metadata_file_path, ext):
        if self.decomposition_config.is_global:
            return None
        return os.path.join(
            self._source_dir(metadata_file_path, ext), os.path.basename(metadata_file_path)
        )

    def get_full_name_from_metadata_file(self, metadata_file_path, ext):
        suffix = f".{ext}{METADATA_FILE_EXT}"
        base = os.path.basename(metadata_file_path)
        return base[: -len(suffix)] if base.endswith(suffix) else base

    def get_decomposed_subtype_dir_from_metadata_file(self, metadata_file_path, ext, subtype_config):
        source_dir = self._source_dir(metadata_file_path, ext)
        if len(self.decomposition_config.decompositions) > 1:
            source_dir = os.path.join(source_dir, subtype_config.default_directory)
        return source_dir

    def get_decomposed_subtype_dir_from_annotation(
        self, annotation, metadata_name, aggregate_full_name, subtype_config
    ):
        if self.source_locations is None:
            return None
        if aggregate_full_name == annotation.name:
            key = get_metadata_key(metadata_name, aggregate_full_name)
        else:
            key = get_metadata_key(metadata_name, f"{aggregate_full_name}.{annotation.name}")
        paths_index = self.source_locations.file_paths_index
        if key in paths_index:
            return os.path.dirname(paths_index[key][0])
        if aggregate_full_name in paths_index:
            return os.path.join(
                os.path.dirname(paths_index[aggregate_full_name][0]),
                subtype_config.default_directory,
            )
        return None

    def find_decomposed_paths(self, metadata_file_path, ext):
        """Collect existing fragment files for one entity from every package."""
        decomposed_paths: Dict[DecomposedSubtypeConfig, List[str]] = {}
        candidates = [metadata_file_path]
        if self.package_info is not None:
            candidates = [
                self.package_info.translate_to_package(metadata_file_path, name)
                for name in self.package_info.package_names
            ]
        for package_metadata_path in dict.fromkeys(candidates):
            for subtype_config, directory in self._fragment_dirs(package_metadata_path, ext).items():
                if not os.path.isdir(directory):
                    continue
                fragment_suffix = f"{subtype_config.ext}{METADATA_FILE_EXT}".lower()
                for file_name in sorted(os.listdir(directory)):
                    if file_name.lower().endswith(fragment_suffix):
                        decomposed_paths.setdefault(subtype_config, []).append(
                            os.path.join(directory, file_name)
                        )
        return decomposed_paths

    def _source_dir(self, metadata_file_path, ext):
        source_dir = os.path.dirname(metadata_file_path)
        if not self.decomposition_config.is_global:
            source_dir = os.path.join(
                source_dir, self.get_full_name_from_metadata_file(metadata_file_path, ext)
            )
        return source_dir

    def _fragment_dirs(self, metadata_file_path, ext):
        source_dir = self._source_dir(metadata_file_path, ext)
        decompositions = self.decomposition_config.decompositions
        if len(decompositions) > 1:
            return {d: os.path.join(source_dir, d.default_directory) for d in decompositions}
        if decompositions:
            return {decompositions[0]: source_dir}
        return {}
