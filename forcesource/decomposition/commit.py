import logging
import os
from typing import Dict, List, Tuple

from forcesource.decomposition.config import DecompositionConfig
from forcesource.decomposition.document import MetadataDocument

logger = logging.getLogger(__name__)

CommitResult = Tuple[List[str], List[str], List[str], List[str]]

DUP_SUFFIX = ".dup"


class FineGrainTrackingCommitStrategy:
    """Write decomposed documents, leaving deletions to source tracking."""

    def __init__(self, decomposition_config: DecompositionConfig):
        self.decomposition_config = decomposition_config

    def commit(
        self,
        documents: Dict[str, MetadataDocument],
        existing_paths: List[str],
        create_duplicates: bool,
        force_overwrite: bool = False,
    ) -> CommitResult:
        """Returns ``(new_paths, updated_paths, deleted_paths, dup_paths)``.

        An existing file is only rewritten when its parsed content differs
        from the new document, or when ``force_overwrite`` is set. Otherwise,
        with ``create_duplicates``, a differing document goes to
        ``<path>.dup`` and the original file is left alone. Identical
        content never produces a ``.dup``.
        """
        existing = set(existing_paths)
        new_paths = [path for path in documents if path not in existing]
        candidate_paths = [path for path in documents if path in existing]
        updated_paths = []
        dup_paths = []

        for path in candidate_paths:
            document = documents[path]
            differs = self._is_updated_file(path, document)
            if not (force_overwrite or differs):
                continue
            if create_duplicates and differs and not force_overwrite:
                dup_path = path + DUP_SUFFIX
                document.write(dup_path)
                dup_paths.append(dup_path)
            else:
                document.write(path)
                updated_paths.append(path)

        for path in new_paths:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            documents[path].write(path)

        return new_paths, updated_paths, [], dup_paths

    @staticmethod
    def _is_updated_file(path, document):
        with open(path, "r", encoding="utf-8") as f:
            return not document.is_equivalent_to(f.read(), path=path)


class VirtualDecompositionCommitStrategy(FineGrainTrackingCommitStrategy):
    """Fragments the org does not track individually.

    Existing fragment files with no matching document are deleted here
    since nothing else will report them as removed.
    """

    def commit(self, documents, existing_paths, create_duplicates, force_overwrite=False):
        new_paths, updated_paths, _, dup_paths = super().commit(
            documents, existing_paths, create_duplicates, force_overwrite
        )
        deleted_paths = self.get_deleted_paths(documents, existing_paths)
        for path in deleted_paths:
            logger.debug(f"Removing {path}")
            os.unlink(path)
        return new_paths, updated_paths, deleted_paths, dup_paths

    @staticmethod
    def get_deleted_paths(documents, existing_paths) -> List[str]:
        return [path for path in existing_paths if path not in documents]
