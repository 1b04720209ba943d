"""``.forceignore`` support.

Patterns use gitignore syntax and are matched against paths relative to
the project root, after the default ignores. ``pathspec``'s
``GitIgnoreSpec`` does the matching: the last matching pattern decides
and a file under an excluded directory stays excluded.
"""
import logging
import os

import pathspec

logger = logging.getLogger(__name__)

FORCEIGNORE_FILE = ".forceignore"
DEFAULT_IGNORES = (
    "**/*.dup",
    "**/.*",
    "**/package2-descriptor.json",
    "**/package2-manifest.json",
)


def read_patterns(lines):
    patterns = []
    for line in lines:
        # either separator is accepted in patterns
        line = line.strip().replace("\\", "/")
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


class ForceIgnore:
    def __init__(self, project_root, include_defaults=True):
        self.project_root = os.path.realpath(project_root)
        lines = list(DEFAULT_IGNORES) if include_defaults else []
        path = os.path.join(self.project_root, FORCEIGNORE_FILE)
        if os.path.isfile(path):
            logger.debug(f"Reading ignore patterns from {path}")
            with open(path, "r", encoding="utf-8") as f:
                lines.extend(f.read().splitlines())
        self.patterns = read_patterns(lines)
        self.spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    def _relative_parts(self, path):
        relative = os.path.relpath(os.path.realpath(path), self.project_root)
        return [part for part in relative.split(os.sep) if part not in ("", ".", "..")]

    def denies(self, path) -> bool:
        parts = self._relative_parts(path)
        if not parts:
            return False
        # nothing below an excluded directory can be re-included
        for end in range(1, len(parts)):
            if self.spec.match_file("/".join(parts[:end]) + "/"):
                return True
        relative = "/".join(parts)
        if os.path.isdir(path):
            relative += "/"
        return self.spec.match_file(relative)

    def accepts(self, path) -> bool:
        return not self.denies(path)
