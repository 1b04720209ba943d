import os

import pytest

from forcesource.tracking.forceignore import FORCEIGNORE_FILE, ForceIgnore, read_patterns


@pytest.fixture
def root(project_dir):
    with open(os.path.join(project_dir, FORCEIGNORE_FILE), "w") as f:
        f.write(
            "\n".join(
                [
                    "# comment",
                    "",
                    "*.log",
                    "!keep.log",
                    "tmp/",
                    "force-app/main/default/classes/Secret.cls",
                    "**/jsconfig.json",
                    "force-app\\main\\default\\pages",
                ]
            )
        )
    return project_dir


def path(root, *parts):
    return os.path.join(root, *parts)


class TestForceIgnore:
    def test_defaults(self, root):
        forceignore = ForceIgnore(root)
        assert forceignore.denies(path(root, "force-app", "main", "default", ".eslintrc"))
        assert forceignore.denies(path(root, "force-app", "main", "default", "classes", "Foo.cls.dup"))
        assert forceignore.denies(path(root, "force-app", "package2-descriptor.json"))
        assert forceignore.accepts(path(root, "force-app", "main", "default", "classes", "Foo.cls"))

    def test_unanchored_glob_and_negation(self, root):
        forceignore = ForceIgnore(root)
        assert forceignore.denies(path(root, "force-app", "debug.log"))
        assert forceignore.accepts(path(root, "force-app", "keep.log"))

    def test_directory_only(self, root):
        tmp_dir = path(root, "force-app", "tmp")
        os.makedirs(tmp_dir)
        forceignore = ForceIgnore(root)
        assert forceignore.denies(tmp_dir)
        assert forceignore.denies(path(tmp_dir, "classes", "Foo.cls"))
        # a file named tmp is not a directory
        assert forceignore.accepts(path(root, "force-app", "lwc", "tmp"))

    def test_anchored(self, root):
        forceignore = ForceIgnore(root)
        assert forceignore.denies(path(root, "force-app", "main", "default", "classes", "Secret.cls"))
        assert forceignore.accepts(path(root, "other", "force-app", "main", "default", "classes", "Secret.cls"))
        assert forceignore.denies(path(root, "force-app", "main", "default", "lwc", "jsconfig.json"))

    def test_backslash_patterns(self, root):
        forceignore = ForceIgnore(root)
        assert forceignore.denies(path(root, "force-app", "main", "default", "pages", "Foo.page"))

    def test_project_root_is_never_denied(self, root):
        assert ForceIgnore(root).accepts(root)

    def test_without_defaults(self, project_dir):
        forceignore = ForceIgnore(project_dir, include_defaults=False)
        assert forceignore.patterns == []
        assert forceignore.accepts(path(project_dir, "force-app", ".eslintrc"))

    def test_excluded_directory_cannot_be_reincluded(self, project_dir):
        with open(os.path.join(project_dir, FORCEIGNORE_FILE), "w") as f:
            f.write("build/\n!build/keep.txt\n")
        os.makedirs(path(project_dir, "build"))
        forceignore = ForceIgnore(project_dir)
        assert forceignore.denies(path(project_dir, "build", "keep.txt"))
        assert forceignore.denies(path(project_dir, "build", "other.txt"))

    def test_reinclude_inside_included_directory(self, project_dir):
        with open(os.path.join(project_dir, FORCEIGNORE_FILE), "w") as f:
            f.write("build/*\n!build/keep.txt\n")
        os.makedirs(path(project_dir, "build"))
        forceignore = ForceIgnore(project_dir)
        assert forceignore.accepts(path(project_dir, "build", "keep.txt"))
        assert forceignore.denies(path(project_dir, "build", "other.txt"))


def test_read_patterns():
    lines = ["# comment", "", "  *.log  ", "force-app\\main\\default\\pages", "!keep.log"]
    assert read_patterns(lines) == ["*.log", "force-app/main/default/pages", "!keep.log"]
