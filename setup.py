#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os.path
import re
from pkgutil import walk_packages

from setuptools import setup


def find_packages(path=["."], prefix=""):
    yield prefix
    prefix = prefix + "."
    for _, name, ispkg in walk_packages(path, prefix):
        if ispkg:
            yield name


with open(os.path.join("forcesource", "version.txt"), "r") as version_file:
    version = version_file.read().strip()

with open("README.rst", "rb") as readme_file:
    readme = readme_file.read().decode("utf-8")

with open("HISTORY.rst", "rb") as history_file:
    history = history_file.read().decode("utf-8")


def read_requirements(path):
    requirements = []
    with open(path) as requirements_file:
        for req in requirements_file.read().splitlines():
            # skip comments, blank lines and hash lines
            if not req.strip() or re.match(r"\s*#", req) or re.match(r"\s*--hash", req):
                continue
            requirements.append(req.split(" ")[0])
    return requirements


setup(
    name="forcesource",
    version=version,
    description="Convert and track Salesforce DX source format projects",
    long_description=readme + "\n\n" + history,
    long_description_content_type="text/x-rst",
    packages=list(find_packages(["forcesource"], "forcesource")),
    package_dir={"forcesource": "forcesource"},
    entry_points={"console_scripts": ["forcesource=forcesource.cli.cli:main"]},
    include_package_data=True,
    install_requires=read_requirements("requirements/prod.txt"),
    extras_require={"test": read_requirements("requirements/dev.txt")},
    license="BSD license",
    zip_safe=False,
    keywords="salesforce sfdx metadata",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    test_suite="forcesource",
    python_requires=">=3.8",
)
