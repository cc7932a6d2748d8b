#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

import itertools
import os

from setuptools import find_packages, setup  # type: ignore

with open("requirements.txt") as req_file:
    requirements = [line for line in req_file.read().splitlines() if line and not line.startswith("#")]


with open("README.md", "r") as f:
    long_description = f.read()

version: dict = {}
with open(os.path.join("sbkeeper", "__version__.py")) as version_file:
    exec(version_file.read(), version)  # pylint: disable=exec-used

extras_require = {
    "tests": ["pytest>=7.2", "importlib_metadata>=4.12"],
}
# specify all option that contains all extras
extras_require["all"] = list(itertools.chain.from_iterable(extras_require.values()))

setup(
    name="sbkeeper",
    version=version["__version__"],
    description="Signed unified kernel images and dbx revocation for UEFI Secure Boot",
    author="NXP",
    license="BSD-3-Clause",
    long_description=long_description,
    long_description_content_type="text/markdown",
    platforms="Linux",
    python_requires=">=3.9",
    setup_requires=["setuptools>=72.1", "wheel"],
    install_requires=requirements,
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: POSIX :: Linux",
        "License :: OSI Approved :: BSD License",
        "Topic :: Security",
        "Topic :: System :: Boot",
        "Topic :: Utilities",
    ],
    packages=find_packages(exclude=["tests.*", "tests"]),
    entry_points={
        "console_scripts": [
            "sbkeeper=sbkeeper.apps.sbkeeper:safe_main",
        ],
    },
    extras_require=extras_require,
)
