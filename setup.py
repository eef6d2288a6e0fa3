#!/usr/bin/python3
# SPDX-License-Identifier: LGPL-2.1+

from setuptools import setup, find_packages


setup(
    name="osmanifest",
    version="1.dev0",
    description="Build root pipelines for osbuild image manifests",
    maintainer="osmanifest contributors",
    license="LGPLv2+",
    python_requires=">=3.9",
    packages = find_packages(".", exclude=["tests", "tests.*"]),
    extras_require = { "test": ["pytest"] },
)
