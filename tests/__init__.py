# SPDX-License-Identifier: LGPL-2.1-or-later

import hashlib
from collections.abc import Sequence

from osmanifest import rpmmd
from osmanifest.build import Build
from osmanifest.distribution import Distro
from osmanifest.manifest import Pipeline


class Dependent(Pipeline):
    """A content pipeline that only declares build packages."""

    def __init__(self, build: Build, name: str, packages: Sequence[str] = ()) -> None:
        super().__init__(name, build)
        self.packages = list(packages)
        self.queried: list[Distro] = []
        build._add_dependent(self)

    def get_build_packages(self, distro: Distro) -> list[str]:
        self.queried.append(distro)
        return self.packages


def package(
    name: str,
    version: str = "1.0",
    release: str = "1.fc41",
    arch: str = "x86_64",
) -> rpmmd.PackageSpec:
    return rpmmd.PackageSpec(
        name=name,
        version=version,
        release=release,
        arch=arch,
        checksum=f"sha256:{hashlib.sha256(name.encode()).hexdigest()}",
        remote_location=f"https://example.com/repo/{name}-{version}-{release}.{arch}.rpm",
        check_gpg=True,
        repo_id="fedora",
    )
