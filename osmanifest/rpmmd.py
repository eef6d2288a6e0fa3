# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
from collections.abc import Sequence
from typing import Optional


@dataclasses.dataclass(frozen=True)
class RepoConfig:
    id: str
    baseurls: tuple[str, ...] = ()
    metalink: Optional[str] = None
    mirrorlist: Optional[str] = None
    gpgkeys: tuple[str, ...] = ()
    check_gpg: bool = False
    check_repo_gpg: bool = False
    ignore_ssl: bool = False
    # Names of the pipelines this repository is used for. Empty means all of them.
    package_sets: tuple[str, ...] = ()

    def applies_to(self, pipeline: str) -> bool:
        return not self.package_sets or pipeline in self.package_sets


def filter_repos(repos: Sequence[RepoConfig], pipeline: str) -> list[RepoConfig]:
    return [repo for repo in repos if repo.applies_to(pipeline)]


@dataclasses.dataclass(frozen=True)
class PackageSet:
    """An unresolved request for packages, handed to the depsolver."""

    include: list[str]
    repositories: list[RepoConfig]
    exclude: list[str] = dataclasses.field(default_factory=list)
    install_weak_deps: bool = False


@dataclasses.dataclass(frozen=True)
class PackageSpec:
    """A package as decided by the depsolver."""

    name: str
    epoch: int = 0
    version: str = ""
    release: str = ""
    arch: str = ""
    remote_location: str = ""
    checksum: str = ""
    check_gpg: bool = False
    ignore_ssl: bool = False
    repo_id: str = ""


@dataclasses.dataclass(frozen=True)
class DepsolveResult:
    packages: list[PackageSpec] = dataclasses.field(default_factory=list)
    # Repositories the depsolver had to pull in on top of the ones it was given.
    repos: list[RepoConfig] = dataclasses.field(default_factory=list)
