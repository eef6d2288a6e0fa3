# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses

from osmanifest.distribution import DistroID


class Runner:
    """
    The osbuild runner a pipeline is executed with.

    The runner sets up the environment of the build root (ldconfig, tmpfiles, sysusers) before any stage
    runs, so the build root has to ship the packages it needs.
    """

    def build_packages(self) -> list[str]:
        return []

    def __str__(self) -> str:
        raise NotImplementedError


class Linux(Runner):
    """Makes no assumptions about the environment it runs in."""

    def __str__(self) -> str:
        return "org.osbuild.linux"


@dataclasses.dataclass(frozen=True)
class Fedora(Runner):
    version: int

    def build_packages(self) -> list[str]:
        return [
            "glibc",    # ldconfig
            "systemd",  # systemd-tmpfiles and systemd-sysusers
            "python3",  # osbuild
        ]

    def __str__(self) -> str:
        return f"org.osbuild.fedora{self.version}"


def el_python(major: int) -> str:
    # osbuild runs on the platform python on EL8 and older.
    return "platform-python" if major <= 8 else "python3"


@dataclasses.dataclass(frozen=True)
class CentOS(Runner):
    version: int

    def build_packages(self) -> list[str]:
        return ["glibc", "systemd", el_python(self.version)]

    def __str__(self) -> str:
        return f"org.osbuild.centos{self.version}"


@dataclasses.dataclass(frozen=True)
class RHEL(Runner):
    major: int
    minor: int = 0

    def build_packages(self) -> list[str]:
        return ["glibc", "systemd", el_python(self.major)]

    def __str__(self) -> str:
        return f"org.osbuild.rhel{self.major}{self.minor}"


def runner_for(id: DistroID) -> Runner:
    if id.name == "fedora":
        return Fedora(id.major_version)
    if id.name == "centos":
        return CentOS(id.major_version)
    if id.name == "rhel":
        return RHEL(id.major_version, max(id.minor_version, 0))

    return Linux()
