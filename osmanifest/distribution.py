# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
import enum
from typing import Callable, Optional

from osmanifest.log import bug
from osmanifest.util import StrEnum


class Distro(StrEnum):
    """Distribution family passed to pipelines whose build requirements depend on the target."""

    none = enum.auto()
    fedora = enum.auto()
    el7 = enum.auto()
    el8 = enum.auto()
    el9 = enum.auto()
    el10 = enum.auto()


@dataclasses.dataclass(frozen=True)
class DistroID:
    name: str
    major_version: int
    # -1 when the id string carries no minor version
    minor_version: int = -1

    def __str__(self) -> str:
        if self.minor_version < 0:
            return f"{self.name}-{self.major_version}"
        return f"{self.name}-{self.major_version}.{self.minor_version}"

    def family(self) -> Distro:
        if self.name == "fedora":
            return Distro.fedora

        if self.name in ("rhel", "centos", "almalinux", "rocky"):
            return Distro.__members__.get(f"el{self.major_version}", Distro.none)

        return Distro.none


IDParseCallback = Callable[[str], Optional[DistroID]]


def parse_id(s: str) -> DistroID:
    name, sep, version = s.rpartition("-")
    if not sep or not name or not version:
        raise ValueError(f"Invalid distro id {s!r}, expected <name>-<version>")

    parts = version.split(".")
    if len(parts) > 2:
        raise ValueError(f"Invalid version {version!r} in distro id {s!r}, expected <major>[.<minor>]")

    if not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid version {version!r} in distro id {s!r}, version parts must be numbers")

    return DistroID(name, int(parts[0]), int(parts[1]) if len(parts) == 2 else -1)


def parse_rhel_id(s: str) -> Optional[DistroID]:
    """
    RHEL 8 and 9 minor releases are also known by their dotless spelling, e.g. rhel-810 for RHEL 8.10.
    Everything else is left to the other parsers.
    """
    version = s.removeprefix("rhel-")
    if version == s or not version.isdigit():
        return None

    if version[0] not in ("8", "9") or len(version) not in (2, 3):
        return None

    return DistroID("rhel", int(version[0]), int(version[1:]))


class IDParser:
    def __init__(self, *parsers: IDParseCallback, fallback: Optional[IDParseCallback] = None) -> None:
        self.parsers = parsers
        self.fallback = fallback

    def parse(self, s: str) -> DistroID:
        matches = [id for parser in self.parsers if (id := parser(s)) is not None]

        # Each distro id spelling must have exactly one meaning.
        if len(matches) > 1:
            bug(f"Distro id {s!r} was matched by multiple parsers: {', '.join(map(str, matches))}")

        if matches:
            return matches[0]

        if self.fallback and (id := self.fallback(s)) is not None:
            return id

        raise ValueError(f"Distro id {s!r} was not recognized by any parser")


def default_parser() -> IDParser:
    return IDParser(parse_rhel_id, fallback=parse_id)
