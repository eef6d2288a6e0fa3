# SPDX-License-Identifier: LGPL-2.1-or-later

import pytest

from osmanifest import container, rpmmd
from osmanifest.distribution import Distro
from osmanifest.manifest import Manifest


@pytest.fixture
def manifest() -> Manifest:
    return Manifest(distro=Distro.fedora)


@pytest.fixture
def repos() -> list[rpmmd.RepoConfig]:
    return [
        rpmmd.RepoConfig(
            id="fedora",
            metalink="https://mirrors.fedoraproject.org/metalink?repo=fedora-41&arch=x86_64",
            gpgkeys=("https://example.com/RPM-GPG-KEY-fedora-41",),
            check_gpg=True,
        ),
        rpmmd.RepoConfig(
            id="updates",
            metalink="https://mirrors.fedoraproject.org/metalink?repo=updates-released-f41&arch=x86_64",
            gpgkeys=("https://example.com/RPM-GPG-KEY-fedora-41",),
            check_gpg=True,
        ),
        rpmmd.RepoConfig(
            id="payload-only",
            baseurls=("https://example.com/payload",),
            package_sets=("os",),
        ),
    ]


@pytest.fixture
def base_container() -> container.Spec:
    return container.Spec(
        source="quay.io/fedora/fedora-bootc:41",
        digest="sha256:0c0ffee0c0ffee0c0ffee0c0ffee0c0ffee0c0ffee0c0ffee0c0ffee0c0ffee0",
        image_id="sha256:1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1ce1d1c",
        local_name="localhost/fedora-bootc",
    )
