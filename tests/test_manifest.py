# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
import io
import json

import pytest

from osmanifest import container, rpmmd
from osmanifest.build import (
    BuildOptions,
    BuildrootFromPackages,
    new_bootstrap,
    new_build,
    new_build_from_container,
)
from osmanifest.distribution import Distro
from osmanifest.log import InternalError, ManifestError
from osmanifest.manifest import Manifest, Pipeline
from osmanifest.pipelines import Tar
from osmanifest.runner import Fedora, Linux

from . import Dependent, package


def test_duplicate_pipeline_name(manifest: Manifest) -> None:
    build = new_build(manifest, Linux(), [])
    Dependent(build, "os")

    with pytest.raises(InternalError, match="Duplicate pipeline name"):
        Dependent(build, "os")


def test_duplicate_build_name(manifest: Manifest) -> None:
    new_build(manifest, Linux(), [])

    with pytest.raises(InternalError, match="Duplicate pipeline name 'build'"):
        new_build_from_container(manifest, Linux(), [])


def test_pipeline_in_two_manifests(manifest: Manifest) -> None:
    pipeline = Pipeline("os")
    manifest.add_pipeline(pipeline)

    with pytest.raises(InternalError, match="already added"):
        Manifest().add_pipeline(pipeline)


def test_build_pipeline_in_other_manifest(manifest: Manifest) -> None:
    build = new_build(Manifest(), Linux(), [])

    with pytest.raises(InternalError, match="different manifest"):
        manifest.add_pipeline(Pipeline("os", build))


def test_pipelines_are_registered_in_order(manifest: Manifest) -> None:
    bootstrap = new_bootstrap(manifest, [])
    build = new_build(manifest, Linux(), [], BuildOptions(bootstrap_pipeline=bootstrap))
    os = Dependent(build, "os")
    archive = Tar(build, os)

    assert manifest.pipelines == [bootstrap, build, os, archive]
    assert all(pipeline.manifest is manifest for pipeline in manifest.pipelines)
    assert build.dependents == [os, archive]


def test_get_package_set_chains(manifest: Manifest, repos: list[rpmmd.RepoConfig]) -> None:
    build = new_build(manifest, Fedora(41), repos)
    Dependent(build, "os", ["dosfstools", "e2fsprogs"])

    chains = manifest.get_package_set_chains()
    assert list(chains) == ["build"]
    assert chains["build"][0].include == [
        "selinux-policy-targeted",
        "coreutils",
        "xz",
        "glibc",
        "systemd",
        "python3",
        "dosfstools",
        "e2fsprogs",
    ]


def test_get_package_set_chains_uses_manifest_distro() -> None:
    manifest = Manifest(distro=Distro.el9)
    build = new_build(manifest, Linux(), [])
    dependent = Dependent(build, "os")

    manifest.get_package_set_chains()
    assert dependent.queried == [Distro.el9]


def test_get_container_source_specs(manifest: Manifest) -> None:
    source = container.SourceSpec(source="registry.example.com/bootstrap:latest")
    new_bootstrap(manifest, [source])
    new_build(manifest, Linux(), [])

    assert manifest.get_container_source_specs() == {"bootstrap-buildroot": [source]}


def test_get_checkpoints(manifest: Manifest) -> None:
    build = new_build(manifest, Linux(), [])
    os = Dependent(build, "os")
    Dependent(build, "image")

    assert manifest.get_checkpoints() == []

    build.checkpoint()
    os.checkpoint()
    assert manifest.get_checkpoints() == ["build", "os"]


def test_serialize(
    manifest: Manifest,
    repos: list[rpmmd.RepoConfig],
    base_container: container.Spec,
) -> None:
    bootstrap = new_bootstrap(manifest, [container.SourceSpec(source=base_container.source)])
    build = new_build(manifest, Fedora(41), repos, BuildOptions(bootstrap_pipeline=bootstrap))
    os = Dependent(build, "os", ["foo"])
    Tar(build, os)

    packages = [package("coreutils"), package("xz"), package("selinux-policy-targeted"), package("tar")]
    result = manifest.serialize(
        depsolved={"build": rpmmd.DepsolveResult(packages=packages)},
        containers={"bootstrap-buildroot": [base_container]},
    )

    assert [pipeline.name for pipeline in result.pipelines] == [
        "bootstrap-buildroot",
        "build",
        "os",
        "archive",
    ]
    assert [pipeline.build for pipeline in result.pipelines] == [
        "",
        "name:bootstrap-buildroot",
        "name:build",
        "name:build",
    ]

    assert list(result.sources) == ["org.osbuild.curl", "org.osbuild.skopeo"]
    assert set(result.sources["org.osbuild.curl"]["items"]) == {p.checksum for p in packages}
    assert result.sources["org.osbuild.skopeo"]["items"] == {
        base_container.image_id: {"image": {"name": base_container.source, "digest": base_container.digest}},
    }

    # Serialization is over, so the resolved inputs are gone again.
    assert build.get_package_specs() == []
    assert bootstrap.get_container_specs() == []


def test_serialize_twice(manifest: Manifest, repos: list[rpmmd.RepoConfig]) -> None:
    build = new_build(manifest, Fedora(41), repos)
    Dependent(build, "os", ["foo"])

    depsolved = {"build": rpmmd.DepsolveResult(packages=[package("coreutils"), package("foo")])}
    assert manifest.serialize(depsolved).as_dict() == manifest.serialize(depsolved).as_dict()


def test_serialize_without_resolution(manifest: Manifest) -> None:
    new_build(manifest, Linux(), [])

    with pytest.raises(InternalError, match="serialization not started"):
        manifest.serialize()


def test_serialize_error_ends_serialization(manifest: Manifest) -> None:
    build = new_build(manifest, Linux(), [])
    assert isinstance(build, BuildrootFromPackages)

    unresolved = dataclasses.replace(package("coreutils"), remote_location="")
    with pytest.raises(ManifestError, match="was not depsolved"):
        manifest.serialize({"build": rpmmd.DepsolveResult(packages=[unresolved])})

    assert build.package_specs == []
    manifest.serialize({"build": rpmmd.DepsolveResult(packages=[package("coreutils")])})


def test_write_json(manifest: Manifest) -> None:
    build = new_build(manifest, Fedora(41), [])
    Dependent(build, "d1", ["foo"])
    Dependent(build, "d2", ["bar"])

    result = manifest.serialize({"build": rpmmd.DepsolveResult(packages=[package("coreutils")])})

    out = io.StringIO()
    result.write_json(out)
    dump = json.loads(out.getvalue())

    assert dump["version"] == "2"
    assert dump["pipelines"][0] == {
        "name": "build",
        "runner": "org.osbuild.fedora41",
        "stages": [
            {
                "type": "org.osbuild.rpm",
                "inputs": {
                    "packages": {
                        "type": "org.osbuild.files",
                        "origin": "org.osbuild.source",
                        "references": [
                            {
                                "id": package("coreutils").checksum,
                                "options": {"metadata": {"rpm.check_gpg": True}},
                            },
                        ],
                    },
                },
            },
            {
                "type": "org.osbuild.selinux",
                "options": {
                    "file_contexts": "etc/selinux/targeted/contexts/files/file_contexts",
                    "labels": {"/usr/bin/cp": "system_u:object_r:install_exec_t:s0"},
                },
            },
        ],
    }
    assert dump["pipelines"][1] == {"name": "d1", "build": "name:build"}
