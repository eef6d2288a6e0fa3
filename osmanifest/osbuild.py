# SPDX-License-Identifier: LGPL-2.1-or-later

"""
The low-level osbuild manifest (format version 2) that the pipeline graph serializes into.

Only the stages and sources the pipelines in this package emit are modelled here. See
https://osbuild.org/docs/developer-guide/projects/osbuild/ for the full schema.
"""

import dataclasses
import os
from collections.abc import Sequence
from typing import IO, Any, Optional

from osmanifest import container, fsnode, rpmmd
from osmanifest.log import ManifestError
from osmanifest.util import dump_json, flatten, unique


@dataclasses.dataclass
class Stage:
    type: str
    options: dict[str, Any] = dataclasses.field(default_factory=dict)
    inputs: dict[str, Any] = dataclasses.field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type}
        if self.inputs:
            d["inputs"] = self.inputs
        if self.options:
            d["options"] = self.options
        return d


@dataclasses.dataclass
class Pipeline:
    name: str
    build: str = ""
    runner: str = ""
    stages: list[Stage] = dataclasses.field(default_factory=list)

    def add_stage(self, stage: Stage) -> None:
        self.stages.append(stage)

    def as_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name}
        if self.build:
            d["build"] = self.build
        if self.runner:
            d["runner"] = self.runner
        if self.stages:
            d["stages"] = [stage.as_dict() for stage in self.stages]
        return d


@dataclasses.dataclass
class OSBuildManifest:
    pipelines: list[Pipeline]
    sources: dict[str, Any] = dataclasses.field(default_factory=dict)
    version: str = "2"

    def as_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "pipelines": [pipeline.as_dict() for pipeline in self.pipelines],
            "sources": self.sources,
        }

    def write_json(self, out: IO[str]) -> None:
        out.write(dump_json(self.as_dict()))


def pipeline_tree_input(pipeline: str) -> dict[str, Any]:
    return {
        "type": "org.osbuild.tree",
        "origin": "org.osbuild.pipeline",
        "references": [f"name:{pipeline}"],
    }


def pipeline_file_input(pipeline: str, filename: str) -> dict[str, Any]:
    return {
        "type": "org.osbuild.files",
        "origin": "org.osbuild.pipeline",
        "references": {f"name:{pipeline}": {"file": filename}},
    }


def rpm_stage(repos: Sequence[rpmmd.RepoConfig], packages: Sequence[rpmmd.PackageSpec]) -> Stage:
    references = []
    for package in packages:
        reference: dict[str, Any] = {"id": package.checksum}
        if package.check_gpg:
            reference["options"] = {"metadata": {"rpm.check_gpg": True}}
        references.append(reference)

    options: dict[str, Any] = {}
    # Several repositories of one distribution usually share their keys.
    if gpgkeys := unique(flatten(repo.gpgkeys for repo in repos if repo.check_gpg)):
        options["gpgkeys"] = gpgkeys

    return Stage(
        type="org.osbuild.rpm",
        options=options,
        inputs={
            "packages": {
                "type": "org.osbuild.files",
                "origin": "org.osbuild.source",
                "references": references,
            },
        },
    )


def selinux_stage(
    file_contexts: str,
    *,
    labels: Optional[dict[str, str]] = None,
    exclude_paths: Sequence[str] = (),
) -> Stage:
    options: dict[str, Any] = {"file_contexts": file_contexts}
    if labels:
        options["labels"] = labels
    if exclude_paths:
        options["exclude_paths"] = list(exclude_paths)

    return Stage(type="org.osbuild.selinux", options=options)


def container_deploy_stage(spec: container.Spec, *, remove_signatures: bool = False) -> Stage:
    if not spec.image_id:
        raise ManifestError(f"Container {spec.source} has no image id, it was not resolved to a digest")

    options: dict[str, Any] = {}
    if remove_signatures:
        options["remove-signatures"] = True

    return Stage(
        type="org.osbuild.container-deploy",
        options=options,
        inputs={
            "images": {
                "type": "org.osbuild.containers",
                "origin": "org.osbuild.source",
                "references": {spec.image_id: {"name": spec.local_name or spec.source}},
            },
        },
    )


def mkdir_stage(directory: fsnode.Directory) -> Stage:
    path: dict[str, Any] = {
        "path": os.fspath(directory.path),
        "exist_ok": True,
    }
    if directory.ensure_parents:
        path["parents"] = True
    if directory.mode is not None:
        path["mode"] = directory.mode

    return Stage(type="org.osbuild.mkdir", options={"paths": [path]})


def copy_stage(input_name: str, pipeline: str, paths: Sequence[tuple[str, str]]) -> Stage:
    return Stage(
        type="org.osbuild.copy",
        options={"paths": [{"from": src, "to": dst} for src, dst in paths]},
        inputs={input_name: pipeline_tree_input(pipeline)},
    )


def tar_stage(filename: str, pipeline: str) -> Stage:
    return Stage(
        type="org.osbuild.tar",
        options={"filename": filename},
        inputs={"tree": pipeline_tree_input(pipeline)},
    )


def xz_stage(filename: str, pipeline: str, file: str) -> Stage:
    return Stage(
        type="org.osbuild.xz",
        options={"filename": filename},
        inputs={"file": pipeline_file_input(pipeline, file)},
    )


def qemu_stage(filename: str, pipeline: str, file: str, *, format: str, compat: str = "") -> Stage:
    fmt: dict[str, Any] = {"type": format}
    if compat:
        fmt["compat"] = compat

    return Stage(
        type="org.osbuild.qemu",
        options={"filename": filename, "format": fmt},
        inputs={"image": pipeline_file_input(pipeline, file)},
    )


def gen_sources(
    packages: Sequence[rpmmd.PackageSpec],
    containers: Sequence[container.Spec],
) -> dict[str, Any]:
    sources: dict[str, Any] = {}

    urls: dict[str, Any] = {}
    for package in packages:
        if not package.checksum or not package.remote_location:
            raise ManifestError(
                f"Package {package.name} has no checksum or remote location, it was not depsolved"
            )

        item: dict[str, Any] = {"url": package.remote_location}
        if package.ignore_ssl:
            item["insecure"] = True
        urls[package.checksum] = item

    if urls:
        sources["org.osbuild.curl"] = {"items": urls}

    images: dict[str, Any] = {}
    for spec in containers:
        image: dict[str, Any] = {"name": spec.source, "digest": spec.digest}
        if spec.tls_verify is not None:
            image["tls-verify"] = spec.tls_verify
        images[spec.image_id] = {"image": image}

    if images:
        sources["org.osbuild.skopeo"] = {"items": images}

    return sources
