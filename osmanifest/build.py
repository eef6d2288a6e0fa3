# SPDX-License-Identifier: LGPL-2.1-or-later

"""
Build roots: the environments other pipelines run in.

As a general rule, the tools required to build a pipeline are taken from its build root rather than from
the pipeline itself. Without a build root, osbuild would use the root filesystem of the build host, which
is neither predictable nor reproducible. The build root itself is assembled on the host (or in a
bootstrap build root when building for a foreign architecture), so it makes as few assumptions about the
host as possible.
"""

import dataclasses
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Optional

from osmanifest import container, fsnode, osbuild, rpmmd
from osmanifest.distribution import Distro
from osmanifest.log import bug
from osmanifest.manifest import Inputs, Manifest, Pipeline
from osmanifest.runner import Linux, Runner
from osmanifest.util import dictify

DEFAULT_SELINUX_POLICY = "targeted"
BUILDROOT_LABEL = "system_u:object_r:install_exec_t:s0"


def policy_or_default(policy: Optional[str]) -> str:
    return policy or DEFAULT_SELINUX_POLICY


def file_contexts(policy: str) -> str:
    return f"etc/selinux/{policy}/contexts/files/file_contexts"


@dataclasses.dataclass(frozen=True)
class BuildOptions:
    # Tweak the build root to be buildable inside a container, i.e. do not rely on an installed
    # osbuild-selinux on the host.
    container_buildable: bool = False
    # Not advised, but needed for cross-architecture builds.
    disable_selinux: bool = False
    # Defaults to DEFAULT_SELINUX_POLICY.
    selinux_policy: Optional[str] = None
    # Only set for cross-architecture builds.
    bootstrap_pipeline: Optional["Build"] = None
    # Needed when a manifest has multiple build roots.
    pipeline_name: Optional[str] = None
    # Maps pipeline names to paths that are copied from that pipeline into the build root. Only used by
    # build roots from containers.
    copy_files_from: Mapping[str, Sequence[str]] = dataclasses.field(default_factory=dict)
    # Directories created in the build root. Only used by build roots from containers.
    ensure_dirs: Sequence[fsnode.Directory] = ()


class Build(Pipeline):
    """A pipeline that other pipelines run inside of."""

    def __init__(self, name: str, runner: Runner, *, build: Optional["Build"] = None) -> None:
        super().__init__(name, build)
        self.runner = runner
        self.dependents: list[Pipeline] = []

    def _add_dependent(self, pipeline: Pipeline) -> None:
        """Register a pipeline that runs in this build root, both here and in the manifest."""
        if self.manifest is None:
            bug(f"Cannot add build dependent {pipeline.name!r} to {self.name!r} without a manifest")

        if pipeline.build_pipeline is not self:
            bug(f"Pipeline {pipeline.name!r} does not run in build root {self.name!r}")

        self.manifest.add_pipeline(pipeline)
        self.dependents.append(pipeline)

    def serialize(self) -> osbuild.Pipeline:
        pipeline = super().serialize()
        pipeline.runner = str(self.runner)
        return pipeline


@dictify
def package_selinux_labels(
    packages: Sequence[rpmmd.PackageSpec],
    *,
    container_buildable: bool,
) -> Iterator[tuple[str, str]]:
    # The file contexts of these binaries are shipped by the package that ships the binary, so only the
    # packages the depsolver actually picked are taken into account.
    for package in packages:
        if package.name == "coreutils":
            yield "/usr/bin/cp", BUILDROOT_LABEL
            if container_buildable:
                yield "/usr/bin/mount", BUILDROOT_LABEL
                yield "/usr/bin/umount", BUILDROOT_LABEL
        elif package.name == "tar":
            yield "/usr/bin/tar", BUILDROOT_LABEL


class BuildrootFromPackages(Build):
    def __init__(
        self,
        name: str,
        runner: Runner,
        repos: Sequence[rpmmd.RepoConfig],
        *,
        build: Optional[Build] = None,
        container_buildable: bool = False,
        disable_selinux: bool = False,
        selinux_policy: str = DEFAULT_SELINUX_POLICY,
    ) -> None:
        super().__init__(name, runner, build=build)
        self.repos = rpmmd.filter_repos(repos, name)
        self.package_specs: list[rpmmd.PackageSpec] = []
        self.container_buildable = container_buildable
        # Most bootstrap containers do not ship setfiles, so SELinux has to be disabled for build roots
        # built inside of them.
        self.disable_selinux = disable_selinux
        self.selinux_policy = selinux_policy

    def get_package_set_chain(self, distro: Distro) -> list[rpmmd.PackageSet]:
        packages = [
            f"selinux-policy-{self.selinux_policy}",  # needed to build the build root itself
            "coreutils",  # /usr/bin/cp, used all over
            "xz",
            *self.runner.build_packages(),
        ]

        for pipeline in self.dependents:
            packages += pipeline.get_build_packages(distro)

        return [
            rpmmd.PackageSet(
                include=packages,
                repositories=list(self.repos),
                install_weak_deps=True,
            )
        ]

    def get_package_specs(self) -> list[rpmmd.PackageSpec]:
        return self.package_specs

    def serialize_start(self, inputs: Inputs) -> None:
        if self.package_specs:
            bug("double call to serialize_start()")

        self.package_specs = list(inputs.depsolved.packages)
        self.repos += [repo for repo in inputs.depsolved.repos if repo not in self.repos]

        logging.debug(f"Build root {self.name} resolved to {len(self.package_specs)} packages")

    def serialize_end(self) -> None:
        if not self.package_specs:
            bug("serialize_end() call when serialization not in progress")

        self.package_specs = []

    def get_selinux_labels(self) -> dict[str, str]:
        return package_selinux_labels(self.package_specs, container_buildable=self.container_buildable)

    def serialize(self) -> osbuild.Pipeline:
        if not self.package_specs:
            bug("serialization not started")

        pipeline = super().serialize()
        pipeline.add_stage(osbuild.rpm_stage(self.repos, self.package_specs))

        if not self.disable_selinux:
            pipeline.add_stage(
                osbuild.selinux_stage(
                    file_contexts(self.selinux_policy),
                    labels=self.get_selinux_labels(),
                )
            )

        return pipeline


class BuildrootFromContainer(Build):
    def __init__(
        self,
        name: str,
        runner: Runner,
        containers: Sequence[container.SourceSpec],
        *,
        build: Optional[Build] = None,
        container_buildable: bool = False,
        disable_selinux: bool = False,
        selinux_policy: str = DEFAULT_SELINUX_POLICY,
        copy_files_from: Mapping[str, Sequence[str]] = {},
        ensure_dirs: Sequence[fsnode.Directory] = (),
    ) -> None:
        super().__init__(name, runner, build=build)
        self.containers = list(containers)
        self.container_specs: list[container.Spec] = []
        self.container_buildable = container_buildable
        self.disable_selinux = disable_selinux
        self.selinux_policy = selinux_policy
        self.copy_files_from = {source: list(paths) for source, paths in copy_files_from.items()}
        self.ensure_dirs = list(ensure_dirs)

    def get_container_sources(self) -> list[container.SourceSpec]:
        return self.containers

    def get_container_specs(self) -> list[container.Spec]:
        return self.container_specs

    def serialize_start(self, inputs: Inputs) -> None:
        if self.container_specs:
            bug("double call to serialize_start()")

        self.container_specs = list(inputs.containers)

        logging.debug(f"Build root {self.name} resolved to {len(self.container_specs)} containers")

    def serialize_end(self) -> None:
        if not self.container_specs:
            bug("serialize_end() call when serialization not in progress")

        self.container_specs = []

    def get_selinux_labels(self) -> dict[str, str]:
        if self.disable_selinux:
            return {}

        labels = {"/usr/bin/ostree": BUILDROOT_LABEL}
        if self.container_buildable:
            labels["/usr/bin/mount"] = BUILDROOT_LABEL
            labels["/usr/bin/umount"] = BUILDROOT_LABEL
        return labels

    def serialize(self) -> osbuild.Pipeline:
        if not self.container_specs:
            bug("serialization not started")

        if len(self.container_specs) != 1:
            bug(
                "BuildrootFromContainer expects exactly one container input, got "
                f"{len(self.container_specs)}: {', '.join(spec.source for spec in self.container_specs)}"
            )

        pipeline = super().serialize()

        # Make skopeo drop the signatures of signed containers, it cannot copy them to a directory yet
        # (https://github.com/containers/image/issues/2599).
        pipeline.add_stage(osbuild.container_deploy_stage(self.container_specs[0], remove_signatures=True))

        for directory in self.ensure_dirs:
            pipeline.add_stage(osbuild.mkdir_stage(directory))

        for source, paths in self.copy_files_from.items():
            for path in paths:
                pipeline.add_stage(
                    osbuild.copy_stage(
                        "copy-tree",
                        source,
                        [(f"input://copy-tree{path}", f"tree://{path}")],
                    )
                )

        if not self.disable_selinux:
            pipeline.add_stage(
                osbuild.selinux_stage(
                    file_contexts(self.selinux_policy),
                    labels=self.get_selinux_labels(),
                    # The container might carry an ostree deployment which must keep its labels.
                    exclude_paths=["/sysroot"],
                )
            )

        return pipeline


def new_build(
    manifest: Manifest,
    runner: Runner,
    repos: Sequence[rpmmd.RepoConfig],
    opts: Optional[BuildOptions] = None,
) -> Build:
    """Create a build root by installing packages from the given repositories."""
    opts = opts or BuildOptions()

    pipeline = BuildrootFromPackages(
        opts.pipeline_name or "build",
        runner,
        repos,
        build=opts.bootstrap_pipeline,
        container_buildable=opts.container_buildable,
        disable_selinux=opts.disable_selinux,
        selinux_policy=policy_or_default(opts.selinux_policy),
    )

    manifest.add_pipeline(pipeline)
    return pipeline


def new_build_from_container(
    manifest: Manifest,
    runner: Runner,
    containers: Sequence[container.SourceSpec],
    opts: Optional[BuildOptions] = None,
) -> Build:
    """Create a build root from a container image."""
    opts = opts or BuildOptions()

    pipeline = BuildrootFromContainer(
        opts.pipeline_name or "build",
        runner,
        containers,
        build=opts.bootstrap_pipeline,
        container_buildable=opts.container_buildable,
        disable_selinux=opts.disable_selinux,
        selinux_policy=policy_or_default(opts.selinux_policy),
        copy_files_from=opts.copy_files_from,
        ensure_dirs=opts.ensure_dirs,
    )

    manifest.add_pipeline(pipeline)
    return pipeline


def new_bootstrap(manifest: Manifest, containers: Sequence[container.SourceSpec]) -> Build:
    """
    Create the build root that the real build root is built in when building for a foreign architecture.

    Nothing can be assumed about the host here, so the most minimal runner is used. SELinux is disabled
    since bootstrap containers typically do not ship setfiles.
    """
    pipeline = BuildrootFromContainer(
        "bootstrap-buildroot",
        Linux(),
        containers,
        container_buildable=True,
        disable_selinux=True,
    )

    manifest.add_pipeline(pipeline)
    return pipeline
