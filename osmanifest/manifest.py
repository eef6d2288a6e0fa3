# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Optional

from osmanifest import container, osbuild, rpmmd
from osmanifest.distribution import Distro
from osmanifest.log import ManifestError, bug, complete_step
from osmanifest.util import flatten

if TYPE_CHECKING:
    from osmanifest.build import Build


@dataclasses.dataclass(frozen=True)
class Inputs:
    """The output of the external resolvers for one pipeline."""

    depsolved: rpmmd.DepsolveResult = dataclasses.field(default_factory=rpmmd.DepsolveResult)
    containers: list[container.Spec] = dataclasses.field(default_factory=list)


class Pipeline:
    """
    A unit of work producing part of the final image.

    A pipeline optionally runs inside a build root (its build pipeline). Without one, osbuild runs it on
    the host. Pipelines that hold resolved inputs take part in the serialization protocol: the manifest
    calls serialize_start() with the resolved inputs, then serialize(), then serialize_end(), which drops
    the inputs again.
    """

    def __init__(self, name: str, build: Optional["Build"] = None) -> None:
        self._name = name
        self.build_pipeline = build
        # Set by the manifest when the pipeline is registered. The manifest owns the pipeline, not the
        # other way around.
        self._manifest: Optional["Manifest"] = None
        self.checkpointed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def manifest(self) -> Optional["Manifest"]:
        return self._manifest

    def checkpoint(self) -> None:
        """Ask osbuild to cache the output of this pipeline."""
        self.checkpointed = True

    def get_build_packages(self, distro: Distro) -> list[str]:
        """Packages the build root needs for this pipeline to run."""
        return []

    def get_package_set_chain(self, distro: Distro) -> list[rpmmd.PackageSet]:
        return []

    def get_container_sources(self) -> list[container.SourceSpec]:
        return []

    def get_package_specs(self) -> list[rpmmd.PackageSpec]:
        return []

    def get_container_specs(self) -> list[container.Spec]:
        return []

    def serialize_start(self, inputs: Inputs) -> None:
        pass

    def serialize_end(self) -> None:
        pass

    def serialize(self) -> osbuild.Pipeline:
        pipeline = osbuild.Pipeline(name=self.name)
        if self.build_pipeline is not None:
            pipeline.build = f"name:{self.build_pipeline.name}"
        return pipeline

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class Manifest:
    """
    Owns the pipeline graph.

    Pipelines are kept in registration order. Since a pipeline can only be registered once its build root
    and its inputs are part of the manifest, that order is also a valid order to run them in.
    """

    def __init__(self, distro: Distro = Distro.none) -> None:
        self.distro = distro
        self.pipelines: list[Pipeline] = []

    def add_pipeline(self, pipeline: Pipeline) -> None:
        """Register a pipeline. Only used by the pipeline constructors."""
        if pipeline.manifest is not None:
            bug(f"Pipeline {pipeline.name!r} was already added to a manifest")

        if any(p.name == pipeline.name for p in self.pipelines):
            bug(f"Duplicate pipeline name {pipeline.name!r} in manifest")

        if pipeline.build_pipeline is not None and pipeline.build_pipeline.manifest is not self:
            bug(
                f"Cannot add pipeline {pipeline.name!r} to a different manifest than its build pipeline "
                f"{pipeline.build_pipeline.name!r}"
            )

        self.pipelines.append(pipeline)
        pipeline._manifest = self

    def get_package_set_chains(self) -> dict[str, list[rpmmd.PackageSet]]:
        return {
            pipeline.name: chain
            for pipeline in self.pipelines
            if (chain := pipeline.get_package_set_chain(self.distro))
        }

    def get_container_source_specs(self) -> dict[str, list[container.SourceSpec]]:
        return {
            pipeline.name: sources
            for pipeline in self.pipelines
            if (sources := pipeline.get_container_sources())
        }

    def get_checkpoints(self) -> list[str]:
        return [pipeline.name for pipeline in self.pipelines if pipeline.checkpointed]

    def _serialize_end(self) -> None:
        for pipeline in self.pipelines:
            pipeline.serialize_end()

    def serialize(
        self,
        depsolved: Mapping[str, rpmmd.DepsolveResult] = {},
        containers: Mapping[str, Sequence[container.Spec]] = {},
    ) -> osbuild.OSBuildManifest:
        with complete_step("Serializing manifest…"):
            for pipeline in self.pipelines:
                pipeline.serialize_start(
                    Inputs(
                        depsolved=depsolved.get(pipeline.name, rpmmd.DepsolveResult()),
                        containers=list(containers.get(pipeline.name, [])),
                    )
                )

            # Only recoverable errors end serialization before propagating.
            try:
                pipelines = []
                for pipeline in self.pipelines:
                    logging.debug(f"Serializing pipeline {pipeline.name}")
                    pipelines.append(pipeline.serialize())

                sources = osbuild.gen_sources(
                    flatten(pipeline.get_package_specs() for pipeline in self.pipelines),
                    flatten(pipeline.get_container_specs() for pipeline in self.pipelines),
                )
            except ManifestError:
                self._serialize_end()
                raise

            self._serialize_end()

        return osbuild.OSBuildManifest(pipelines=pipelines, sources=sources)
