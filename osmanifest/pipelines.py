# SPDX-License-Identifier: LGPL-2.1-or-later

from typing import Optional

from osmanifest import osbuild
from osmanifest.build import Build
from osmanifest.distribution import Distro
from osmanifest.log import bug
from osmanifest.manifest import Pipeline


class FilePipeline(Pipeline):
    """A pipeline that runs in a build root and produces a single file from the output of another pipeline."""

    def __init__(self, name: str, build: Build, input_pipeline: Pipeline, filename: str) -> None:
        super().__init__(name, build)

        if input_pipeline.manifest is None or input_pipeline.manifest is not build.manifest:
            bug(f"Input pipeline {input_pipeline.name!r} of {name!r} is not part of the same manifest")

        self.input_pipeline = input_pipeline
        self.filename = filename

        build._add_dependent(self)


class Tar(FilePipeline):
    def __init__(
        self,
        build: Build,
        input_pipeline: Pipeline,
        *,
        name: str = "archive",
        filename: str = "image.tar",
    ) -> None:
        super().__init__(name, build, input_pipeline, filename)

    def get_build_packages(self, distro: Distro) -> list[str]:
        return ["tar"]

    def serialize(self) -> osbuild.Pipeline:
        pipeline = super().serialize()
        pipeline.add_stage(osbuild.tar_stage(self.filename, self.input_pipeline.name))
        return pipeline


class XZ(FilePipeline):
    def __init__(
        self,
        build: Build,
        input_pipeline: FilePipeline,
        *,
        name: str = "xz",
        filename: Optional[str] = None,
    ) -> None:
        super().__init__(name, build, input_pipeline, filename or f"{input_pipeline.filename}.xz")
        self.input_file = input_pipeline.filename

    def get_build_packages(self, distro: Distro) -> list[str]:
        return ["xz"]

    def serialize(self) -> osbuild.Pipeline:
        pipeline = super().serialize()
        pipeline.add_stage(osbuild.xz_stage(self.filename, self.input_pipeline.name, self.input_file))
        return pipeline


class QCOW2(FilePipeline):
    def __init__(
        self,
        build: Build,
        input_pipeline: FilePipeline,
        *,
        name: str = "qcow2",
        filename: str = "image.qcow2",
        compat: str = "",
    ) -> None:
        super().__init__(name, build, input_pipeline, filename)
        self.input_file = input_pipeline.filename
        self.compat = compat

    def get_build_packages(self, distro: Distro) -> list[str]:
        return ["qemu-img"]

    def serialize(self) -> osbuild.Pipeline:
        assert self.manifest is not None

        compat = self.compat
        # qemu-img on EL7 hosts cannot read qcow2 images with the 1.1 feature set.
        if not compat and self.manifest.distro == Distro.el7:
            compat = "0.10"

        pipeline = super().serialize()
        pipeline.add_stage(
            osbuild.qemu_stage(
                self.filename,
                self.input_pipeline.name,
                self.input_file,
                format="qcow2",
                compat=compat,
            )
        )
        return pipeline
