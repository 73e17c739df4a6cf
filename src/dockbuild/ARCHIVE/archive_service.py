# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Build context archives.
Packs the files the engine needs for a build into a single tar file.
"""

import io
import logging
import os
import tarfile
import time
from pathlib import Path
from typing import List, Optional, Set

from docker.utils.build import exclude_paths

from ..BUILDERS.dockerfile_builder import DockerfileBuilder
from ..MODELS.build_config import BuildConfiguration, BuildParameters
from ..REGISTRY.image_name import ImageName
from ..exceptions import ArchiveError

logger = logging.getLogger(__name__)

DOCKERIGNORE = ".dockerignore"


class IgnoreRules:
    """
    Patterns read from a .dockerignore file, matched with the docker SDK's
    implementation of the engine's rules. A leading '!' re-includes.
    """

    def __init__(self, patterns: Optional[List[str]] = None):
        self.patterns = list(patterns or [])

    @classmethod
    def load(cls, context_dir: Path) -> "IgnoreRules":
        ignore_file = context_dir / DOCKERIGNORE
        if not ignore_file.is_file():
            return cls()
        lines = [line.strip() for line in ignore_file.read_text().splitlines()]
        return cls([line for line in lines if line and not line.startswith("#")])

    def included_paths(self, context_dir: Path, keep: Set[str] = frozenset()) -> Set[str]:
        """
        Relative paths below ``context_dir`` that survive the patterns.

        :param context_dir: Directory the patterns are relative to.
        :param keep: Root level file names included whatever the patterns say.
        :return: POSIX style paths of files and directories.
        """
        patterns = self.patterns + ["!" + name for name in sorted(keep)]
        # exclude_paths appends a re-include for the given dockerfile name
        paths = exclude_paths(str(context_dir), patterns, dockerfile=DOCKERIGNORE)
        return {path.replace(os.sep, "/") for path in paths}


class ArchiveService:
    """
    Creates the build context archive for an image.

    In Dockerfile mode the context directory is packed and the Dockerfile
    is placed at the archive root, so the engine only needs its file name.
    Otherwise a Dockerfile is generated from the build configuration.
    """

    ARCHIVE_NAME = "docker-build"

    def __init__(self, dockerfile_builder: Optional[DockerfileBuilder] = None):
        """
        Initializes the archive service.

        :param dockerfile_builder: Renders Dockerfiles for configurations without one.
        """
        self.dockerfile_builder = dockerfile_builder or DockerfileBuilder()

    def create_archive(self, image_name: str, build_config: BuildConfiguration,
                       params: BuildParameters) -> Path:
        """
        Writes the build context archive for an image.

        :param image_name: Name of the image being built, used for the work directory.
        :param build_config: How the image is built.
        :param params: Base and output directories.
        :return: Path of the written archive.
        :raises ArchiveError: If inputs are missing or the archive cannot be written.
        """
        archive_path = self.archive_path(image_name, build_config, params)
        exclude = params.resolve(params.output_dir).resolve()

        if build_config.dockerfile_mode:
            dockerfile = params.resolve(build_config.dockerfile_path)
            if not dockerfile.is_file():
                raise ArchiveError(f"Dockerfile {dockerfile} does not exist")
            if build_config.context_dir:
                context_dir = params.resolve(build_config.context_dir)
            elif build_config.dockerfile_dir:
                context_dir = params.resolve(build_config.dockerfile_dir)
            else:
                context_dir = dockerfile.parent
            self._check_context(context_dir)
            content = None
        else:
            context_dir = params.resolve(build_config.context_dir) if build_config.context_dir else None
            if context_dir is not None:
                self._check_context(context_dir)
            try:
                content = self.dockerfile_builder.render(build_config, has_context=context_dir is not None)
            except ValueError as e:
                raise ArchiveError(f"{image_name}: {e}") from e

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive_path, build_config.compression.tar_mode) as tar:
                if content is None:
                    self._add_dockerfile_context(tar, dockerfile, context_dir, exclude)
                else:
                    self._add_generated_context(tar, content, context_dir, exclude)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError(f"Cannot create build archive {archive_path}: {e}") from e

        logger.debug("Created build archive %s", archive_path)
        return archive_path

    def archive_path(self, image_name: str, build_config: BuildConfiguration,
                     params: BuildParameters) -> Path:
        """Location of the archive for an image: <output>/<image>/tmp/docker-build.tar[.gz|.bz2]."""
        work_dir = params.resolve(params.output_dir) / ImageName.parse(image_name).sanitized_name
        return work_dir / "tmp" / (self.ARCHIVE_NAME + build_config.compression.file_suffix)

    @staticmethod
    def _check_context(context_dir: Path) -> None:
        if not context_dir.is_dir():
            raise ArchiveError(f"Build context directory {context_dir} does not exist")

    def _add_dockerfile_context(self, tar: tarfile.TarFile, dockerfile: Path,
                                context_dir: Path, exclude: Path) -> None:
        keep = {dockerfile.name, DOCKERIGNORE}
        replace = None
        if dockerfile.resolve() != (context_dir / dockerfile.name).resolve():
            replace = dockerfile.name
        added = self._add_directory(tar, context_dir, exclude, keep=keep, skip={replace} if replace else set())
        if replace:
            tar.add(str(dockerfile), arcname=dockerfile.name, recursive=False)
            added += 1
        logger.debug("Added %d files from %s", added, context_dir)

    def _add_generated_context(self, tar: tarfile.TarFile, content: str,
                               context_dir: Optional[Path], exclude: Path) -> None:
        if context_dir is not None:
            self._add_directory(tar, context_dir, exclude, keep={DOCKERIGNORE}, skip={"Dockerfile"})
        data = content.encode("utf-8")
        info = tarfile.TarInfo("Dockerfile")
        info.size = len(data)
        info.mtime = int(time.time())
        info.mode = 0o644
        tar.addfile(info, io.BytesIO(data))

    def _add_directory(self, tar: tarfile.TarFile, context_dir: Path, exclude: Path,
                       keep: Set[str], skip: Set[str]) -> int:
        """
        Adds every file below ``context_dir`` not excluded by .dockerignore.

        Files named in ``keep`` are always added when they sit at the context
        root, files named in ``skip`` never are. The output directory is
        left out so archives do not end up inside themselves.
        """
        included = IgnoreRules.load(context_dir).included_paths(context_dir, keep)
        added = 0
        for relative in sorted(included):
            path = context_dir / relative
            if path.is_dir() or relative in skip:
                continue
            resolved = path.resolve()
            if resolved == exclude or exclude in resolved.parents:
                continue
            tar.add(str(path), arcname=relative, recursive=False)
            added += 1
        return added
