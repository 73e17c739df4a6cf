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
Builds a single image and removes the image version it replaced.
"""
import logging
import os
from typing import Mapping, Optional

from .build_args import merge_build_args
from ..ACCESS.engine import EngineClient
from ..ACCESS.query_service import QueryService
from ..ARCHIVE.archive_service import ArchiveService
from ..MODELS.build_config import (
    BuildConfiguration,
    BuildInvocation,
    BuildParameters,
    CleanupMode,
    ImageConfiguration,
)
from ..REGISTRY.image_name import validate
from ..exceptions import ConfigurationError, EngineAccessError

logger = logging.getLogger(__name__)


class BuildService:
    """
    Coordinates one image build: validates the name, remembers the current
    image id, packs the build context, runs the engine build and finally
    removes the superseded image according to the cleanup mode.
    """

    def __init__(self,
                 docker: EngineClient,
                 query_service: QueryService,
                 archive_service: ArchiveService,
                 log: Optional[logging.Logger] = None):
        """
        Initializes the build service.

        :param docker: Engine client used for building and removing images.
        :param query_service: Looks up image ids.
        :param archive_service: Creates build context archives.
        :param log: Logger receiving the build and cleanup messages.
        """
        self.docker = docker
        self.query_service = query_service
        self.archive_service = archive_service
        self.log = log or logger

    def build_image(self,
                    image_config: ImageConfiguration,
                    params: BuildParameters,
                    no_cache: bool,
                    build_args: Optional[Mapping[str, str]]) -> Optional[str]:
        """
        Builds an image.

        Nothing is removed if the build fails. After a successful build the
        previous image of the same name is removed when the cleanup mode asks
        for it and the id actually changed.

        :param image_config: The image to build; must have a build section.
        :param params: Driver parameters for the archive service.
        :param no_cache: Passed to the engine as is.
        :param build_args: Caller build arguments, overriding the configured ones.
        :return: Id of the freshly built image.
        :raises InvalidImageNameError: Before anything else, for a malformed name.
        :raises DriverError: If archive creation or an id lookup fails.
        :raises EngineAccessError: If the build, or a strict cleanup, fails.
        """
        image_name = image_config.name
        validate(image_name)

        build_config = image_config.build
        if build_config is None:
            raise ConfigurationError(f"{image_config.get_description()}: no build configuration")

        cleanup_mode = build_config.cleanup_mode()
        old_image_id = None
        if cleanup_mode.is_remove():
            old_image_id = self.query_service.get_image_id(image_name)

        archive_path = self.archive_service.create_archive(image_name, build_config, params)

        invocation = BuildInvocation(
            image_name=image_name,
            archive_path=archive_path,
            dockerfile_name=self._dockerfile_name(build_config),
            force_remove_intermediate=cleanup_mode.is_remove(),
            no_cache=no_cache,
            build_args=merge_build_args(build_args, build_config.args),
        )
        new_image_id = self._do_build_image(invocation)
        self.log.info(f"{image_config.get_description()}: Built image {new_image_id}")

        if old_image_id is not None and old_image_id != new_image_id:
            self._remove_old_image(image_config, old_image_id, cleanup_mode)

        return new_image_id

    @staticmethod
    def _dockerfile_name(build_config: BuildConfiguration) -> Optional[str]:
        # Only the file name; the archive carries the Dockerfile at its root
        if build_config.dockerfile_mode:
            return os.path.basename(build_config.dockerfile_path)
        return None

    def _do_build_image(self, invocation: BuildInvocation) -> Optional[str]:
        self.docker.build_image(
            image_name=invocation.image_name,
            archive=invocation.archive_path,
            dockerfile_name=invocation.dockerfile_name,
            force_remove_intermediate=invocation.force_remove_intermediate,
            no_cache=invocation.no_cache,
            build_args=invocation.build_args,
        )
        return self.query_service.get_image_id(invocation.image_name)

    def _remove_old_image(self, image_config: ImageConfiguration, old_image_id: str,
                          cleanup_mode: CleanupMode) -> None:
        description = image_config.get_description()
        try:
            if self.docker.remove_image(old_image_id, force=True):
                self.log.info(f"{description}: Removed image {old_image_id}")
            else:
                self.log.debug(f"{description}: Old image {old_image_id} was already gone")
        except EngineAccessError as exp:
            if not cleanup_mode.tolerates_failure():
                raise
            message = f"{description}: {exp.message} (old image)"
            if exp.cause is not None:
                message += f" [{exp.cause}]"
            self.log.warning(message)
