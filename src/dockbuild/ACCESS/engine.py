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
Access to the container engine.
Defines the operations the build coordinator needs and implements them on
top of the Docker SDK's low-level API client.
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Union

import docker
from docker.errors import DockerException, ImageNotFound

from ..exceptions import EngineAccessError

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 12


class EngineClient(Protocol):
    """
    Operations the build coordinator performs on the container engine.

    Engine failures must be raised as EngineAccessError, chained to the
    underlying error, so the coordinator can apply the cleanup tolerance
    rules and report the cause.
    """

    def build_image(self,
                    image_name: str,
                    archive: Path,
                    dockerfile_name: Optional[str],
                    force_remove_intermediate: bool,
                    no_cache: bool,
                    build_args: Mapping[str, str]) -> None:
        ...

    def remove_image(self, image_id: str, force: bool = True) -> bool:
        """Returns False if the image was already gone."""
        ...

    def get_image_id(self, name: str) -> Optional[str]:
        ...


def short_image_id(image_id: str) -> str:
    """Turns 'sha256:<hex>' into the 12 character id `docker images` shows."""
    if ":" in image_id:
        image_id = image_id.split(":", 1)[1]
    return image_id[:SHORT_ID_LENGTH]


class DockerEngineClient:
    """
    EngineClient backed by ``docker.APIClient``.
    Every SDK error is re-raised as EngineAccessError with the SDK exception
    chained as its cause.
    """

    def __init__(self, api: Any):
        """
        Args:
            api: A ``docker.APIClient`` (or anything with the same methods).
        """
        self.api = api

    @classmethod
    def from_env(cls, timeout: Optional[int] = None) -> "DockerEngineClient":
        """
        Connects using DOCKER_HOST, DOCKER_TLS_VERIFY and DOCKER_CERT_PATH.

        Args:
            timeout: Request timeout in seconds; the SDK default when None.
        """
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            client = docker.from_env(**kwargs)
        except DockerException as e:
            raise EngineAccessError("Unable to connect to the Docker daemon") from e
        return cls(client.api)

    def build_image(self,
                    image_name: str,
                    archive: Union[str, Path],
                    dockerfile_name: Optional[str],
                    force_remove_intermediate: bool,
                    no_cache: bool,
                    build_args: Mapping[str, str]) -> None:
        """
        Sends a build context archive to the engine and waits for the build.

        Args:
            image_name: Tag given to the built image.
            archive: Path of the tar archive holding the build context.
            dockerfile_name: Name of the Dockerfile inside the archive, or None
                for the engine's default.
            force_remove_intermediate: Always remove intermediate containers.
            no_cache: Do not use the engine's layer cache.
            build_args: Build-time variables.

        Raises:
            EngineAccessError: If the request fails or the build reports an error.
        """
        archive = Path(archive)
        try:
            with open(archive, "rb") as context:
                output = self.api.build(
                    fileobj=context,
                    custom_context=True,
                    encoding=self._encoding_for(archive),
                    tag=image_name,
                    dockerfile=dockerfile_name,
                    rm=True,
                    forcerm=force_remove_intermediate,
                    nocache=no_cache,
                    buildargs=dict(build_args),
                    decode=True,
                )
                for chunk in output:
                    if "error" in chunk:
                        raise EngineAccessError(
                            f"Unable to build image [{image_name}]: {chunk['error'].strip()}"
                        )
                    if "stream" in chunk:
                        line = chunk["stream"].rstrip()
                        if line:
                            logger.debug(line)
        except DockerException as e:
            raise EngineAccessError(f"Unable to build image [{image_name}]") from e
        except OSError as e:
            raise EngineAccessError(f"Unable to read build archive {archive}") from e

    def remove_image(self, image_id: str, force: bool = True) -> bool:
        """
        Removes an image by id.

        Returns:
            True if the image was removed, False if it did not exist.
        """
        try:
            self.api.remove_image(image_id, force=force)
        except ImageNotFound:
            return False
        except DockerException as e:
            raise EngineAccessError(f"Unable to remove image [{image_id}]") from e
        return True

    def get_image_id(self, name: str) -> Optional[str]:
        """
        Looks up the current id of an image reference.

        Returns:
            The short image id, or None if there is no such image.
        """
        try:
            details = self.api.inspect_image(name)
        except ImageNotFound:
            return None
        except DockerException as e:
            raise EngineAccessError(f"Unable to inspect image [{name}]") from e
        return short_image_id(details["Id"])

    @staticmethod
    def _encoding_for(archive: Path) -> Optional[str]:
        if archive.name.endswith(".tar.gz"):
            return "gzip"
        if archive.name.endswith(".tar.bz2"):
            return "bzip2"
        return None
