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
Image name parsing and validation.
Checks references like 'nginx:latest' or 'registry:5000/team/app@sha256:...'
against the same grammar the Docker engine applies.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import InvalidImageNameError

_DOMAIN_LABEL = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
REGISTRY_REGEXP = re.compile(rf"^{_DOMAIN_LABEL}(?:\.{_DOMAIN_LABEL})*(?::[0-9]+)?$")
NAME_COMPONENT_REGEXP = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
TAG_REGEXP = re.compile(r"^[\w][\w.-]{0,127}$")
DIGEST_REGEXP = re.compile(
    r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$"
)
REPOSITORY_MAX_LENGTH = 255


@dataclass
class ImageName:
    """
    Parsed and validated Docker image name.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - myuser/myimage:v1 -> docker.io/myuser/myimage:v1
        - localhost:5000/app -> localhost:5000/app:latest
        - gcr.io/project/image@sha256:<hex> -> gcr.io/project/image@sha256:<hex>
    """

    registry: Optional[str]
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageName":
        """
        Parse and validate an image reference.

        Args:
            reference: Image reference string (e.g. 'nginx:latest', 'host:5000/app:v1')

        Returns:
            Parsed ImageName object.

        Raises:
            InvalidImageNameError: If any part of the reference is malformed.
        """
        if not reference:
            raise InvalidImageNameError(reference or "", ["empty image name"])

        remainder = reference
        digest = None
        if "@" in remainder:
            remainder, digest = remainder.split("@", 1)

        # A colon after the last slash separates the tag; before it, a port
        tag = None
        last_slash = remainder.rfind("/")
        last_colon = remainder.rfind(":")
        if last_colon > last_slash:
            tag = remainder[last_colon + 1:]
            remainder = remainder[:last_colon]

        registry = None
        parts = remainder.split("/")
        if len(parts) > 1 and cls._looks_like_registry(parts[0]):
            registry = parts[0]
            parts = parts[1:]
        repository = "/".join(parts)

        image = cls(registry=registry, repository=repository, tag=tag, digest=digest)
        problems = image._problems()
        if problems:
            raise InvalidImageNameError(reference, problems)
        return image

    @staticmethod
    def _looks_like_registry(component: str) -> bool:
        return "." in component or ":" in component or component == "localhost"

    def _problems(self) -> List[str]:
        problems = []
        if self.registry is not None and not REGISTRY_REGEXP.match(self.registry):
            problems.append(f"registry part '{self.registry}' doesn't match {REGISTRY_REGEXP.pattern}")
        if not self.repository:
            problems.append("repository part is empty")
        else:
            for component in self.repository.split("/"):
                if not NAME_COMPONENT_REGEXP.match(component):
                    problems.append(
                        f"image part '{component}' doesn't match {NAME_COMPONENT_REGEXP.pattern}"
                    )
            if len(self.repository) > REPOSITORY_MAX_LENGTH:
                problems.append(
                    f"repository name is longer than {REPOSITORY_MAX_LENGTH} characters"
                )
        if self.tag is not None and not TAG_REGEXP.match(self.tag):
            problems.append(f"tag part '{self.tag}' doesn't match {TAG_REGEXP.pattern}")
        if self.digest is not None and not DIGEST_REGEXP.match(self.digest):
            problems.append(f"digest part '{self.digest}' doesn't match {DIGEST_REGEXP.pattern}")
        return problems

    @property
    def name_without_tag(self) -> str:
        """Repository with registry (if given), without tag or digest."""
        if self.registry:
            return f"{self.registry}/{self.repository}"
        return self.repository

    @property
    def full_name(self) -> str:
        """Get full image name with registry and tag filled in with defaults."""
        registry = self.registry or self.DEFAULT_REGISTRY
        repository = self.repository
        if registry == self.DEFAULT_REGISTRY and "/" not in repository:
            repository = f"library/{repository}"
        name = f"{registry}/{repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        return f"{name}:{self.tag or self.DEFAULT_TAG}"

    @property
    def short_name(self) -> str:
        """Get image name as written, with the default tag filled in."""
        if self.digest:
            return f"{self.name_without_tag}@{self.digest}"
        return f"{self.name_without_tag}:{self.tag or self.DEFAULT_TAG}"

    @property
    def sanitized_name(self) -> str:
        """Directory-safe variant of the name, used for per-image work dirs."""
        return re.sub(r"[^a-zA-Z0-9_.-]", "-", self.short_name.replace("/", "-"))

    def __str__(self) -> str:
        return self.short_name

    def __repr__(self) -> str:
        return f"ImageName({self.full_name})"


def validate(reference: str) -> None:
    """
    Checks an image reference, raising InvalidImageNameError when it is malformed.
    """
    ImageName.parse(reference)
