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
Error types raised while configuring and building images.
"""
from typing import Optional


class DockBuildError(Exception):
    """Base class for all dockbuild errors."""


class ValidationError(DockBuildError, ValueError):
    """Input rejected before any collaborator was touched."""


class InvalidImageNameError(ValidationError):
    """An image reference does not follow the engine's reference grammar."""

    def __init__(self, reference: str, problems: Optional[list] = None):
        self.reference = reference
        self.problems = list(problems or [])
        detail = ", ".join(self.problems) if self.problems else "malformed reference"
        super().__init__(f"Given Docker name '{reference}' is invalid: {detail}")


class ConfigurationError(DockBuildError, ValueError):
    """The image configuration or a command line option is unusable."""


class DriverError(DockBuildError):
    """A driver-side collaborator (archive or query) failed."""


class ArchiveError(DriverError):
    """The build context archive could not be created."""


class QueryError(DriverError):
    """Looking up an image id failed."""


class EngineAccessError(DockBuildError):
    """
    The container engine rejected or failed a request.

    The underlying SDK or transport error, when there is one, is chained as
    ``__cause__`` and exposed through :attr:`cause`.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__

    def __str__(self) -> str:
        return self.message
