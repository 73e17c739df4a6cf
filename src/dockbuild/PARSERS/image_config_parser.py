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
Parser for image configuration YAML files.
"""
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..MODELS.build_config import ImageConfiguration
from ..UTILS.string_interpolation import interpolate
from ..exceptions import ConfigurationError


class ImageConfigParser:
    """
    Parser for dockbuild.yml files.

    Example::

        images:
          - name: registry.example.com/team/app:${VERSION:-latest}
            alias: app
            build:
              dockerfile: docker/Dockerfile
              context_dir: .
              cleanup: try
              args:
                PYTHON_VERSION: "3.12"
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        Initializes the parser with an optional variable context for interpolation.

        :param context: Variables for ${VAR} substitution; the process environment by default.
        """
        self.context = dict(os.environ) if context is None else dict(context)

    def parse(self, config_path: str) -> List[ImageConfiguration]:
        """
        Parses an image configuration file from a path.

        :param config_path: Path to the configuration file.
        :return: The configured images, in file order.
        """
        try:
            with open(config_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[ImageConfiguration]:
        """
        Parses image configurations from a string.

        :param content: YAML content.
        :return: The configured images, in file order.
        :raises ConfigurationError: On undefined variables, bad YAML or invalid entries.
        """
        try:
            content = interpolate(content, self.context)
        except KeyError as e:
            raise ConfigurationError(f"Variable {e.args[0]} is not set and has no default") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if not data:
            return []
        if not isinstance(data, dict) or not isinstance(data.get('images', []), list):
            raise ConfigurationError("Expected a mapping with an 'images' list")

        images = []
        for index, spec in enumerate(data.get('images') or []):
            images.append(self._parse_image(index, spec))
        return images

    def _parse_image(self, index: int, spec: Any) -> ImageConfiguration:
        """
        Parses a single image entry.

        :param index: Position of the entry, for error messages.
        :param spec: The entry as loaded from YAML.
        """
        if isinstance(spec, str):
            spec = {'name': spec}
        if not isinstance(spec, dict):
            raise ConfigurationError(f"Image #{index + 1}: expected a mapping")
        try:
            return ImageConfiguration(**self._normalize(spec))
        except PydanticValidationError as e:
            label = spec.get('name') or f"#{index + 1}"
            raise ConfigurationError(f"Image {label}: {e}") from e
        except TypeError as e:
            raise ConfigurationError(f"Image #{index + 1}: {e}") from e

    @staticmethod
    def _normalize(spec: Dict[str, Any]) -> Dict[str, Any]:
        spec = dict(spec)
        if spec.get('name') is not None:
            spec['name'] = str(spec['name'])
        # 'build: Dockerfile.dev' is shorthand for a dockerfile path
        if isinstance(spec.get('build'), str):
            spec['build'] = {'dockerfile': spec['build']}
        return spec
