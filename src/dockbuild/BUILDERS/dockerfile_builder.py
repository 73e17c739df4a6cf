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
Generates a Dockerfile for images configured without one.
"""
import json
from jinja2 import Environment
from ..MODELS.build_config import BuildConfiguration

DOCKERFILE_TEMPLATE = """\
FROM {{ from_image }}
{% if maintainer %}LABEL maintainer={{ maintainer | quote }}
{% endif %}{% for k, v in labels.items() %}LABEL {{ k }}={{ v | quote }}
{% endfor %}{% for k, v in env.items() %}ENV {{ k }}={{ v | quote }}
{% endfor %}{% for port in ports %}EXPOSE {{ port }}
{% endfor %}{% if workdir %}WORKDIR {{ workdir }}
{% endif %}{% if has_context %}COPY . {{ workdir or '/' }}
{% endif %}{% for command in run %}RUN {{ command }}
{% endfor %}{% if entrypoint %}ENTRYPOINT {{ entrypoint }}
{% endif %}{% if cmd %}CMD {{ cmd }}
{% endif %}"""


class DockerfileBuilder:
    """
    Renders the Dockerfile for a build configuration that names a base image
    and instructions instead of a Dockerfile.
    """

    def __init__(self):
        environment = Environment(autoescape=False)
        environment.filters["quote"] = json.dumps
        self.template = environment.from_string(DOCKERFILE_TEMPLATE)

    def render(self, build_config: BuildConfiguration, has_context: bool = False) -> str:
        """
        Renders the Dockerfile content.

        :param build_config: Configuration providing base image and instructions.
        :param has_context: Whether context files are shipped next to the
                            Dockerfile and should be copied into the image.
        :return: The Dockerfile as a string.
        :raises ValueError: If no base image is configured.
        """
        if not build_config.from_image:
            raise ValueError("No base image given: set 'from' or provide a Dockerfile")

        return self.template.render(
            from_image=build_config.from_image,
            maintainer=build_config.maintainer,
            labels=build_config.labels,
            env=build_config.env,
            ports=build_config.ports,
            workdir=build_config.workdir,
            has_context=has_context,
            run=build_config.run,
            # exec form
            entrypoint=json.dumps(build_config.entrypoint) if build_config.entrypoint else "",
            cmd=json.dumps(build_config.cmd) if build_config.cmd else "",
        )
