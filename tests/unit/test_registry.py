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
Unit tests for image name parsing and validation.
"""
import time

import pytest
from dockbuild.REGISTRY.image_name import ImageName, validate
from dockbuild.exceptions import InvalidImageNameError, ValidationError

DIGEST = "sha256:" + "a" * 64


class TestImageName:
    """Tests for ImageName parsing."""

    def test_parse_simple_name(self):
        """Test parsing a simple image name."""
        name = ImageName.parse("nginx")
        assert name.registry is None
        assert name.repository == "nginx"
        assert name.tag is None

    def test_parse_with_tag(self):
        """Test parsing image with tag."""
        name = ImageName.parse("nginx:1.21")
        assert name.repository == "nginx"
        assert name.tag == "1.21"

    def test_parse_user_image(self):
        """Test parsing user/image format."""
        name = ImageName.parse("myuser/myimage:v1")
        assert name.registry is None
        assert name.repository == "myuser/myimage"
        assert name.tag == "v1"

    def test_parse_full_reference(self):
        """Test parsing full registry reference."""
        name = ImageName.parse("gcr.io/project/image:latest")
        assert name.registry == "gcr.io"
        assert name.repository == "project/image"
        assert name.tag == "latest"

    def test_parse_with_digest(self):
        """Test parsing image with digest."""
        name = ImageName.parse(f"nginx@{DIGEST}")
        assert name.repository == "nginx"
        assert name.digest == DIGEST
        assert name.tag is None

    def test_parse_tag_and_digest(self):
        name = ImageName.parse(f"nginx:1.21@{DIGEST}")
        assert name.tag == "1.21"
        assert name.digest == DIGEST

    def test_parse_localhost_registry(self):
        """Test parsing localhost registry with port."""
        name = ImageName.parse("localhost:5000/myimage:v1")
        assert name.registry == "localhost:5000"
        assert name.repository == "myimage"
        assert name.tag == "v1"

    def test_registry_port_without_tag(self):
        name = ImageName.parse("registry.example.com:5000/team/app")
        assert name.registry == "registry.example.com:5000"
        assert name.repository == "team/app"
        assert name.tag is None

    def test_full_name(self):
        """Test full_name property."""
        assert ImageName.parse("nginx:1.21").full_name == "docker.io/library/nginx:1.21"
        assert ImageName.parse("myuser/app").full_name == "docker.io/myuser/app:latest"

    def test_short_name(self):
        """Test short_name property."""
        assert ImageName.parse("nginx").short_name == "nginx:latest"
        assert ImageName.parse("localhost:5000/app:v1").short_name == "localhost:5000/app:v1"

    def test_name_without_tag(self):
        assert ImageName.parse("gcr.io/project/image:1").name_without_tag == "gcr.io/project/image"

    def test_sanitized_name(self):
        assert ImageName.parse("localhost:5000/team/app:v1").sanitized_name == "localhost-5000-team-app-v1"

    def test_str_representation(self):
        """Test string representation."""
        assert str(ImageName.parse("nginx:1.21")) == "nginx:1.21"


class TestValidate:
    """Tests for the reference grammar."""

    @pytest.mark.parametrize("reference", [
        "app:1",
        "my-app_name.v2:1.0.0-rc1",
        "team/sub__group/app",
        "a" * 255,
        "registry-1.docker.io/library/busybox:latest",
        "127.0.0.1:5000/app",
        f"app@{DIGEST}",
        "app:" + "t" * 128,
    ])
    def test_valid_references(self, reference):
        validate(reference)

    @pytest.mark.parametrize("reference", [
        "",
        "App",
        "app:",
        "app:-tag",
        "app:" + "t" * 129,
        "app@sha256:abc",
        "-app",
        "app-",
        "team//app",
        "my app",
        "bad_registry.io:port/app",
        "a" * 256,
    ])
    def test_invalid_references(self, reference):
        with pytest.raises(InvalidImageNameError):
            validate(reference)

    def test_error_names_reference_and_part(self):
        with pytest.raises(InvalidImageNameError) as excinfo:
            validate("Team/app:1")
        message = str(excinfo.value)
        assert "'Team/app:1'" in message
        assert "'Team'" in message
        assert excinfo.value.reference == "Team/app:1"

    def test_error_is_a_value_error(self):
        """Callers catching ValueError keep working."""
        with pytest.raises(ValueError):
            validate("UPPER")
        assert issubclass(InvalidImageNameError, ValidationError)

    @pytest.mark.parametrize("reference", [
        "a" * 60 + "!",
        "team/" + "a" * 200 + "A",
        "a-" * 100 + "_",
    ])
    def test_invalid_long_component_fails_fast(self, reference):
        """A single bad character after a long component is rejected at once."""
        start = time.monotonic()
        with pytest.raises(InvalidImageNameError):
            validate(reference)
        assert time.monotonic() - start < 1.0

    def test_repeated_dashes_allowed(self):
        validate("my--app---name")
