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
Unit tests for the Docker engine client and the query service.
"""
from types import MappingProxyType
from unittest.mock import Mock

import pytest
from docker.errors import APIError, ImageNotFound

from dockbuild.ACCESS.engine import DockerEngineClient, short_image_id
from dockbuild.ACCESS.query_service import QueryService
from dockbuild.exceptions import DriverError, EngineAccessError, QueryError

FULL_ID = "sha256:" + "0123456789ab" + "c" * 52


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "docker-build.tar"
    path.write_bytes(b"not really a tar")
    return path


@pytest.fixture
def api():
    return Mock()


class TestDockerEngineClient:
    """Tests for DockerEngineClient."""

    def test_build_passes_options(self, api, archive):
        api.build.return_value = iter([{"stream": "Step 1/1 : FROM busybox\n"}, {"stream": "\n"}])
        client = DockerEngineClient(api)

        client.build_image("app:1", archive, "Dockerfile.prod", True, False,
                           MappingProxyType({"A": "1"}))

        kwargs = api.build.call_args.kwargs
        assert kwargs["tag"] == "app:1"
        assert kwargs["dockerfile"] == "Dockerfile.prod"
        assert kwargs["forcerm"] is True
        assert kwargs["nocache"] is False
        assert kwargs["buildargs"] == {"A": "1"}
        assert type(kwargs["buildargs"]) is dict
        assert kwargs["custom_context"] is True
        assert kwargs["encoding"] is None
        assert kwargs["decode"] is True

    def test_build_gzip_encoding(self, api, tmp_path):
        path = tmp_path / "docker-build.tar.gz"
        path.write_bytes(b"")
        api.build.return_value = iter([])

        DockerEngineClient(api).build_image("app:1", path, None, False, True, {})

        assert api.build.call_args.kwargs["encoding"] == "gzip"
        assert api.build.call_args.kwargs["dockerfile"] is None

    def test_build_error_in_stream(self, api, archive):
        api.build.return_value = iter([{"stream": "Step 1/2\n"}, {"error": "RUN failed\n"}])

        with pytest.raises(EngineAccessError, match=r"Unable to build image \[app:1\]: RUN failed"):
            DockerEngineClient(api).build_image("app:1", archive, None, True, False, {})

    def test_build_sdk_error_is_chained(self, api, archive):
        sdk_error = APIError("500 Server Error")
        api.build.side_effect = sdk_error

        with pytest.raises(EngineAccessError) as excinfo:
            DockerEngineClient(api).build_image("app:1", archive, None, True, False, {})

        assert excinfo.value.cause is sdk_error
        assert str(excinfo.value) == "Unable to build image [app:1]"

    def test_build_missing_archive(self, api, tmp_path):
        with pytest.raises(EngineAccessError):
            DockerEngineClient(api).build_image("app:1", tmp_path / "missing.tar", None, True, False, {})
        api.build.assert_not_called()

    def test_remove_image(self, api):
        assert DockerEngineClient(api).remove_image("abc", force=True) is True
        api.remove_image.assert_called_once_with("abc", force=True)

    def test_remove_missing_image(self, api):
        api.remove_image.side_effect = ImageNotFound("gone")
        assert DockerEngineClient(api).remove_image("abc") is False

    def test_remove_conflict_keeps_cause(self, api):
        conflict = APIError("409 Conflict: image is being used by running container X")
        api.remove_image.side_effect = conflict

        with pytest.raises(EngineAccessError) as excinfo:
            DockerEngineClient(api).remove_image("abc")

        assert excinfo.value.message == "Unable to remove image [abc]"
        assert excinfo.value.cause is conflict

    def test_get_image_id(self, api):
        api.inspect_image.return_value = {"Id": FULL_ID}
        assert DockerEngineClient(api).get_image_id("app:1") == "0123456789ab"
        api.inspect_image.assert_called_once_with("app:1")

    def test_get_image_id_missing(self, api):
        api.inspect_image.side_effect = ImageNotFound("no such image")
        assert DockerEngineClient(api).get_image_id("app:1") is None

    def test_short_image_id(self):
        assert short_image_id(FULL_ID) == "0123456789ab"
        assert short_image_id("0123456789abcdef") == "0123456789ab"


class TestQueryService:
    """Tests for QueryService."""

    def test_delegates(self):
        engine = Mock()
        engine.get_image_id.return_value = "abc"
        assert QueryService(engine).get_image_id("app:1") == "abc"

    def test_absent_image(self):
        engine = Mock()
        engine.get_image_id.return_value = None
        assert QueryService(engine).get_image_id("app:1") is None

    def test_engine_failure_becomes_driver_error(self):
        engine = Mock()
        failure = EngineAccessError("Unable to inspect image [app:1]")
        engine.get_image_id.side_effect = failure

        with pytest.raises(QueryError) as excinfo:
            QueryService(engine).get_image_id("app:1")

        assert isinstance(excinfo.value, DriverError)
        assert excinfo.value.__cause__ is failure
