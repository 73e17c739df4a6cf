"""
Models describing images to build, how to build them and the cleanup policy
applied once a rebuilt image replaces an older one.
"""
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import ConfigurationError


class CleanupMode(str, Enum):
    """
    What happens to the image a successful rebuild superseded.
    """
    NONE = "none"
    TRY_TO_REMOVE = "try"
    REMOVE = "remove"

    def is_remove(self) -> bool:
        """Whether the old image is removed at all."""
        return self is not CleanupMode.NONE

    def tolerates_failure(self) -> bool:
        """Whether a failed removal is only reported instead of raised."""
        return self is CleanupMode.TRY_TO_REMOVE

    @classmethod
    def parse(cls, value: Any) -> "CleanupMode":
        """
        Parses a cleanup mode from configuration or command line input.

        :param value: A CleanupMode, a boolean, one of the strings
                      none/try/remove/true/false, or None for the default.
        :return: The matching CleanupMode.
        :raises ConfigurationError: If the value names no known mode.
        """
        if value is None:
            return cls.REMOVE
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.REMOVE if value else cls.NONE
        text = str(value).strip().lower()
        if text == "try":
            return cls.TRY_TO_REMOVE
        if text in ("none", "false"):
            return cls.NONE
        if text in ("remove", "true"):
            return cls.REMOVE
        raise ConfigurationError(
            f"Invalid clean up mode {value} (should be one of: none, try, remove)"
        )


class ArchiveCompression(str, Enum):
    """
    Compression applied to the build context archive.
    """
    NONE = "none"
    GZIP = "gzip"
    BZIP2 = "bzip2"

    @property
    def file_suffix(self) -> str:
        return {"none": ".tar", "gzip": ".tar.gz", "bzip2": ".tar.bz2"}[self.value]

    @property
    def tar_mode(self) -> str:
        return {"none": "w", "gzip": "w:gz", "bzip2": "w:bz2"}[self.value]


def _stringify_mapping(value: Any) -> Any:
    # YAML hands over numbers and booleans; the engine only takes strings.
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return value


def _to_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return value


class BuildConfiguration(BaseModel):
    """
    How a single image is built.

    Either a Dockerfile is supplied (``dockerfile`` or ``dockerfile_dir``),
    or one is generated from ``from`` and the instruction fields below.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    cleanup: CleanupMode = CleanupMode.REMOVE
    args: Optional[Dict[str, str]] = None

    # Dockerfile mode
    dockerfile: Optional[str] = None
    dockerfile_dir: Optional[str] = None
    context_dir: Optional[str] = None

    # Generated Dockerfile
    from_image: Optional[str] = Field(default=None, alias="from")
    maintainer: Optional[str] = None
    labels: Dict[str, str] = {}
    env: Dict[str, str] = {}
    ports: List[str] = []
    run: List[str] = []
    workdir: Optional[str] = None
    cmd: List[str] = []
    entrypoint: List[str] = []

    compression: ArchiveCompression = ArchiveCompression.NONE
    nocache: bool = False
    skip: bool = False

    @field_validator("cleanup", mode="before")
    @classmethod
    def _parse_cleanup(cls, value: Any) -> CleanupMode:
        return CleanupMode.parse(value)

    @field_validator("args", "labels", "env", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> Any:
        return _stringify_mapping(value)

    @field_validator("ports", "run", "cmd", "entrypoint", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return _to_list(value)

    def cleanup_mode(self) -> CleanupMode:
        return self.cleanup

    @property
    def dockerfile_mode(self) -> bool:
        """True when a Dockerfile is handed to the engine instead of generated."""
        return self.dockerfile is not None or self.dockerfile_dir is not None

    @property
    def dockerfile_path(self) -> Optional[str]:
        """Path of the Dockerfile to use, as configured (possibly relative)."""
        if self.dockerfile is not None:
            return self.dockerfile
        if self.dockerfile_dir is not None:
            return os.path.join(self.dockerfile_dir, "Dockerfile")
        return None


class ImageConfiguration(BaseModel):
    """
    An image known to the build: its reference, labels for log output and
    an optional build section.
    """
    model_config = ConfigDict(extra="forbid")

    name: str
    alias: Optional[str] = None
    description: Optional[str] = None
    build: Optional[BuildConfiguration] = None

    def get_description(self) -> str:
        """Label used as the prefix of every log line about this image."""
        if self.description:
            return self.description
        label = f"[{self.name}]"
        if self.alias:
            label += f' "{self.alias}"'
        return label

    def matches(self, selector: str) -> bool:
        return selector in (self.name, self.alias)


class BuildParameters(BaseModel):
    """
    Parameters the driver hands through to the archive service.
    """
    base_dir: str = "."
    output_dir: str = "target/docker"

    def resolve(self, path: str) -> Path:
        """Resolves a configured path against the base directory."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.base_dir) / candidate


@dataclass(frozen=True)
class BuildInvocation:
    """Everything the engine needs for one build request."""

    image_name: str
    archive_path: Path
    dockerfile_name: Optional[str]
    force_remove_intermediate: bool
    no_cache: bool
    build_args: Mapping[str, str]
