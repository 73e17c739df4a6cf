"""
Build argument handling: merging caller arguments over the ones stored in an
image configuration, and parsing KEY=VALUE arguments from the command line.
"""
import os
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from ..exceptions import ConfigurationError


def merge_build_args(caller_args: Optional[Mapping[str, str]],
                     configured_args: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    """
    Produces the effective build arguments for one build.

    Caller arguments win on key collisions; configuration arguments only fill
    in keys the caller did not set. Neither input is modified and the result
    is a read-only mapping of its own.

    :param caller_args: Arguments given by the driver (command line, environment).
    :param configured_args: Arguments embedded in the build configuration.
    :return: The merged, read-only mapping.
    """
    merged: Dict[str, str] = dict(caller_args or {})
    for key, value in (configured_args or {}).items():
        merged.setdefault(key, value)
    return MappingProxyType(merged)


def parse_build_arg(text: str, environ: Optional[Mapping[str, str]] = None) -> Tuple[str, str]:
    """
    Parses a single ``KEY=VALUE`` build argument.

    A bare ``KEY`` takes its value from the environment, the way
    ``docker build --build-arg KEY`` does.
    """
    environ = os.environ if environ is None else environ
    if "=" in text:
        key, value = text.split("=", 1)
    else:
        key, value = text, environ.get(text.strip(), "")
    key = key.strip()
    if not key:
        raise ConfigurationError(f"Invalid build argument '{text}': missing name")
    return key, value
