"""
Read-only queries against the container engine.
"""
from typing import Optional

from .engine import EngineClient
from ..exceptions import EngineAccessError, QueryError


class QueryService:
    """
    Answers questions about images without changing anything.
    """
    def __init__(self, docker: EngineClient):
        """
        :param docker: Client used to talk to the engine.
        """
        self.docker = docker

    def get_image_id(self, name: str) -> Optional[str]:
        """
        Returns the current id of the image called ``name``, or None if no such
        image exists.

        :raises QueryError: If the engine could not be asked.
        """
        try:
            return self.docker.get_image_id(name)
        except EngineAccessError as e:
            raise QueryError(f"Cannot look up image id of {name}: {e}") from e
