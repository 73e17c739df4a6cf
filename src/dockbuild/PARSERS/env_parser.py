"""
Parsers for .env style build argument files.
"""
from typing import Dict

from dotenv import dotenv_values

from ..exceptions import ConfigurationError


class EnvParser:
    """
    Reads build arguments from .env files.
    """
    @staticmethod
    def parse(env_path: str) -> Dict[str, str]:
        """
        Parses an .env file from a path.

        Args:
            env_path (str): Path to the .env file.

        Returns:
            Dict[str, str]: Build arguments; keys declared without a value are dropped.
        """
        try:
            with open(env_path, 'r') as f:
                return EnvParser.parse_from_stream(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read build argument file {env_path}: {e}") from e

    @staticmethod
    def parse_from_stream(stream) -> Dict[str, str]:
        """
        Parses build arguments from an open text stream.
        Quoting, comments and ${VAR} expansion follow python-dotenv.
        """
        values = dotenv_values(stream=stream)
        return {key: value for key, value in values.items() if value is not None}
