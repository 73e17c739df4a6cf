"""
Variable substitution for configuration files.
"""
import re
from typing import Mapping

# $$ | ${VAR} | ${VAR:-default} | ${VAR:+alternative}
_PATTERN = re.compile(r'\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([-+])([^}]*))?\}')


def interpolate(template: str, context: Mapping[str, str]) -> str:
    """
    Substitutes variables from ``context`` into ``template``.

    ``${VAR:-default}`` falls back to ``default`` when VAR is unset or empty,
    ``${VAR:+alt}`` yields ``alt`` only when VAR is set and non-empty, and
    ``$$`` is a literal dollar sign.

    :raises KeyError: If a plain ``${VAR}`` names an unset variable.
    """
    def replace(match):
        if match.group(0) == "$$":
            return "$"
        name, modifier, alternative = match.groups()
        value = context.get(name)
        if modifier == "-":
            return value if value else alternative
        if modifier == "+":
            return alternative if value else ""
        if value is None:
            raise KeyError(name)
        return value

    return _PATTERN.sub(replace, template)
