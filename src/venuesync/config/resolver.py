"""
Placeholder substitution for loaded configuration.

``${NAME}`` is replaced from the process environment (left untouched when
unset) and ``{env}`` by the active environment name, at any depth.
"""

import os
import re
from typing import Any

_ENV_VAR = re.compile(r"\${([^}]+)}")


def _substitute(text: str, env: str) -> str:
    expanded = _ENV_VAR.sub(lambda m: os.environ.get(m.group(1), m.group(0)), text)
    return expanded.replace("{env}", env)


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """Return a copy of ``config_data`` with every string value expanded."""

    def walk(node: Any) -> Any:
        if isinstance(node, str):
            return _substitute(node, env)
        if isinstance(node, dict):
            return {key: walk(item) for key, item in node.items()}
        if isinstance(node, list):
            return [walk(item) for item in node]
        return node

    return walk(config_data)
