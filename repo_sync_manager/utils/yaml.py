"""Contains utility functions for working with YAML files."""

from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

yaml = YAML(typ="safe")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Loads a YAML file and returns a dictionary (empty for an empty document)."""
    with open(path, encoding="utf-8") as f:
        data = yaml.load(f)
    return data or {}


def dump_yaml_to_string(data: dict[str, Any]) -> str:
    """Render a dictionary as block-style YAML."""
    dumper = YAML()
    dumper.default_flow_style = False
    dumper.indent(mapping=2, sequence=4, offset=2)  # type: ignore[attr-defined]
    dumper.width = 4096
    stream = StringIO()
    dumper.dump(data, stream)
    return stream.getvalue()
