"""
YAML loader for clock/reset controller documents.

Produces the generic node tree consumed by the controller parsers. Maps
keep declaration order; a repeated key keeps its first value and is
recorded on the map so the controller parsers can report it.
"""

from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .errors import ParseError

CONTROLLER_KEYS = ("clock", "reset")


class NodeMap(dict):
    """Mapping node that remembers keys repeated in the source document."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.duplicates: List[Any] = []


class _ControllerLoader(yaml.SafeLoader):
    """Safe loader building ``NodeMap`` mappings."""


def _construct_node_map(loader: _ControllerLoader, node: yaml.MappingNode) -> NodeMap:
    loader.flatten_mapping(node)
    mapping = NodeMap()
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        try:
            hash(key)
        except TypeError:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                "found unhashable key",
                key_node.start_mark,
            )
        value = loader.construct_object(value_node, deep=True)
        if key in mapping:
            mapping.duplicates.append(key)
            continue
        mapping[key] = value
    return mapping


_ControllerLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_node_map
)


class PrcYamlParser:
    """
    Loader for controller definition files.

    Handles:
    - YAML syntax errors with line numbers
    - Root element and controller key validation
    - Duplicate key bookkeeping for first-wins reporting
    """

    def parse_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a controller definition file.

        Args:
            file_path: Path to the YAML document

        Returns:
            Node tree with a ``clock`` and/or ``reset`` entry

        Raises:
            ParseError: If the file cannot be read or is not a controller document
        """
        file_path = Path(file_path).resolve()
        if not file_path.exists():
            raise ParseError(f"File not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}", file_path)

        return self.parse_string(text, file_path)

    def parse_string(self, text: str, file_path: Union[str, Path, None] = None) -> Dict[str, Any]:
        """Load a controller document from text."""
        try:
            data = yaml.load(text, Loader=_ControllerLoader)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            line_num = mark.line + 1 if mark else None
            raise ParseError(f"YAML syntax error: {e}", file_path, line_num)

        if not isinstance(data, dict):
            raise ParseError("Root element must be a YAML object/dictionary", file_path)

        if not any(key in data for key in CONTROLLER_KEYS):
            raise ParseError(
                "Document declares no controller: expected a 'clock' or 'reset' key",
                file_path,
            )
        return data
