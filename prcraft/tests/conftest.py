import os
import sys
import textwrap

import pytest

# Add the project root to sys.path so that prcraft is importable
# This is needed because of the flat layout structure
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from prcraft.parser.hdl.netlist_parser import VerilogNetlistParser  # noqa: E402
from prcraft.parser.yaml.prc_yaml_parser import PrcYamlParser  # noqa: E402


@pytest.fixture
def load_yaml():
    """Parse an indented YAML snippet into a controller document."""

    def _load(text):
        return PrcYamlParser().parse_string(textwrap.dedent(text))

    return _load


@pytest.fixture(scope="session")
def netlist_parser():
    return VerilogNetlistParser()
