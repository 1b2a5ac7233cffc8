"""
Base controller compiler.

Both controllers follow the same capability set: ``parse`` a declaration
into a typed config, synthesize its ``ports``, lay out its ``chain`` of
netlist items and ``emit`` the module into a text sink. The side
artifacts (primitive cell file and Typst schematic) are written to the
project output directory after the netlist succeeded.
"""

import io
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator, List, Optional

from jinja2 import Environment, FileSystemLoader

from prcraft.model import DiagnosticLog
from prcraft.model.netlist import Port
from prcraft.project import GeneratorSettings, ProjectOutput, VerilogFormatter

from ._protocols import TextSink
from .cell_library import CellLibrary, CellLibraryEmitter
from .errors import GenerationError

logger = logging.getLogger(__name__)


class ControllerGenerator(ABC):
    """
    Abstract controller compiler.

    Subclasses set ``section`` (document key) and ``cell_library`` and
    implement the parse/ports/chain/schematic steps. Templates are
    loaded from the ``templates`` directory next to this module.
    """

    section: str = ""
    cell_library: CellLibrary

    def __init__(
        self,
        project: Optional[ProjectOutput] = None,
        formatter: Optional[VerilogFormatter] = None,
        force_overwrite: bool = False,
        schematic: bool = True,
        template_dir: Optional[str] = None,
    ):
        """
        Initialize the compiler with its Jinja2 environment.

        Args:
            project: Provides the output directory for side artifacts.
                     Without it only the netlist is produced.
            formatter: Best-effort formatter run on written cell files
            force_overwrite: Rewrite the primitive cell file from scratch
            schematic: Write the Typst schematic
            template_dir: Optional custom template directory
        """
        if template_dir is None:
            template_dir = os.path.join(os.path.dirname(__file__), "templates")

        self.template_dir = template_dir
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.project = project
        self.formatter = formatter
        self.force_overwrite = force_overwrite
        self.schematic = schematic
        self.diagnostics = DiagnosticLog(logging.getLogger(type(self).__module__))

    @classmethod
    def from_settings(cls, settings: GeneratorSettings) -> "ControllerGenerator":
        return cls(
            project=settings.project(),
            formatter=settings.verilog_formatter(),
            force_overwrite=settings.force_overwrite,
            schematic=settings.schematic,
        )

    def _section(self, node: Any) -> Any:
        """Accept either the controller map or a document holding it."""
        if isinstance(node, dict) and self.section in node:
            return node[self.section]
        return node

    @abstractmethod
    def parse(self, node: Any):
        """
        Parse a declaration into a controller config.

        Returns:
            The config, or None when the declaration was rejected
        """
        pass

    @abstractmethod
    def ports(self, config) -> List[Port]:
        """Synthesize the ordered, duplicate-free port list."""
        pass

    @abstractmethod
    def chain(self, config) -> Iterator[Any]:
        """Yield the netlist items of the module body in order."""
        pass

    @abstractmethod
    def schematic_text(self, config) -> str:
        """Typst schematic of the controller."""
        pass

    def check(self, config) -> None:
        """Raise GenerationError for problems the chain would hit while streaming."""

    def emit(self, config, sink: TextSink) -> None:
        """
        Stream the controller module into ``sink``.

        Every fatal condition is detected before the first fragment is
        written, so a failed emission leaves the sink untouched.

        Raises:
            GenerationError: Divider shape or signal name problems
        """
        self.check(config)
        ports = self.ports(config)
        template = self.env.get_template("controller.v.j2")
        for fragment in template.generate(
            module_name=config.module_name, ports=ports, body=self.chain(config)
        ):
            sink.write(fragment)

    def render(self, config) -> str:
        """Controller module as a string."""
        buffer = io.StringIO()
        self.emit(config, buffer)
        return buffer.getvalue()

    def generate(self, node: Any, sink: TextSink) -> bool:
        """
        Compile a declaration: netlist into ``sink``, then cell file and schematic.

        Args:
            node: Controller map, or a document containing it
            sink: Receives the netlist text

        Returns:
            True if the netlist was produced
        """
        config = self.parse(self._section(node))
        if config is None or not self._emit_checked(config, sink):
            return False
        self.write_artifacts(config)
        return True

    def generate_file(self, node: Any) -> Optional[Path]:
        """
        Compile a declaration into ``<output dir>/<module>.v``.

        The netlist file is written and formatted before the side
        artifacts. Nothing is written when the declaration is rejected.

        Returns:
            Path of the netlist, or None on failure
        """
        config = self.parse(self._section(node))
        if config is None:
            return None
        buffer = io.StringIO()
        if not self._emit_checked(config, buffer):
            return None

        path = self._output_dir() / f"{config.module_name}.v"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(buffer.getvalue(), encoding="utf-8")
        logger.info(f"Generated {self.section} controller: {path}")
        if self.formatter is not None:
            self.formatter.format_verilog_file(path)

        self.write_artifacts(config)
        return path

    def _emit_checked(self, config, sink: TextSink) -> bool:
        try:
            self.emit(config, sink)
        except GenerationError as e:
            logger.error(f"Cannot generate {self.section} controller '{config.name}': {e}")
            return False
        return True

    def _output_dir(self) -> Path:
        return Path(self.project.output_path()) if self.project is not None else Path(".")

    def write_artifacts(self, config) -> None:
        """Primitive cell file, then schematic; only with a project."""
        if self.project is None:
            return
        output_dir = self._output_dir()
        emitter = CellLibraryEmitter(
            self.cell_library, self.env, self.formatter, self.force_overwrite
        )
        emitter.ensure(output_dir)
        if self.schematic:
            self.write_schematic(config, output_dir)

    def write_schematic(self, config, output_dir) -> Optional[Path]:
        """Write ``<output_dir>/<module>.typ``; failures only warn."""
        path = Path(output_dir) / f"{config.module_name}.typ"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.schematic_text(config), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write schematic {path}, netlist kept: {e}")
            return None
        logger.info(f"Generated {self.section} schematic: {path}")
        return path
