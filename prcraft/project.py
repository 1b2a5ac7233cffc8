"""
Project collaborators used by the controller generators.

The generators only need two things from the surrounding project: the
directory receiving side artifacts, and a best-effort formatter for the
Verilog files they write.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import Field

from prcraft.model.base import PrcBaseModel

logger = logging.getLogger(__name__)

DEFAULT_FORMATTER = "verible-verilog-format"


class ProjectOutput(Protocol):
    """Anything that can tell where generated files go."""

    def output_path(self) -> Path:
        ...


class OutputDirectory:
    """Plain directory used as project output."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    def output_path(self) -> Path:
        return self._path


class VerilogFormatter:
    """
    Runs an external formatter on a Verilog file, in place.

    Formatting is optional: a missing executable, a non-zero exit status
    or a timeout is logged and otherwise ignored.
    """

    def __init__(self, executable: str = DEFAULT_FORMATTER, timeout: float = 30.0):
        self.executable = executable
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def format_verilog_file(self, path: Union[str, Path]) -> bool:
        """Format ``path`` in place; returns True when the formatter succeeded."""
        if not self.available():
            logger.debug("Formatter %s not found, skipping %s", self.executable, path)
            return False
        try:
            result = subprocess.run(
                [self.executable, "--inplace", str(path)],
                capture_output=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Formatter %s failed on %s: %s", self.executable, path, e)
            return False
        if result.returncode != 0:
            logger.debug(
                "Formatter %s exited with %d on %s: %s",
                self.executable,
                result.returncode,
                path,
                result.stderr.decode(errors="replace").strip(),
            )
            return False
        logger.debug("Formatted %s", path)
        return True


class GeneratorSettings(PrcBaseModel):
    """Options of one generation run."""

    output_dir: Path = Field(default=Path("."), description="Directory for generated files")
    force_overwrite: bool = Field(
        default=False, description="Rewrite primitive cell files even if present"
    )
    format_output: bool = Field(default=True, description="Run the Verilog formatter")
    formatter: str = Field(default=DEFAULT_FORMATTER, description="Formatter executable")
    schematic: bool = Field(default=True, description="Write Typst schematics")

    def project(self) -> OutputDirectory:
        return OutputDirectory(self.output_dir)

    def verilog_formatter(self) -> Optional[VerilogFormatter]:
        return VerilogFormatter(self.formatter) if self.format_output else None
