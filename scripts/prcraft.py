#!/usr/bin/env python3
"""
prcraft - SoC clock and reset controller generator.

Usage:
    python scripts/prcraft.py generate soc_prc.yml --output ./rtl
    python scripts/prcraft.py generate soc_prc.yml -o ./rtl --json --progress  # VS Code mode
    python scripts/prcraft.py inspect ./rtl/clk_ctrl.v
    python scripts/prcraft.py list-cells clock

Subcommands:
    generate    Generate controller netlists, primitive cells and schematics
    inspect     Show modules, ports and instances of a Verilog netlist
    list-cells  List the primitive cells of the clock and reset libraries
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from prcraft.generator.cell_library import CLOCK_CELL_LIBRARY, RESET_CELL_LIBRARY
from prcraft.generator.clock_generator import ClockControllerGenerator
from prcraft.generator.reset_generator import ResetControllerGenerator
from prcraft.parser.hdl.netlist_parser import VerilogNetlistParser
from prcraft.parser.yaml.errors import ParseError
from prcraft.parser.yaml.prc_yaml_parser import PrcYamlParser
from prcraft.project import DEFAULT_FORMATTER, GeneratorSettings

GENERATORS = (ClockControllerGenerator, ResetControllerGenerator)
CELL_LIBRARIES = {lib.domain: lib for lib in (CLOCK_CELL_LIBRARY, RESET_CELL_LIBRARY)}


def log(msg: str, use_progress: bool, use_json: bool):
    """Output progress message if enabled."""
    if use_progress and use_json:
        print(f"PROGRESS: {msg}", flush=True)
    elif use_progress:
        print(msg)


def setup_logging(args):
    level = logging.INFO
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False) or getattr(args, "json", False):
        level = logging.WARNING
    logging.basicConfig(format="%(levelname)s: %(message)s", level=level)


def cmd_generate(args):
    """Generate every controller declared in a YAML document."""
    output_base = args.output or os.path.dirname(os.path.abspath(args.input))

    try:
        log("Parsing controller YAML...", args.progress, args.json)
        document = PrcYamlParser().parse_file(args.input)

        settings = GeneratorSettings(
            output_dir=Path(output_base),
            force_overwrite=args.force,
            format_output=args.format,
            formatter=args.formatter,
            schematic=args.schematic,
        )

        written = {}
        failed = []
        for generator_cls in GENERATORS:
            section = generator_cls.section
            if section not in document:
                continue
            log(f"Generating {section} controller...", args.progress, args.json)
            generator = generator_cls.from_settings(settings)
            path = generator.generate_file(document)
            if path is None:
                failed.append(section)
                continue
            written[section] = str(path)
            log(f"  Written: {path}", args.progress, args.json)

    except (ParseError, OSError) as e:
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}))
        else:
            print(f"Error: {e}")
        sys.exit(1)

    if args.json:
        print(
            json.dumps(
                {
                    "success": not failed,
                    "files": written,
                    "count": len(written),
                    "failed": failed,
                }
            )
        )
    else:
        for section, path in written.items():
            print(f"✓ Generated {section} controller: {path}")
        for section in failed:
            print(f"✗ Failed to generate {section} controller")

    if failed:
        sys.exit(1)


def cmd_inspect(args):
    """Print modules, ports and instances of a Verilog file."""
    path = Path(args.input)
    if not path.exists():
        print(f"Error: Verilog file not found: {path}")
        sys.exit(1)

    modules = VerilogNetlistParser().parse_file(path)
    if args.json:
        print(
            json.dumps(
                {
                    "success": bool(modules),
                    "modules": [
                        {
                            "name": module.name,
                            "ports": [
                                {"name": p.name, "direction": p.direction, "width": p.width}
                                for p in module.ports
                            ],
                            "instances": [
                                {"cell": i.cell, "name": i.name} for i in module.instances
                            ],
                        }
                        for module in modules
                    ],
                }
            )
        )
    else:
        for module in modules:
            print(f"\nmodule {module.name}")
            print(f"\n  Ports ({len(module.ports)}):")
            for port in module.ports:
                width = f"[{port.width}]" if port.width != 1 else ""
                print(f"    {port.direction:6} {port.name:24} {width}")
            if module.instances:
                print(f"\n  Instances ({len(module.instances)}):")
                for inst in module.instances:
                    print(f"    {inst.cell:24} {inst.name}")

    if not modules:
        if not args.json:
            print(f"Error: No module found in {path}")
        sys.exit(1)


def cmd_list_cells(args):
    """List primitive cells per library."""
    domains = [args.domain] if args.domain else list(CELL_LIBRARIES)
    if args.json:
        print(
            json.dumps(
                {
                    "success": True,
                    "libraries": {
                        d: {
                            "file": CELL_LIBRARIES[d].file_name,
                            "cells": list(CELL_LIBRARIES[d].cells),
                        }
                        for d in domains
                    },
                }
            )
        )
        return
    for domain in domains:
        library = CELL_LIBRARIES[domain]
        print(f"\n{domain} cells ({library.file_name}):")
        for name in library.cells:
            print(f"  {name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prcraft", description="SoC clock and reset controller generator"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate subcommand
    gen_parser = subparsers.add_parser(
        "generate", help="Generate controller netlists from a clock/reset YAML file"
    )
    gen_parser.add_argument("input", help="Controller YAML file")
    gen_parser.add_argument("--output", "-o", help="Output directory (default: same as input)")
    gen_parser.add_argument(
        "--force", "-f", action="store_true", help="Rewrite primitive cell files from scratch"
    )
    gen_parser.add_argument(
        "--format",
        action="store_true",
        default=True,
        help="Run the Verilog formatter on written files (default: True)",
    )
    gen_parser.add_argument("--no-format", dest="format", action="store_false")
    gen_parser.add_argument(
        "--formatter",
        default=DEFAULT_FORMATTER,
        help=f"Formatter executable (default: {DEFAULT_FORMATTER})",
    )
    gen_parser.add_argument(
        "--schematic",
        action="store_true",
        default=True,
        help="Write Typst schematics (default: True)",
    )
    gen_parser.add_argument("--no-schematic", dest="schematic", action="store_false")
    gen_parser.add_argument(
        "--json", action="store_true", help="JSON output (for VS Code integration)"
    )
    gen_parser.add_argument("--progress", action="store_true", help="Enable progress output")
    gen_parser.set_defaults(func=cmd_generate)

    # inspect subcommand
    inspect_parser = subparsers.add_parser("inspect", help="Show ports and instances of a netlist")
    inspect_parser.add_argument("input", help="Verilog file")
    inspect_parser.add_argument("--json", action="store_true", help="JSON output")
    inspect_parser.set_defaults(func=cmd_inspect)

    # list-cells subcommand
    cells_parser = subparsers.add_parser("list-cells", help="List primitive cells")
    cells_parser.add_argument(
        "domain", nargs="?", choices=sorted(CELL_LIBRARIES), help="Library to list"
    )
    cells_parser.add_argument("--json", action="store_true", help="JSON output")
    cells_parser.set_defaults(func=cmd_list_cells)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args)
    args.func(args)


if __name__ == "__main__":
    main()
