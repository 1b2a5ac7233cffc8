"""Tests for the clock controller compiler."""

# editorconfig-checker-disable-file
# This file contains YAML fixtures that use 2-space indentation per YAML standard

import io
import logging

import pytest

from prcraft.generator.clock_generator import (
    ClockControllerGenerator,
    link_instance_name,
    link_wire_name,
)
from prcraft.generator.errors import NameCollisionError, ShapeError
from prcraft.project import OutputDirectory

SINGLE_LINK = """
clock:
  name: clk_ctrl
  input:
    osc_24m: {freq: 24MHz}
  target:
    clk_core:
      link:
        osc_24m:
"""

RAW_MUX = """
clock:
  name: clk_ctrl
  input: {a: {}, b: {}}
  target:
    clk_mux:
      link: {a: , b: }
      select: sel
"""

GLITCH_FREE_MUX = """
clock:
  name: clk_ctrl
  input: {osc_24m: {}, a: {}, b: {}}
  target:
    clk_sw:
      link: {a: , b: }
      select: sel
      reset: rst_n
      test_clock: osc_24m
"""

DYNAMIC_DIVIDER = """
clock:
  name: clk_ctrl
  input: {osc_24m: {}}
  target:
    clk_div:
      div: {value: div_val, width: 4, default: 2}
      link: {osc_24m: }
"""

FULL_CHAIN = """
clock:
  name: soc_clk
  test_enable: test_en
  input:
    osc: {freq: 25MHz}
    pll: {freq: 1GHz}
  target:
    clk_cpu:
      freq: 500MHz
      icg: {enable: cpu_en, polarity: low, clock_on_reset: true}
      div: {value: cpu_div, valid: cpu_div_vld, ready: cpu_div_rdy, count: cpu_cnt, width: 3}
      inv: {}
      link:
        pll:
          icg: {enable: pll_en}
          div: {default: 2}
    clk_per:
      link:
        osc:
        pll: {inv: {}}
        clk_cpu:
      select: per_sel
      reset: per_rst_n
      test_clock: osc
      mux: {sta_guide: {cell: STA_BUF, in: A, out: Y}}
"""


def compile_clock(load_yaml, text):
    generator = ClockControllerGenerator()
    config = generator.parse(load_yaml(text)["clock"])
    assert config is not None, generator.diagnostics.messages()
    return config, generator.render(config)


def parse_module(netlist_parser, text):
    modules = netlist_parser.parse_text(text)
    assert len(modules) == 1
    return modules[0]


class TestNaming:
    def test_link_wire_name(self):
        assert link_wire_name("clk_core", "osc_24m") == "clk_clk_core_from_osc_24m"

    def test_link_instance_name(self):
        assert link_instance_name("clk_core", "osc", 0) == "u_clk_core_osc"
        assert link_instance_name("clk_core", "pll", 2) == "u_clk_core_pll_2"


class TestClockScenarios:
    def test_single_link_passthrough(self, load_yaml, netlist_parser):
        """One input, one target, no stages: two plain assignments."""
        _, text = compile_clock(load_yaml, SINGLE_LINK)
        module = parse_module(netlist_parser, text)

        assert module.name == "clk_ctrl"
        assert module.port_names() == ["osc_24m", "clk_core"]
        assert module.find_port("osc_24m").direction == "input"
        assert module.find_port("clk_core").direction == "output"
        assert module.instances == []
        assert "/**< Clock input: osc_24m (24MHz) */" in text
        assert "    wire clk_clk_core_from_osc_24m;\n" in text
        assert "    assign clk_clk_core_from_osc_24m = osc_24m;\n" in text
        assert "    assign clk_core = clk_clk_core_from_osc_24m;\n" in text
        assert " * Link processing: osc_24m -> clk_core\n" in text
        assert text.rstrip().endswith("endmodule")

    def test_raw_mux(self, load_yaml, netlist_parser):
        """Two links without reset select the standard multiplexer."""
        _, text = compile_clock(load_yaml, RAW_MUX)
        module = parse_module(netlist_parser, text)

        assert module.port_names() == ["a", "b", "clk_mux", "sel"]
        assert module.find_port("sel").width == 1
        assert module.instances_of("qsoc_clk_mux_gf") == []
        (mux,) = module.instances_of("qsoc_clk_mux_raw")
        assert mux.name == "u_clk_mux_mux"
        assert mux.params == {"NUM_INPUTS": "2"}
        assert mux.connections == {
            "clk_in": "{clk_clk_mux_from_b, clk_clk_mux_from_a}",
            "clk_sel": "sel",
            "clk_out": "clk_mux_mux_out",
        }
        assert "    assign clk_mux = clk_mux_mux_out;\n" in text

    def test_glitch_free_mux(self, load_yaml, netlist_parser):
        """A reset selects the glitch-free multiplexer; the test clock is already an input."""
        _, text = compile_clock(load_yaml, GLITCH_FREE_MUX)
        module = parse_module(netlist_parser, text)

        assert module.port_names() == ["osc_24m", "a", "b", "clk_sw", "sel", "rst_n"]
        assert module.instances_of("qsoc_clk_mux_raw") == []
        (mux,) = module.instances_of("qsoc_clk_mux_gf")
        assert mux.params == {
            "NUM_INPUTS": "2",
            "NUM_SYNC_STAGES": "2",
            "CLOCK_DURING_RESET": "1'b1",
        }
        assert mux.connections["test_clk"] == "osc_24m"
        assert mux.connections["test_en"] == "1'b0"
        assert mux.connections["async_rst_n"] == "rst_n"
        assert mux.connections["async_sel"] == "sel"
        assert mux.connections["clk_out"] == "clk_sw_mux_out"

    def test_dynamic_divider_auto_handshake(self, load_yaml, netlist_parser):
        """A dynamic divider without valid strobe uses the auto-handshake wrapper."""
        _, text = compile_clock(load_yaml, DYNAMIC_DIVIDER)
        module = parse_module(netlist_parser, text)

        assert module.port_names() == ["osc_24m", "clk_div", "div_val"]
        assert module.find_port("div_val").width == 4
        assert "input  wire [3:0] div_val" in text
        assert module.instances_of("qsoc_clk_div") == []
        (div,) = module.instances_of("qsoc_clk_div_auto")
        assert div.name == "u_clk_div_target_div"
        assert div.params == {"WIDTH": "4", "DEFAULT_VAL": "2", "CLOCK_DURING_RESET": "1'b0"}
        assert div.connections == {
            "clk": "clk_clk_div_from_osc_24m",
            "rst_n": "1'b1",
            "en": "1'b1",
            "test_en": "1'b0",
            "div": "div_val",
            "clk_out": "clk_div_div_out",
            "count": "",
        }
        assert "    assign clk_div = clk_div_div_out;\n" in text

    def test_dynamic_divider_count_connected(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml, DYNAMIC_DIVIDER.replace("default: 2}", "default: 2, count: div_cnt}")
        )
        module = parse_module(netlist_parser, text)
        (div,) = module.instances_of("qsoc_clk_div_auto")
        assert div.connections["count"] == "div_cnt"
        assert module.find_port("div_cnt").direction == "output"
        assert module.find_port("div_cnt").width == 4


class TestClockPorts:
    def test_select_width_follows_link_count(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {a: {}, b: {}, c: {}}
              target:
                clk_mux:
                  link: {a: , b: , c: }
                  select: sel
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.find_port("sel").width == 2
        (mux,) = module.instances_of("qsoc_clk_mux_raw")
        assert mux.params == {"NUM_INPUTS": "3"}

    def test_output_wins_over_test_clock(self, load_yaml, netlist_parser):
        """A test clock naming a target output is never declared as input."""
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {osc: {}, a: {}, b: {}}
              target:
                clk_ref:
                  link: {osc: }
                clk_dbg:
                  link: {a: , b: }
                  select: dbg_sel
                  test_clock: clk_ref
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.port_names() == ["osc", "a", "b", "clk_ref", "clk_dbg", "dbg_sel"]
        assert module.find_port("clk_ref").direction == "output"

    def test_output_wins_over_input_clock(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {clk_core: {}, osc: {}}
              target:
                clk_core:
                  link: {osc: }
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.port_names() == ["osc", "clk_core"]
        assert module.find_port("clk_core").direction == "output"

    def test_full_port_order(self, load_yaml, netlist_parser):
        """Inputs, outputs, divider signals, test enable, ICG, MUX, divider resets."""
        _, text = compile_clock(load_yaml, FULL_CHAIN)
        module = parse_module(netlist_parser, text)
        assert module.port_names() == [
            "osc",
            "pll",
            "clk_cpu",
            "clk_per",
            "cpu_div",
            "cpu_div_vld",
            "cpu_div_rdy",
            "cpu_cnt",
            "test_en",
            "cpu_en",
            "pll_en",
            "per_sel",
            "per_rst_n",
        ]
        assert module.find_port("cpu_div").width == 3
        assert module.find_port("cpu_cnt").width == 3
        assert module.find_port("cpu_div_rdy").direction == "output"
        assert module.find_port("per_sel").width == 2
        assert "/**< ICG enable for link clk_cpu_from_pll */" in text

    def test_divider_reset_ports_come_last(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              test_enable: test_en
              input: {osc: {}}
              target:
                clk_slow:
                  div: {default: 4, reset: div_rst_n, enable: div_en}
                  link: {osc: }
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.port_names() == ["osc", "clk_slow", "div_en", "test_en", "div_rst_n"]
        assert "/**< Division reset for clk_slow */" in text


class TestClockStages:
    def test_target_chain_order(self, load_yaml, netlist_parser):
        """ICG feeds the divider, the divider feeds the inverter."""
        _, text = compile_clock(load_yaml, FULL_CHAIN)
        module = parse_module(netlist_parser, text)

        icg = next(i for i in module.instances if i.name == "u_clk_cpu_target_icg")
        assert icg.cell == "qsoc_tc_clk_gate"
        assert icg.params == {"CLOCK_DURING_RESET": "1'b1", "POLARITY": "1'b0"}
        assert icg.connections == {
            "clk": "clk_clk_cpu_from_pll",
            "en": "cpu_en",
            "test_en": "test_en",
            "rst_n": "1'b1",
            "clk_out": "clk_cpu_icg_out",
        }

        div = next(i for i in module.instances if i.name == "u_clk_cpu_target_div")
        assert div.cell == "qsoc_clk_div"
        assert div.connections["clk"] == "clk_cpu_icg_out"
        assert div.connections["div"] == "cpu_div"
        assert div.connections["div_valid"] == "cpu_div_vld"
        assert div.connections["div_ready"] == "cpu_div_rdy"
        assert div.connections["count"] == "cpu_cnt"

        inv = next(i for i in module.instances if i.name == "u_clk_cpu_target_inv")
        assert inv.cell == "qsoc_tc_clk_inv"
        assert inv.connections == {"clk_in": "clk_cpu_div_out", "clk_out": "clk_cpu_inv_out"}
        assert "    assign clk_cpu = clk_cpu_inv_out;\n" in text

    def test_link_chain(self, load_yaml, netlist_parser):
        _, text = compile_clock(load_yaml, FULL_CHAIN)
        module = parse_module(netlist_parser, text)

        icg = next(i for i in module.instances if i.name == "u_clk_cpu_pll_icg")
        assert icg.connections["clk"] == "pll"
        assert icg.connections["clk_out"] == "clk_clk_cpu_from_pll_preicg"
        div = next(i for i in module.instances if i.name == "u_clk_cpu_pll_div")
        assert div.connections["clk"] == "clk_clk_cpu_from_pll_preicg"
        assert div.connections["div"] == "2'd2"
        assert div.connections["div_valid"] == "1'b0"
        assert "    assign clk_clk_cpu_from_pll = clk_clk_cpu_from_pll_prediv;\n" in text
        assert " * Link processing: pll -> clk_cpu (icg) (div/2)\n" in text

        inv = next(i for i in module.instances if i.name == "u_clk_per_pll_1_inv")
        assert inv.connections == {"clk_in": "pll", "clk_out": "u_clk_per_pll_1_inv_wire"}
        assert "    assign clk_clk_per_from_pll = u_clk_per_pll_1_inv_wire;\n" in text

    def test_static_divider(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_slow:
                  div: {default: 4}
                  link: {osc: }
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.port_names() == ["osc", "clk_slow"]
        (div,) = module.instances_of("qsoc_clk_div")
        assert div.params == {"WIDTH": "3", "DEFAULT_VAL": "4", "CLOCK_DURING_RESET": "1'b0"}
        assert div.connections["div"] == "3'd4"
        assert div.connections["div_valid"] == "1'b0"
        assert div.connections["div_ready"] == ""
        assert div.connections["count"] == ""

    def test_icg_ties(self, load_yaml, netlist_parser):
        """Missing enable, reset and test enable are tied off."""
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_gated:
                  icg: {}
                  link: {osc: }
            """,
        )
        module = parse_module(netlist_parser, text)
        (icg,) = module.instances_of("qsoc_tc_clk_gate")
        assert icg.connections["en"] == "1'b1"
        assert icg.connections["rst_n"] == "1'b1"
        assert icg.connections["test_en"] == "1'b0"
        assert icg.params["POLARITY"] == "1'b1"

    def test_mux_sta_guide(self, load_yaml, netlist_parser):
        _, text = compile_clock(load_yaml, FULL_CHAIN)
        module = parse_module(netlist_parser, text)

        (mux,) = module.instances_of("qsoc_clk_mux_gf")
        assert mux.connections["clk_out"] == "clk_per_mux_out_pre_sta"
        assert mux.connections["test_clk"] == "osc"
        assert mux.connections["clk_in"] == (
            "{clk_clk_per_from_clk_cpu, clk_clk_per_from_pll, clk_clk_per_from_osc}"
        )
        (guide,) = module.instances_of("STA_BUF")
        assert guide.name == "u_clk_per_mux_sta"
        assert guide.connections == {"A": "clk_per_mux_out_pre_sta", "Y": "clk_per_mux_out"}
        assert "    wire clk_per_mux_out_pre_sta;\n" in text
        assert "    wire clk_per_mux_out;\n" in text
        assert "    assign clk_per = clk_per_mux_out;\n" in text

    @pytest.mark.parametrize(
        "block, stage, cell",
        [
            ("icg: {enable: en, sta_guide: %s}", "icg", "qsoc_tc_clk_gate"),
            ("div: {default: 2, sta_guide: %s}", "div", "qsoc_clk_div"),
            ("inv: {sta_guide: %s}", "inv", "qsoc_tc_clk_inv"),
        ],
    )
    def test_target_stage_sta_guide(self, load_yaml, netlist_parser, block, stage, cell):
        """The guide bridges <base>_pre_sta to <base>; downstream reads <base>."""
        text = """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_core:
                  BLOCK
                  link: {osc: }
            """.replace("BLOCK", block % "{cell: STA_BUF, in: A, out: Y}")
        _, netlist = compile_clock(load_yaml, text)
        module = parse_module(netlist_parser, netlist)

        base = f"clk_core_{stage}_out"
        (primitive,) = module.instances_of(cell)
        assert base + "_pre_sta" in primitive.connections.values()
        (guide,) = module.instances_of("STA_BUF")
        assert guide.name == f"u_clk_core_{stage}_sta"
        assert guide.connections == {"A": f"{base}_pre_sta", "Y": base}
        assert f"    assign clk_core = {base};\n" in netlist

    def test_sta_guide_instance_override(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_core:
                  link:
                    osc:
                      icg: {sta_guide: {cell: STA_BUF, in: A, out: Y, instance: u_my_guide}}
            """,
        )
        module = parse_module(netlist_parser, text)
        (guide,) = module.instances_of("STA_BUF")
        assert guide.name == "u_my_guide"
        assert guide.connections == {
            "A": "clk_clk_core_from_osc_preicg_pre_sta",
            "Y": "clk_clk_core_from_osc_preicg",
        }


class TestLegacyInverter:
    def test_single_link(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_n:
                  link:
                    osc: {inv: true}
            """,
        )
        module = parse_module(netlist_parser, text)
        assert module.instances_of("qsoc_tc_clk_inv") == []
        assert "    assign clk_clk_n_from_osc = osc;\n" in text
        assert "    assign clk_n_legacy_inv = ~clk_clk_n_from_osc;\n" in text
        assert "    assign clk_n = clk_n_legacy_inv;\n" in text

    def test_multi_link(self, load_yaml, netlist_parser):
        _, text = compile_clock(
            load_yaml,
            """
            clock:
              name: clk_ctrl
              input: {a: {}, b: {}}
              target:
                clk_m:
                  link:
                    a: {inv: true}
                    b:
                  select: sel
            """,
        )
        module = parse_module(netlist_parser, text)
        (mux,) = module.instances_of("qsoc_clk_mux_raw")
        assert mux.connections["clk_in"] == "{clk_clk_m_from_b, clk_clk_m_from_a_inv}"
        assert "    assign clk_clk_m_from_a_inv = ~clk_clk_m_from_a;\n" in text


class TestClockErrors:
    def test_divider_signal_collision(self, load_yaml, caplog):
        document = load_yaml(
            """
            clock:
              name: clk_ctrl
              input: {osc: {}}
              target:
                clk_a:
                  div: {value: div_val, width: 4}
                  link: {osc: }
                clk_b:
                  div: {value: div_val, width: 4}
                  link: {osc: }
            """
        )
        generator = ClockControllerGenerator()
        config = generator.parse(document["clock"])
        with pytest.raises(NameCollisionError, match="divider value signal name: div_val"):
            generator.render(config)

        sink = io.StringIO()
        with caplog.at_level(logging.ERROR):
            assert generator.generate(document, sink) is False
        assert sink.getvalue() == ""
        assert "Cannot generate clock controller 'clk_ctrl'" in caplog.text

    def test_divider_without_width(self, load_yaml):
        document = load_yaml(DYNAMIC_DIVIDER.replace(", width: 4", ""))
        generator = ClockControllerGenerator()
        config = generator.parse(document["clock"])
        assert config is not None
        with pytest.raises(
            ShapeError,
            match="Clock divider for target 'clk_div' requires explicit width specification",
        ):
            generator.render(config)

        sink = io.StringIO()
        assert generator.generate(document, sink) is False
        assert sink.getvalue() == ""

    def test_link_divider_without_width(self, load_yaml):
        generator = ClockControllerGenerator()
        config = generator.parse(
            load_yaml(
                """
                clock:
                  name: clk_ctrl
                  input: {osc: {}}
                  target:
                    clk_core:
                      link:
                        osc:
                          div: {value: dv}
                """
            )["clock"]
        )
        with pytest.raises(ShapeError, match="link 'clk_clk_core_from_osc'"):
            generator.render(config)

    def test_rejected_configuration(self, load_yaml):
        generator = ClockControllerGenerator()
        sink = io.StringIO()
        assert generator.generate(load_yaml("clock: {name: clk_ctrl}"), sink) is False
        assert sink.getvalue() == ""
        assert generator.diagnostics.has_errors


class TestClockNetlistProperties:
    @pytest.mark.parametrize(
        "text",
        [SINGLE_LINK, RAW_MUX, GLITCH_FREE_MUX, DYNAMIC_DIVIDER, FULL_CHAIN],
    )
    def test_ports_are_unique(self, load_yaml, netlist_parser, text):
        _, netlist = compile_clock(load_yaml, text)
        names = parse_module(netlist_parser, netlist).port_names()
        assert len(names) == len(set(names))

    def test_one_combining_mux_per_multi_link_target(self, load_yaml, netlist_parser):
        config, netlist = compile_clock(load_yaml, FULL_CHAIN)
        module = parse_module(netlist_parser, netlist)
        muxes = module.instances_of("qsoc_clk_mux_gf") + module.instances_of("qsoc_clk_mux_raw")
        multi = [t for t in config.targets if t.is_multi_link]
        assert sorted(m.name for m in muxes) == sorted(f"u_{t.name}_mux" for t in multi)

    def test_emission_is_deterministic(self, load_yaml):
        config, first = compile_clock(load_yaml, FULL_CHAIN)
        generator = ClockControllerGenerator()
        assert generator.render(config) == first
        assert generator.schematic_text(config) == generator.schematic_text(config)


class TestClockArtifacts:
    def test_generate_writes_side_artifacts(self, load_yaml, tmp_path):
        generator = ClockControllerGenerator(project=OutputDirectory(tmp_path))
        sink = io.StringIO()
        assert generator.generate(load_yaml(SINGLE_LINK), sink) is True
        assert "module clk_ctrl (" in sink.getvalue()
        assert (tmp_path / "clock_cell.v").exists()
        assert (tmp_path / "clk_ctrl.typ").exists()

    def test_generate_file(self, load_yaml, tmp_path):
        generator = ClockControllerGenerator(project=OutputDirectory(tmp_path), schematic=False)
        path = generator.generate_file(load_yaml(SINGLE_LINK))
        assert path == tmp_path / "clk_ctrl.v"
        assert "module clk_ctrl (" in path.read_text()
        assert (tmp_path / "clock_cell.v").exists()
        assert not (tmp_path / "clk_ctrl.typ").exists()

    def test_generate_file_rejected(self, load_yaml, tmp_path):
        generator = ClockControllerGenerator(project=OutputDirectory(tmp_path))
        assert generator.generate_file(load_yaml("clock: {name: clk_ctrl}")) is None
        assert list(tmp_path.iterdir()) == []

    def test_schematic_failure_keeps_netlist(self, load_yaml, tmp_path, caplog):
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")
        generator = ClockControllerGenerator()
        config = generator.parse(load_yaml(SINGLE_LINK)["clock"])
        with caplog.at_level(logging.WARNING):
            assert generator.write_schematic(config, blocker) is None
        assert "netlist kept" in caplog.text
