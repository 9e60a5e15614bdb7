"""
Unit Tests for the Command Line Entry Point
===========================================
"""

import pytest
import serial.tools.list_ports

from armlink import __version__
from armlink.main import build_parser, main


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])

        assert args.port is None
        assert args.target is None
        assert args.pitch == 0.0
        assert not args.simulate

    def test_target(self):
        args = build_parser().parse_args(["--target", "0.2", "0", "0.3", "--pitch", "15"])
        assert args.target == [0.2, 0.0, 0.3]
        assert args.pitch == 15.0

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    """End-to-end runs against the simulated controller."""

    def test_list_ports(self, monkeypatch, capsys, restore_logging):
        monkeypatch.setattr(serial.tools.list_ports, "comports", lambda: [])

        assert main(["--list-ports"]) == 0
        assert "No serial ports found" in capsys.readouterr().out

    @pytest.mark.slow
    def test_simulated_run(self, tmp_path, restore_logging):
        config = str(tmp_path / "settings.yaml")
        argv = ["--simulate", "--config", config, "--duration", "0.3",
                "--target", "0.2", "0", "0.3"]

        assert main(argv) == 0

    def test_invalid_settings(self, tmp_path, restore_logging):
        config = tmp_path / "settings.yaml"
        config.write_text("planner:\n  tick_rate: 0\n")

        assert main(["--simulate", "--config", str(config), "--duration", "0.1"]) == 1

    def test_wrongly_typed_settings(self, tmp_path, restore_logging):
        config = tmp_path / "settings.yaml"
        config.write_text("serial:\n  baudrate: fast\n")

        assert main(["--simulate", "--config", str(config), "--duration", "0.1"]) == 1
