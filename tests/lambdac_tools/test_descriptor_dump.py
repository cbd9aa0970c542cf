"""
Tests for the descriptor dump tool
"""
import struct
import sys

import pytest

import descriptor_dump

from lambdac import LambdacTypeTable, BOOLEAN, INT


@pytest.fixture
def ids():
    """Type ids a fresh type table gives the primitives."""
    table = LambdacTypeTable()
    return {"boolean": table.type_id(BOOLEAN), "int": table.type_id(INT)}


def run_dump(monkeypatch, *args):
    """Run the tool's main() with the given command-line arguments."""
    monkeypatch.setattr(sys, "argv", ["descriptor_dump.py", *args])
    return descriptor_dump.main()


class TestDescriptorDump:
    """Test the descriptor dump command line."""

    def test_static_descriptor(self, monkeypatch, capsys, ids):
        """Test dumping a STATIC descriptor with one parameter."""
        data = struct.pack(">BBIIBB", 0, 1, 100, ids["boolean"], 0, 0)

        status = run_dump(monkeypatch, data.hex())

        out = capsys.readouterr().out
        assert status == 0
        assert "strategy:       STATIC" in out
        assert "reference kind: LITERAL" in out
        assert "[0] #100" in out
        assert f"returns:        #{ids['boolean']} (boolean)" in out

    def test_hex_split_across_arguments(self, monkeypatch, capsys, ids):
        """Test that hex split over several arguments is joined."""
        data = struct.pack(">BBIBIB", 1, 0, ids["int"], 1, 200, 0).hex()

        status = run_dump(monkeypatch, data[:6], data[6:])

        out = capsys.readouterr().out
        assert status == 0
        assert "strategy:       CAPTURING" in out
        assert "captures:       1" in out
        assert "[0] #200" in out

    def test_truncated_descriptor(self, monkeypatch, capsys):
        """Test that a truncated descriptor is reported with exit status 1."""
        status = run_dump(monkeypatch, "0001")

        assert status == 1
        assert "Descriptor is truncated" in capsys.readouterr().err

    def test_invalid_hex(self, monkeypatch, capsys):
        """Test that text that is not hex is reported with exit status 1."""
        status = run_dump(monkeypatch, "zz")

        assert status == 1
        assert "is not valid hex" in capsys.readouterr().err

    def test_descriptor_file(self, monkeypatch, capsys, tmp_path, ids):
        """Test reading one descriptor per line from a file."""
        first = struct.pack(">BBIBB", 0, 0, ids["int"], 0, 0).hex()
        second = struct.pack(">BBIBB", 0, 0, ids["boolean"], 0, 1).hex()
        path = tmp_path / "descriptors.txt"
        path.write_text(f"{first}\n\n{second}\n", encoding="utf-8")

        status = run_dump(monkeypatch, "--file", str(path))

        out = capsys.readouterr().out
        assert status == 0
        assert out.count("Descriptor:") == 2
        assert "reference kind: STATIC" in out

    def test_missing_file(self, monkeypatch, capsys, tmp_path):
        """Test that an unreadable file gives exit status 2."""
        status = run_dump(monkeypatch, "--file", str(tmp_path / "missing.txt"))

        assert status == 2
        assert "Cannot read" in capsys.readouterr().err

    def test_no_input(self, monkeypatch, capsys):
        """Test that no descriptors prints usage with exit status 2."""
        status = run_dump(monkeypatch)

        assert status == 2
        assert "usage:" in capsys.readouterr().err
