import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from crt_reco.errors import GeometryError
from crt_reco.geometry import GeometryCatalog, Wire, load_strips, load_wires

WIRE_DUMP = """\
# channel dump
channel cryostat tpc plane wire x1 y1 z1 x2 y2 z2
0 0 0 0 0 -200.0 -10.0 0.0 -200.0 190.0 115.5
1 0 0 1 0 -200.0 -10.0 0.0 -200.0 -210.0 115.5
2 0 0 2 0 -200.0 -200.0 0.5 -200.0 200.0 0.5
3 0 1 2 0 200.0 -200.0 0.5 200.0 200.0 0.5
"""


def test_load_wires(tmp_path):
    path = tmp_path / "WireDump.txt"
    path.write_text(WIRE_DUMP)
    wires = load_wires(path)
    assert len(wires) == 4
    assert wires[2] == Wire(2, 2, -200.0, -200.0, 0.5, -200.0, 200.0, 0.5, cryostat=0, tpc=0, wire=0)
    assert wires[3].tpc == 1
    cat = GeometryCatalog.from_files(path)
    assert len(cat) == 4 and 3 in cat
    assert cat.wire(1).plane == 1
    assert cat.strips == ()


def test_optional_columns_default_to_zero(tmp_path):
    path = tmp_path / "w.txt"
    path.write_text("channel plane x1 y1 z1 x2 y2 z2\n7 2 1 2 3 4 5 6\n")
    (w,) = load_wires(path)
    assert (w.channel, w.tpc, w.cryostat, w.wire) == (7, 0, 0, 0)
    assert w.start == (1.0, 2.0, 3.0) and w.end == (4.0, 5.0, 6.0)


@pytest.mark.parametrize("text", [
    "channel plane x1 y1 z1 x2 y2\n0 0 1 2 3 4 5\n",
    "channel plane x1 y1 z1 x2 y2 z2\n0 3 1 2 3 4 5 6\n",
    "channel plane x1 y1 z1 x2 y2 z2\n0 0 1 2 abc 4 5 6\n",
    "channel plane x1 y1 z1 x2 y2 z2\n1.5 0 1 2 3 4 5 6\n",
    "channel tpc plane x1 y1 z1 x2 y2 z2\n1 0.5 0 1 2 3 4 5 6\n",
])
def test_malformed_wire_tables(tmp_path, text):
    path = tmp_path / "w.txt"
    path.write_text(text)
    with pytest.raises(GeometryError):
        load_wires(path)


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(GeometryError):
        GeometryCatalog.from_files(tmp_path / "nope.txt")


def test_catalog_lookups():
    w = Wire(5, 0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0)
    cat = GeometryCatalog([w])
    assert cat.wire(5) is w
    with pytest.raises(GeometryError):
        cat.wire(6)
    with pytest.raises(GeometryError):
        GeometryCatalog([w, w])


def test_load_strips(tmp_path):
    path = tmp_path / "StripDump.txt"
    path.write_text("channel x1 y1 z1 x2 y2 z2 width\n0 -100 740 0 100 740 0 11.2\n")
    (s,) = load_strips(path)
    assert s.channel == 0 and s.width == pytest.approx(11.2)
