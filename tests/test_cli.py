import json
from pathlib import Path

from pedigree_analyzer import dumps
from render_pedigree import main
from .fixtures import carrier_parents_family


def test_cli_end_to_end(tmp_path: Path):
    source = tmp_path / "family.json"
    source.write_text(dumps(carrier_parents_family()), encoding="utf-8")
    svg = tmp_path / "family.svg"
    report = tmp_path / "report.txt"
    saved = tmp_path / "recomputed.json"

    code = main([str(source), "-o", str(svg), "--report", str(report), "--save-json", str(saved)])

    assert code == 0
    assert svg.read_text(encoding="utf-8").startswith("<svg")
    assert "Carrier Risk: 66.7%" in report.read_text(encoding="utf-8")
    data = json.loads(saved.read_text(encoding="utf-8"))
    assert data["inheritancePattern"] == "autosomal_recessive"


def test_cli_overrides_settings(tmp_path: Path):
    source = tmp_path / "family.json"
    source.write_text(dumps(carrier_parents_family()), encoding="utf-8")
    saved = tmp_path / "out.json"

    code = main([
        str(source), "-o", str(tmp_path / "out.svg"), "--pattern", "autosomal_dominant",
        "--carrier-frequency", "0.02", "--spacing", "200", "--save-json", str(saved),
    ])

    assert code == 0
    data = json.loads(saved.read_text(encoding="utf-8"))
    assert data["inheritancePattern"] == "autosomal_dominant"
    assert data["carrierFrequency"] == 0.02
    xs = sorted(d["x"] for d in data["individuals"] if d["generation"] == 2)
    assert xs[1] - xs[0] == 200


def test_cli_reports_load_errors(tmp_path: Path, capsys):
    source = tmp_path / "broken.json"
    source.write_text('{"individuals": [{"id": "III-1", "generation": 9}]}', encoding="utf-8")

    code = main([str(source), "-o", str(tmp_path / "out.svg")])

    assert code == 1
    assert "error:" in capsys.readouterr().err
    assert not (tmp_path / "out.svg").exists()
