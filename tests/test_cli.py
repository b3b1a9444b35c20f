"""Tests for the shexlink command line."""
import json
import os

import pytest

from shexlink_py.cli import EXIT_DIFFS, EXIT_ERROR, EXIT_OK, main
from shexlink_py.config import get_settings

DATASET = os.path.join(os.path.dirname(__file__), "..", "dataset")
PERSON = os.path.join(DATASET, "shex", "Person.shex")
LIBRARY_YAML = os.path.join(DATASET, "linkml", "library.yaml")


def test_convert_to_stdout(capsys):
    assert main(["convert", PERSON, "--to", "jsonschema"]) == EXIT_OK
    doc = json.loads(capsys.readouterr().out)
    assert doc["$defs"]["Person"]["required"] == ["name"]


def test_convert_to_file(tmp_path):
    out = tmp_path / "out" / "person.ttl"
    assert main(["convert", PERSON, "-t", "shacl", "-o", str(out)]) == EXIT_OK
    text = out.read_text(encoding="utf-8")
    assert "sh:NodeShape" in text
    assert "foaf:name" in text


def test_convert_with_explicit_source_language(tmp_path, capsys):
    src = tmp_path / "person.txt"
    with open(PERSON, "r", encoding="utf-8") as f:
        src.write_text(f.read(), encoding="utf-8")
    assert main(["convert", str(src), "--from", "shex", "--to", "linkml"]) == EXIT_OK
    assert "classes:" in capsys.readouterr().out


def test_convert_unsupported_construct(tmp_path, capsys):
    src = tmp_path / "choice.shex"
    src.write_text("PREFIX ex: <http://example.org/>\nex:S { ex:a . | ex:b . }\n", encoding="utf-8")
    assert main(["convert", str(src), "--to", "linkml"]) == EXIT_ERROR
    assert "OneOf" in capsys.readouterr().err


def test_convert_unknown_suffix(tmp_path, capsys):
    src = tmp_path / "schema.xsd"
    src.write_text("<xs:schema/>", encoding="utf-8")
    assert main(["convert", str(src), "--to", "shex"]) == EXIT_ERROR
    assert "suffix" in capsys.readouterr().err


def test_convert_missing_file(tmp_path):
    assert main(["convert", str(tmp_path / "missing.shex"), "--to", "shex"]) == EXIT_ERROR


def test_audit_clean(capsys):
    assert main(["audit", PERSON, "--via", "jsonschema"]) == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report == {"clean": True, "diagnostics": []}


def test_audit_with_differences(capsys):
    # LinkML slots without slot_uri get synthesized ShEx predicates
    assert main(["audit", LIBRARY_YAML, "--via", "shex"]) == EXIT_DIFFS
    report = json.loads(capsys.readouterr().out)
    assert report["clean"] is False
    assert any(d["kind"] == "changed" for d in report["diagnostics"])


def test_audit_parse_error(tmp_path, capsys):
    src = tmp_path / "broken.json"
    src.write_text('{"$defs": ', encoding="utf-8")
    assert main(["audit", str(src), "--via", "shex"]) == EXIT_ERROR
    assert "error: Invalid JSON" in capsys.readouterr().err


def test_convert_names_with_spaces_to_shacl(tmp_path, capsys):
    src = tmp_path / "order.json"
    src.write_text(json.dumps({"$defs": {"Order Line": {
        "type": "object",
        "properties": {"unit price": {"type": "number"}},
    }}}), encoding="utf-8")
    assert main(["convert", str(src), "--to", "shacl"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Order%20Line" in out
    assert main(["audit", str(src), "--via", "shacl"]) == EXIT_DIFFS
    report = json.loads(capsys.readouterr().out)
    assert [(d["shapeId"], d["fieldName"]) for d in report["diagnostics"]] == [("Order Line", "unit price")]


def test_log_level_is_case_insensitive(capsys):
    assert main(["--log-level", "debug", "convert", PERSON, "--to", "shex"]) == EXIT_OK


def test_unknown_log_level_rejected(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--log-level", "verbose", "convert", PERSON, "--to", "shex"])
    assert exc.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_unknown_log_level_in_environment(monkeypatch, capsys):
    monkeypatch.setenv("SHEXLINK_LOG_LEVEL", "verbose")
    get_settings.cache_clear()
    try:
        assert main(["convert", PERSON, "--to", "shex"]) == EXIT_ERROR
    finally:
        get_settings.cache_clear()
    assert "log_level" in capsys.readouterr().err
