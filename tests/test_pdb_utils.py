import json
import urllib.error

import pytest

from helpers import atom_line, make_pdb
from src.pipeline.config import Target
from src.pipeline.exceptions import FetchError, ParseError
from src.structure import pdb_utils


def test_extract_omits_requested_chain_missing_from_structure():
    pdb_text = make_pdb({"H": "EVQLVESGG", "D": "MKTAYIAK"})

    sequences = pdb_utils.extract_chain_sequences(pdb_text, ["H", "L", "D"])

    assert sequences == {"H": "EVQLVESGG", "D": "MKTAYIAK"}
    assert "L" not in sequences


def test_extract_is_deterministic_and_keys_subset_of_request():
    pdb_text = make_pdb({"A": "ACDEFG", "B": "HIKLMN", "C": "PQRSTV"})

    first = pdb_utils.extract_chain_sequences(pdb_text, ["C", "A", "Z"])
    second = pdb_utils.extract_chain_sequences(pdb_text, ["C", "A", "Z"])

    assert first == second
    assert json.dumps(first) == json.dumps(second)
    assert set(first) <= {"C", "A", "Z"}
    assert list(first) == ["C", "A"]


def test_extract_skips_nonstandard_residues_and_keeps_file_order():
    lines = [
        atom_line(1, "CA", "GLY", "H", 10),
        atom_line(2, "CA", "MSE", "H", 11),
        atom_line(3, "CA", "TRP", "H", 5),
        atom_line(4, "CA", "HOH", "H", 12),
        atom_line(5, "CA", "ALA", "H", 13),
    ]
    pdb_text = "\n".join(lines) + "\nEND\n"

    sequences = pdb_utils.extract_chain_sequences(pdb_text, ["H"])

    # MSE and HOH dropped; residue 5 stays where it appears in the file
    assert sequences == {"H": "GWA"}


def test_extract_counts_insertion_codes_as_separate_residues():
    lines = [
        atom_line(1, "CA", "SER", "L", 27),
        atom_line(2, "CA", "GLN", "L", 27, icode="A"),
        atom_line(3, "CB", "GLN", "L", 27, icode="A"),
        atom_line(4, "CA", "SER", "L", 28),
    ]
    pdb_text = "\n".join(lines) + "\n"

    assert pdb_utils.extract_chain_sequences(pdb_text, ["L"]) == {"L": "SQS"}


def test_extract_rejects_text_without_coordinates():
    with pytest.raises(ParseError):
        pdb_utils.extract_chain_sequences("<html>Not Found</html>", ["H"])


def test_extract_rejects_malformed_residue_number():
    bad = atom_line(1, "CA", "ALA", "H", 1)
    bad = bad[:22] + "  x " + bad[26:]

    with pytest.raises(ParseError):
        pdb_utils.extract_chain_sequences(bad + "\n", ["H"])


def test_get_chain_ids():
    pdb_text = make_pdb({"L": "ACD", "H": "EFG"})

    assert pdb_utils.get_chain_ids(pdb_text) == ["H", "L"]


def test_write_fasta_wraps_lines(tmp_path):
    path = tmp_path / "seqs.fasta"

    pdb_utils.write_fasta({"H": "A" * 65, "L": "C" * 3}, path, prefix="EGFR")

    assert path.read_text() == ">EGFR_H\n" + "A" * 60 + "\n" + "A" * 5 + "\n>EGFR_L\nCCC\n"


def test_download_pdb_raises_fetch_error_on_http_error(monkeypatch):
    def fake_urlopen(url, timeout=None):
        raise urllib.error.HTTPError(url, 404, "Not Found", None, None)

    monkeypatch.setattr(pdb_utils.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(FetchError, match="0XXX"):
        pdb_utils.download_pdb("0xxx")


def test_fetch_target_structures_drops_failed_targets(monkeypatch, tmp_path):
    pdb_text = make_pdb({"H": "ACDE"})

    def fake_download(pdb_id, output_path=None, timeout=30.0):
        if pdb_id == "BAD1":
            raise FetchError("HTTP 404")
        with open(output_path, "w") as f:
            f.write(pdb_text)
        return pdb_text

    monkeypatch.setattr(pdb_utils, "download_pdb", fake_download)
    targets = [Target("EGFR", "1YY9"), Target("BROKEN", "BAD1")]

    records, mapping = pdb_utils.fetch_target_structures(targets, str(tmp_path))

    assert list(records) == ["EGFR"]
    assert mapping == {"EGFR": "1YY9.pdb"}
    assert json.loads((tmp_path / "target_structures.json").read_text()) == mapping
    assert (tmp_path / "structures" / "1YY9.pdb").read_text() == pdb_text


def test_fetch_structure_reuses_existing_file(monkeypatch, tmp_path):
    structures = tmp_path / "structures"
    structures.mkdir()
    (structures / "5X8L.pdb").write_text("cached")

    def fail_download(*_args, **_kwargs):
        raise AssertionError("should not download")

    monkeypatch.setattr(pdb_utils, "download_pdb", fail_download)

    record = pdb_utils.fetch_structure(Target("PDL1", "5x8l"), str(structures))

    assert record.pdb_text == "cached"
