import sys

import pytest

from src.analysis import numbering
from src.utils.constants import CDR_WINDOWS


HEAVY_SEQ = "".join("ACDEFGHIKLMNPQRSTVWY"[i % 20] for i in range(120))


def test_extract_regions_falls_back_when_anarci_missing(monkeypatch):
    monkeypatch.setattr(numbering, "number_sequence", lambda *args, **_kwargs: None)

    regions = numbering.extract_regions(HEAVY_SEQ, chain_class="heavy")

    assert regions == (HEAVY_SEQ[26:35], HEAVY_SEQ[52:66], HEAVY_SEQ[99:106])


def test_extract_regions_falls_back_when_anarci_raises(monkeypatch):
    def broken(*_args, **_kwargs):
        raise RuntimeError("hmmscan not found")

    monkeypatch.setattr(numbering, "number_sequence", broken)

    with pytest.warns(UserWarning, match="hmmscan"):
        regions = numbering.extract_regions(HEAVY_SEQ, chain_class="light")

    assert regions == (HEAVY_SEQ[24:34], HEAVY_SEQ[50:56], HEAVY_SEQ[89:97])


def test_extract_regions_prefers_anarci_result(monkeypatch):
    numbered = numbering.NumberedSequence(
        sequence=HEAVY_SEQ, chain_type="H", scheme="chothia",
        cdr1="GFTFS", cdr2="", cdr3="ARDY",
    )
    monkeypatch.setattr(numbering, "number_sequence", lambda *args, **_kwargs: numbered)

    assert numbering.extract_regions(HEAVY_SEQ, chain_class="heavy") == ("GFTFS", None, "ARDY")


def test_short_sequence_yields_undefined_regions():
    assert numbering.extract_regions_fallback("A" * 49, "heavy") == (None, None, None)
    assert numbering.extract_regions_fallback("", "light") == (None, None, None)
    assert numbering.extract_regions_fallback(None, "light") == (None, None, None)


def test_sequence_shorter_than_region_end_yields_undefined_region():
    # 70 residues: heavy region 1 [26,35) and 2 [52,66) fit, region 3 [99,106) does not
    regions = numbering.extract_regions_fallback("A" * 70, "heavy")

    assert regions[0] == "A" * 9
    assert regions[1] == "A" * 14
    assert regions[2] is None


def test_region_boundary_is_inclusive_of_exact_end_length():
    regions = numbering.extract_regions_fallback("C" * 97, "light")

    assert regions[2] == "C" * 8


@pytest.mark.parametrize("length", [0, 10, 49, 50, 55, 66, 98, 105, 106, 150, 250])
@pytest.mark.parametrize("chain_class", ["heavy", "light"])
def test_fallback_regions_never_exceed_window(length, chain_class):
    regions = numbering.extract_regions_fallback("W" * length, chain_class)

    for region, (start, end) in zip(regions, CDR_WINDOWS[chain_class].values()):
        assert region is None or len(region) == end - start


def test_classify_chain_uses_length_threshold():
    assert numbering.classify_chain("A" * 201) == "heavy"
    assert numbering.classify_chain("A" * 200) == "light"
    assert numbering.classify_chain("A" * 120) == "light"


def test_extract_regions_without_chain_class_uses_classifier():
    long_seq = "K" * 220

    regions = numbering.extract_regions(long_seq, use_anarci=False)

    assert regions == ("K" * 9, "K" * 14, "K" * 7)


def test_extract_regions_lets_anarci_detect_chain_type(monkeypatch):
    seen = {}

    def fake_number(sequence, scheme="chothia", chain_type=None):
        seen["chain_type"] = chain_type
        return None

    monkeypatch.setattr(numbering, "number_sequence", fake_number)

    regions = numbering.extract_regions(HEAVY_SEQ)

    assert seen["chain_type"] is None
    # Fallback: 120 residues is classified as light
    assert regions == (HEAVY_SEQ[24:34], HEAVY_SEQ[50:56], HEAVY_SEQ[89:97])


def test_number_sequence_warns_when_anarci_missing(monkeypatch):
    monkeypatch.setitem(sys.modules, "anarci", None)

    with pytest.warns(UserWarning, match="ANARCI not installed"):
        assert numbering.number_sequence(HEAVY_SEQ) is None
