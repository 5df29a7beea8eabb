"""CDR region identification for antibody chain sequences.

Uses ANARCI numbering when it is installed and falls back to fixed index
windows on the raw sequence otherwise.
"""

from dataclasses import dataclass
from typing import Optional
import warnings

from src.utils.constants import (
    CDR_WINDOWS,
    HEAVY_CHAIN_LENGTH_THRESHOLD,
    MIN_REGION_SEQUENCE_LENGTH,
)

Regions = tuple[Optional[str], Optional[str], Optional[str]]

# CDR boundaries by scheme, in numbering positions (inclusive)
CDR_BOUNDS = {
    "imgt": {
        "H": {"CDR1": (27, 38), "CDR2": (56, 65), "CDR3": (105, 117)},
        "L": {"CDR1": (27, 38), "CDR2": (56, 65), "CDR3": (105, 117)},
    },
    "chothia": {
        "H": {"CDR1": (26, 32), "CDR2": (52, 56), "CDR3": (95, 102)},
        "L": {"CDR1": (24, 34), "CDR2": (50, 56), "CDR3": (89, 97)},
    },
    "kabat": {
        "H": {"CDR1": (31, 35), "CDR2": (50, 65), "CDR3": (95, 102)},
        "L": {"CDR1": (24, 34), "CDR2": (50, 56), "CDR3": (89, 97)},
    },
}

_CHAIN_CLASS_TO_TYPE = {"heavy": "H", "light": "L"}


@dataclass
class NumberedSequence:
    """A numbered antibody sequence with CDR annotations."""

    sequence: str
    chain_type: str  # "H" or "L"
    scheme: str
    cdr1: str
    cdr2: str
    cdr3: str
    species: Optional[str] = None

    def regions(self) -> Regions:
        """CDR strings with empty regions as None."""
        return (self.cdr1 or None, self.cdr2 or None, self.cdr3 or None)


def anarci_available() -> bool:
    """Check if ANARCI can be imported."""
    try:
        import anarci  # noqa: F401
    except ImportError:
        return False
    return True


def number_sequence(
    sequence: str,
    scheme: str = "chothia",
    chain_type: Optional[str] = None,
) -> Optional[NumberedSequence]:
    """Number an antibody sequence using ANARCI.

    Args:
        sequence: Amino acid sequence (VH or VL, or a chain containing one).
        scheme: Numbering scheme ('imgt', 'chothia', 'kabat').
        chain_type: Force chain type ('H' or 'L'). If None, auto-detect.

    Returns:
        NumberedSequence with CDR annotations, or None if ANARCI is missing
        or finds no variable domain.
    """
    try:
        from anarci import anarci
    except ImportError:
        # The default warnings filter reports this once per call site
        warnings.warn(
            "ANARCI not installed, using fixed CDR windows. "
            "Install with: pip install anarci"
        )
        return None

    results = anarci([("query", sequence)], scheme=scheme, output=False)

    # results[0][0] is the list of domains found in the first sequence
    if not results or not results[0] or not results[0][0]:
        return None

    numbering_data = results[0][0][0]
    chain_info = results[1][0] if len(results) > 1 and results[1] else None

    # Format: (numbering_list, start, end)
    if isinstance(numbering_data, tuple) and len(numbering_data) >= 1:
        numbering = numbering_data[0]
    else:
        numbering = numbering_data

    detected_chain = "H"
    species = None
    if chain_info and isinstance(chain_info[0], dict):
        detected_chain = chain_info[0].get("chain_type", "H")
        species = chain_info[0].get("species")

    # ANARCI reports kappa/lambda as K/L; both use light-chain boundaries
    if detected_chain == "K":
        detected_chain = "L"
    chain = chain_type or detected_chain

    scheme_bounds = CDR_BOUNDS.get(scheme, CDR_BOUNDS["chothia"])
    bounds = scheme_bounds.get(chain, scheme_bounds["H"])

    cdrs = {"CDR1": [], "CDR2": [], "CDR3": []}
    for pos, aa in numbering:
        if aa == "-":
            continue
        region = _get_region(pos[0], bounds)
        if region in cdrs:
            cdrs[region].append(aa)

    return NumberedSequence(
        sequence=sequence,
        chain_type=chain,
        scheme=scheme,
        cdr1="".join(cdrs["CDR1"]),
        cdr2="".join(cdrs["CDR2"]),
        cdr3="".join(cdrs["CDR3"]),
        species=species,
    )


def _get_region(pos_num: int, bounds: dict) -> str:
    """Determine which region a numbering position falls into."""
    for name in ("CDR1", "CDR2", "CDR3"):
        start, end = bounds[name]
        if start <= pos_num <= end:
            return name
    return "FR"


def classify_chain(sequence: str) -> str:
    """Guess the chain class of a sequence from its length.

    Sequences longer than 200 residues are treated as heavy, everything else
    as light. This is a crude approximation: a 120-residue VH is classified
    as light and cut with light-chain windows. Kept as-is until a validated
    rule replaces it.
    """
    if len(sequence) > HEAVY_CHAIN_LENGTH_THRESHOLD:
        return "heavy"
    return "light"


def extract_regions_fallback(sequence: Optional[str], chain_class: str) -> Regions:
    """Cut CDR regions from fixed index windows.

    A region is None when the sequence is shorter than 50 residues or
    shorter than the region's end index. Never raises for any string input.

    Args:
        sequence: Chain sequence.
        chain_class: 'heavy' or 'light'.

    Returns:
        Tuple of (region-1, region-2, region-3).
    """
    windows = CDR_WINDOWS.get(chain_class, CDR_WINDOWS["light"])

    if not sequence or len(sequence) < MIN_REGION_SEQUENCE_LENGTH:
        return (None, None, None)

    regions = []
    for key in ("1", "2", "3"):
        start, end = windows[key]
        regions.append(sequence[start:end] if len(sequence) >= end else None)

    return tuple(regions)


def extract_regions(
    sequence: Optional[str],
    chain_class: Optional[str] = None,
    scheme: str = "chothia",
    use_anarci: bool = True,
) -> Regions:
    """Extract CDR1-3 substrings for a chain sequence.

    Args:
        sequence: Chain sequence.
        chain_class: 'heavy' or 'light'. If None, ANARCI detects the chain
            type and the window fallback uses ``classify_chain``.
        scheme: ANARCI numbering scheme.
        use_anarci: Try ANARCI before the window fallback.

    Returns:
        Tuple of (region-1, region-2, region-3), None for undefined regions.
    """
    if not sequence:
        return (None, None, None)

    if use_anarci:
        try:
            numbered = number_sequence(
                sequence,
                scheme=scheme,
                chain_type=_CHAIN_CLASS_TO_TYPE.get(chain_class),
            )
        except Exception as e:
            # ANARCI wraps HMMER subprocesses; any failure falls back to windows
            warnings.warn(f"ANARCI numbering failed ({e}), using fixed CDR windows")
            numbered = None

        if numbered is not None:
            return numbered.regions()

    return extract_regions_fallback(sequence, chain_class or classify_chain(sequence))
