"""PDB retrieval, parsing and sequence export utilities."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
import json
import urllib.error
import urllib.request

from src.pipeline.config import Target
from src.pipeline.exceptions import FetchError, ParseError
from src.utils.constants import AA_3TO1, PDB_URL_TEMPLATE


@dataclass
class StructureRecord:
    """Raw structure text fetched for a target."""

    target: Target
    pdb_text: str
    path: Optional[Path] = None


def download_pdb(
    pdb_id: str,
    output_path: Optional[str] = None,
    timeout: float = 30.0,
) -> str:
    """Download a PDB file from RCSB.

    Args:
        pdb_id: 4-letter PDB ID (e.g., "1YY9").
        output_path: Optional path to save the file.
        timeout: Socket timeout in seconds.

    Returns:
        PDB file content as string.

    Raises:
        FetchError: If the download fails or returns a non-success status.
    """
    url = PDB_URL_TEMPLATE.format(pdb_id=pdb_id.upper())

    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            pdb_content = response.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raise FetchError(f"Failed to download PDB {pdb_id}: HTTP {e.code} from {url}") from e
    except (urllib.error.URLError, TimeoutError) as e:
        raise FetchError(f"Failed to download PDB {pdb_id}: {e}") from e

    if output_path:
        with open(output_path, "w") as f:
            f.write(pdb_content)

    return pdb_content


def fetch_structure(
    target: Target,
    structures_dir: str,
    timeout: float = 30.0,
    overwrite: bool = False,
) -> StructureRecord:
    """Fetch the reference structure for one target.

    An existing ``<PDBID>.pdb`` in ``structures_dir`` is reused unless
    ``overwrite`` is set.

    Raises:
        FetchError: If the structure is not cached and cannot be downloaded.
    """
    structures_dir = Path(structures_dir)
    structures_dir.mkdir(parents=True, exist_ok=True)
    pdb_path = structures_dir / f"{target.pdb_id.upper()}.pdb"

    if pdb_path.exists() and not overwrite:
        print(f"  [{target.name}] Already exists: {pdb_path}")
        return StructureRecord(target=target, pdb_text=pdb_path.read_text(), path=pdb_path)

    print(f"  [{target.name}] Downloading {target.pdb_id}...")
    pdb_text = download_pdb(target.pdb_id, str(pdb_path), timeout=timeout)
    print(f"  [{target.name}] Saved to: {pdb_path}")

    return StructureRecord(target=target, pdb_text=pdb_text, path=pdb_path)


def fetch_target_structures(
    targets: Iterable[Target],
    output_dir: str,
    timeout: float = 30.0,
) -> tuple[dict[str, StructureRecord], dict[str, str]]:
    """Fetch structures for several targets and record the target -> file mapping.

    Targets whose download fails are reported and left out of both returned
    mappings; there is no retry.

    Args:
        targets: Targets to fetch.
        output_dir: Pipeline output directory.
        timeout: Socket timeout in seconds.

    Returns:
        Tuple of (target name -> StructureRecord, target name -> filename).
    """
    output_dir = Path(output_dir)
    structures_dir = output_dir / "structures"

    records = {}
    mapping = {}

    for target in targets:
        try:
            record = fetch_structure(target, str(structures_dir), timeout=timeout)
        except FetchError as e:
            print(f"  ERROR [{target.name}] structure fetch: {e}")
            continue
        records[target.name] = record
        mapping[target.name] = record.path.name

    save_structure_mapping(mapping, output_dir / "target_structures.json")

    return records, mapping


def save_structure_mapping(mapping: dict[str, str], output_path) -> str:
    """Write the target -> structure filename mapping as JSON."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(mapping, f, indent=2, sort_keys=True)
    return str(output_path)


def _iter_atom_residues(pdb_text: str):
    """Yield (chain_id, residue_key, residue_name) for each ATOM line."""
    for line_no, line in enumerate(pdb_text.splitlines(), start=1):
        if not line.startswith("ATOM"):
            continue
        if len(line) < 27:
            raise ParseError(f"Truncated ATOM record on line {line_no}")

        chain = line[21]
        res_name = line[17:20].strip()
        try:
            res_num = int(line[22:26])
        except ValueError:
            raise ParseError(
                f"Invalid residue number {line[22:26]!r} on line {line_no}"
            ) from None
        insertion_code = line[26].strip()

        yield chain, (res_num, insertion_code), res_name


def get_chain_ids(pdb_text: str) -> list[str]:
    """Get all chain IDs with ATOM records, sorted."""
    return sorted({chain for chain, _, _ in _iter_atom_residues(pdb_text)})


def extract_chain_sequences(
    pdb_text: str,
    chain_ids: Iterable[str],
) -> dict[str, str]:
    """Extract amino acid sequences for the requested chains.

    Residues are taken in file order, one per (residue number, insertion
    code). Residue names outside the 20 standard amino acids are skipped, so
    a sequence can be shorter than the chain's residue count. Requested chains
    that have no ATOM records are left out of the result.

    Args:
        pdb_text: PDB file content as string.
        chain_ids: Chain IDs to extract.

    Returns:
        Dict mapping chain ID to sequence (1-letter codes), in request order.

    Raises:
        ParseError: If the text holds no ATOM/HETATM records or an ATOM
            record is malformed.
    """
    if not any(line.startswith(("ATOM", "HETATM")) for line in pdb_text.splitlines()):
        raise ParseError("No coordinate records found in structure text")

    requested = list(dict.fromkeys(chain_ids))
    residues = {chain: [] for chain in requested}
    seen = {chain: set() for chain in requested}

    for chain, res_key, res_name in _iter_atom_residues(pdb_text):
        if chain not in residues or res_key in seen[chain]:
            continue
        seen[chain].add(res_key)
        if res_name in AA_3TO1:
            residues[chain].append(AA_3TO1[res_name])

    return {
        chain: "".join(residues[chain])
        for chain in requested
        if seen[chain]
    }


def save_sequence_mapping(sequences: dict[str, str], output_path) -> str:
    """Write a chain ID -> sequence mapping as JSON."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(sequences, f, indent=2)
    return str(output_path)


def load_sequence_mapping(input_path) -> dict[str, str]:
    """Read a chain ID -> sequence mapping written by ``save_sequence_mapping``."""
    with open(input_path, "r") as f:
        return json.load(f)


def write_fasta(
    sequences: dict[str, str],
    output_path,
    prefix: str = "",
    line_width: int = 60,
) -> str:
    """Save chain sequences to FASTA.

    Headers are ``>{prefix}_{chain}`` (or ``>{chain}`` without a prefix).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        for chain, seq in sequences.items():
            header = f"{prefix}_{chain}" if prefix else chain
            f.write(f">{header}\n")
            for i in range(0, len(seq), line_width):
                f.write(seq[i:i + line_width] + "\n")

    return str(output_path)
