"""Structure retrieval and parsing modules.

This package provides:
- RCSB PDB download with a local structure cache
- Per-chain sequence extraction from PDB text
- Sequence mapping and FASTA output
"""

from src.structure.pdb_utils import (
    StructureRecord,
    download_pdb,
    fetch_structure,
    fetch_target_structures,
    save_structure_mapping,
    get_chain_ids,
    extract_chain_sequences,
    save_sequence_mapping,
    load_sequence_mapping,
    write_fasta,
)

__all__ = [
    "StructureRecord",
    "download_pdb",
    "fetch_structure",
    "fetch_target_structures",
    "save_structure_mapping",
    "get_chain_ids",
    "extract_chain_sequences",
    "save_sequence_mapping",
    "load_sequence_mapping",
    "write_fasta",
]
