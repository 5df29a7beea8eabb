"""Constants for structure parsing, variant generation and CDR annotation."""

# Standard amino acids
AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"

# Standard amino acid 3-letter to 1-letter mapping
AA_3TO1 = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
}

# RCSB download URL template
PDB_URL_TEMPLATE = "https://files.rcsb.org/download/{pdb_id}.pdb"

# Inverse-folding service (AntiFold on BioLM)
DEFAULT_API_BASE_URL = "https://biolm.ai/api/v3"
ANTIFOLD_ENDPOINT = "antifold/generate/"
CREDENTIAL_ENV_VAR = "BIOLMAI_TOKEN"

# Regions AntiFold is allowed to redesign
DESIGNABLE_REGIONS = (
    "CDR1", "CDR2", "CDR3",
    "CDRH1", "CDRH2", "CDRH3",
    "CDRL1", "CDRL2", "CDRL3",
    "FW1", "FW2", "FW3", "FW4",
)

# Regions redesigned when the config does not name any
DEFAULT_REGIONS = ("CDR1", "CDR2", "CDR3")

# Approximate CDR windows as 0-based half-open sequence slices.
# These are index windows on the raw chain sequence, not numbering positions,
# so they only roughly track Chothia CDRs for typical Fv domains.
CDR_WINDOWS = {
    "heavy": {"1": (26, 35), "2": (52, 66), "3": (99, 106)},
    "light": {"1": (24, 34), "2": (50, 56), "3": (89, 97)},
}

# Sequences shorter than this never get fallback regions
MIN_REGION_SEQUENCE_LENGTH = 50

# Fallback chain classification: longer sequences are treated as heavy.
# Known approximation; full heavy chains and scFvs both exceed it.
HEAVY_CHAIN_LENGTH_THRESHOLD = 200

# Annotated table column names, heavy regions then light regions
REGION_COLUMNS = ["H1", "H2", "H3", "L1", "L2", "L3"]

# Variant table columns in the order they are written
VARIANT_COLUMNS = [
    "heavy",
    "light",
    "score",
    "global_score",
    "mutation_count",
    "sequence_recovery",
]

# Columns averaged per target in the summary report
SUMMARY_MEAN_COLUMNS = ["score", "global_score", "mutation_count"]

# Placeholder rendered for undefined statistics
NA_MARKER = "N/A"
