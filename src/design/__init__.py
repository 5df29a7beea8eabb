"""Design modules for antibody variant generation.

This package provides:
- AntiFold inverse-folding client (BioLM API)
- Seeded offline mock generation
- Variant batch parsing and persistence
"""

from src.design.variant_generator import (
    GenerationParams,
    Variant,
    VariantBatch,
    VariantGenerator,
    parse_response,
    load_batch,
)

__all__ = [
    "GenerationParams",
    "Variant",
    "VariantBatch",
    "VariantGenerator",
    "parse_response",
    "load_batch",
]
