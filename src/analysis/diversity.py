"""CDR annotation and per-region diversity statistics for variant batches."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from src.analysis.numbering import extract_regions
from src.design.variant_generator import VariantBatch
from src.utils.constants import REGION_COLUMNS, VARIANT_COLUMNS


@dataclass
class RegionDiversity:
    """Distinct-value statistics for one CDR region."""

    region: str
    unique_count: int
    total: int
    ratio: float

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "unique_count": self.unique_count,
            "total": self.total,
            "ratio": self.ratio,
        }


@dataclass
class DiversityReport:
    """Per-region diversity for one target's batch."""

    target_name: str
    regions: list[RegionDiversity] = field(default_factory=list)

    def get(self, region: str) -> Optional[RegionDiversity]:
        for r in self.regions:
            if r.region == region:
                return r
        return None

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [r.to_dict() for r in self.regions],
            columns=["region", "unique_count", "total", "ratio"],
        )

    def to_dict(self) -> dict:
        return {
            "target": self.target_name,
            "regions": [r.to_dict() for r in self.regions],
        }

    @classmethod
    def from_dataframe(cls, target_name: str, df: pd.DataFrame) -> "DiversityReport":
        """Rebuild from a table written by ``save_diversity``."""
        regions = [
            RegionDiversity(
                region=str(row["region"]),
                unique_count=int(row["unique_count"]),
                total=int(row["total"]),
                ratio=float(row["ratio"]),
            )
            for _, row in df.iterrows()
        ]
        return cls(target_name=target_name, regions=regions)


def annotate_variants(
    batch: Union[VariantBatch, pd.DataFrame],
    use_anarci: bool = True,
    scheme: str = "chothia",
) -> pd.DataFrame:
    """Add CDR region columns to a variant table.

    Heavy regions (H1-H3) come from the ``heavy`` column and light regions
    (L1-L3) from the ``light`` column. The column only decides where the
    regions go: the fallback windows are picked by ``classify_chain`` from
    the sequence length, so a typical VH gets light-chain windows. Undefined
    regions are None; every variant keeps its row.

    Args:
        batch: VariantBatch or a variant DataFrame with heavy/light columns.
        use_anarci: Prefer ANARCI numbering over fixed windows.
        scheme: ANARCI numbering scheme.

    Returns:
        New DataFrame with the variant columns followed by H1..L3.
    """
    df = batch.to_dataframe() if isinstance(batch, VariantBatch) else batch.copy()

    # ANARCI is slow per call; batches usually repeat chains
    cache = {}

    def regions_for(sequence):
        if not isinstance(sequence, str):
            return (None, None, None)
        if sequence not in cache:
            # Chain class left to the length heuristic, not the column role
            cache[sequence] = extract_regions(
                sequence, chain_class=None, scheme=scheme, use_anarci=use_anarci
            )
        return cache[sequence]

    heavy_regions = [regions_for(s) for s in df.get("heavy", pd.Series([None] * len(df)))]
    light_regions = [regions_for(s) for s in df.get("light", pd.Series([None] * len(df)))]

    for i, name in enumerate(REGION_COLUMNS[:3]):
        df[name] = pd.Series([r[i] for r in heavy_regions], index=df.index, dtype=object)
    for i, name in enumerate(REGION_COLUMNS[3:]):
        df[name] = pd.Series([r[i] for r in light_regions], index=df.index, dtype=object)

    ordered = [c for c in VARIANT_COLUMNS if c in df.columns]
    extra = [c for c in df.columns if c not in ordered and c not in REGION_COLUMNS]
    return df[ordered + extra + REGION_COLUMNS]


def compute_diversity(
    annotated: pd.DataFrame,
    target_name: str,
    regions: Optional[list[str]] = None,
) -> DiversityReport:
    """Count distinct values per region across a batch.

    ratio = distinct non-null values / number of variants, and 0.0 for an
    empty batch. Undefined regions are excluded from the count but still
    count towards the batch size.
    """
    regions = regions or REGION_COLUMNS
    total = len(annotated)

    report = DiversityReport(target_name=target_name)
    for region in regions:
        if region in annotated.columns:
            unique_count = int(annotated[region].dropna().nunique())
        else:
            unique_count = 0
        ratio = unique_count / total if total > 0 else 0.0
        report.regions.append(
            RegionDiversity(region=region, unique_count=unique_count, total=total, ratio=ratio)
        )

    return report


def save_annotated(annotated: pd.DataFrame, output_path) -> str:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    annotated.to_csv(output_path, index=False)
    return str(output_path)


def load_annotated(input_path) -> pd.DataFrame:
    """Read an annotated table, keeping empty region cells as None."""
    df = pd.read_csv(input_path, dtype={c: object for c in REGION_COLUMNS + ["heavy", "light"]})
    for column in REGION_COLUMNS:
        if column in df.columns:
            df[column] = df[column].astype(object).where(df[column].notna(), None)
    return df


def save_diversity(report: DiversityReport, output_path) -> str:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report.to_dataframe().to_csv(output_path, index=False)
    return str(output_path)
