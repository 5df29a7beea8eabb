"""Report generation for pipeline results.

Merges per-target annotated variant tables into one dataset and renders
a summary of variant scores and CDR diversity per target.
"""

from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Optional
import json
import math
import datetime

import pandas as pd

from src.analysis.diversity import DiversityReport
from src.utils.constants import NA_MARKER, SUMMARY_MEAN_COLUMNS


@dataclass
class ReportConfig:
    """Configuration for report generation."""

    title: str = "Antibody Variant Generation Report"
    output_format: str = "both"  # "html", "json", or "both"
    combined_filename: str = "combined_variants.csv"


def combine_datasets(tables: dict[str, pd.DataFrame]) -> pd.DataFrame:
    """Concatenate per-target tables row-wise with a leading ``target`` column.

    Targets are combined in sorted name order so the result does not depend
    on the order branches finished in. Columns missing for a target are NaN
    for that target's rows.

    Args:
        tables: Target name -> annotated variant table.

    Returns:
        Combined DataFrame; empty (with a ``target`` column) if no tables.
    """
    frames = []
    for name in sorted(tables):
        df = tables[name].copy()
        df.insert(0, "target", name)
        frames.append(df)

    if not frames:
        return pd.DataFrame(columns=["target"])

    return pd.concat(frames, ignore_index=True, sort=False)


def _mean_or_none(df: pd.DataFrame, column: str) -> Optional[float]:
    """Mean of the numeric values in a column, or None if there are none."""
    if column not in df.columns:
        return None
    values = pd.to_numeric(df[column], errors="coerce").dropna()
    if values.empty:
        return None
    return float(values.mean())


def _fmt(value: Optional[float], precision: int = 3) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return NA_MARKER
    return f"{value:.{precision}f}"


class ReportGenerator:
    """Generator for the combined dataset and summary reports."""

    def __init__(self, config: Optional[ReportConfig] = None):
        """Initialize report generator.

        Args:
            config: Report configuration.
        """
        self.config = config or ReportConfig()

    def generate_summary_stats(
        self,
        tables: dict[str, pd.DataFrame],
        diversity: dict[str, DiversityReport],
    ) -> dict:
        """Generate per-target summary statistics.

        Args:
            tables: Target name -> annotated variant table.
            diversity: Target name -> diversity report.

        Returns:
            Summary dictionary keyed by target name (sorted).
        """
        summary = {}
        for name in sorted(tables):
            df = tables[name]
            means = {column: _mean_or_none(df, column) for column in SUMMARY_MEAN_COLUMNS}
            report = diversity.get(name)
            summary[name] = {
                "num_variants": len(df),
                "mean_score": means["score"],
                "mean_global_score": means["global_score"],
                "mean_mutation_count": means["mutation_count"],
                "diversity": report.to_dict()["regions"] if report else [],
            }
        return summary

    def generate_html_report(
        self,
        tables: dict[str, pd.DataFrame],
        diversity: dict[str, DiversityReport],
        failures: Optional[dict[str, str]] = None,
        provenance: Optional[dict] = None,
    ) -> str:
        """Generate HTML report.

        Args:
            tables: Target name -> annotated variant table.
            diversity: Target name -> diversity report.
            failures: Target name -> error message for targets that failed.
            provenance: Optional provenance metadata.

        Returns:
            HTML string.
        """
        summary = self.generate_summary_stats(tables, diversity)
        failures = failures or {}
        title = escape(self.config.title)
        total_variants = sum(s["num_variants"] for s in summary.values())

        html = f"""<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; }}
        h1 {{ color: #333; }}
        h2 {{ color: #666; border-bottom: 1px solid #ccc; padding-bottom: 5px; }}
        table {{ border-collapse: collapse; width: 100%; margin: 20px 0; }}
        th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
        th {{ background-color: #4CAF50; color: white; }}
        tr:nth-child(even) {{ background-color: #f2f2f2; }}
        .warning {{ background-color: #fff3cd; padding: 10px; border-radius: 5px; margin: 10px 0; }}
        .metric {{ display: inline-block; margin: 10px; padding: 15px; background: #f5f5f5; border-radius: 5px; }}
        .metric-value {{ font-size: 24px; font-weight: bold; color: #333; }}
        .metric-label {{ font-size: 12px; color: #666; }}
    </style>
</head>
<body>
    <h1>{title}</h1>

    <div class="warning">
        <strong>Note:</strong> CDR regions may come from fixed sequence windows
        rather than antibody numbering. Treat diversity ratios as approximate.
    </div>

    <h2>Summary</h2>
    <div>
        <div class="metric">
            <div class="metric-value">{len(summary)}</div>
            <div class="metric-label">Targets</div>
        </div>
        <div class="metric">
            <div class="metric-value">{total_variants}</div>
            <div class="metric-label">Total Variants</div>
        </div>
        <div class="metric">
            <div class="metric-value">{len(failures)}</div>
            <div class="metric-label">Failed Targets</div>
        </div>
    </div>

    <table>
        <tr>
            <th>Target</th>
            <th>Variants</th>
            <th>Mean Score</th>
            <th>Mean Global Score</th>
            <th>Mean Mutations</th>
        </tr>
"""

        for name, stats in summary.items():
            html += f"""        <tr>
            <td>{escape(name)}</td>
            <td>{stats['num_variants']}</td>
            <td>{_fmt(stats['mean_score'])}</td>
            <td>{_fmt(stats['mean_global_score'])}</td>
            <td>{_fmt(stats['mean_mutation_count'], precision=2)}</td>
        </tr>
"""

        html += """    </table>
"""

        for name, stats in summary.items():
            html += f"""
    <h2>{escape(name)}</h2>
    <table>
        <tr><th>Region</th><th>Unique</th><th>Total</th><th>Diversity Ratio</th></tr>
"""
            for region in stats["diversity"]:
                html += f"""        <tr>
            <td>{region['region']}</td>
            <td>{region['unique_count']}</td>
            <td>{region['total']}</td>
            <td>{region['ratio']:.3f}</td>
        </tr>
"""
            html += "    </table>\n"

        if failures:
            html += """
    <h2>Failed Targets</h2>
    <ul>
"""
            for name in sorted(failures):
                html += f"        <li><strong>{escape(name)}:</strong> {escape(failures[name])}</li>\n"
            html += "    </ul>\n"

        if provenance:
            html += """
    <h2>Provenance</h2>
    <ul>
"""
            for key, value in provenance.items():
                html += f"        <li><strong>{escape(str(key))}:</strong> {escape(str(value))}</li>\n"
            html += "    </ul>\n"

        html += f"""
    <hr>
    <p><em>Generated: {datetime.datetime.now().isoformat()}</em></p>
</body>
</html>
"""
        return html

    def generate_json_report(
        self,
        tables: dict[str, pd.DataFrame],
        diversity: dict[str, DiversityReport],
        failures: Optional[dict[str, str]] = None,
        provenance: Optional[dict] = None,
    ) -> dict:
        """Generate JSON report."""
        return {
            "targets": self.generate_summary_stats(tables, diversity),
            "failures": dict(sorted((failures or {}).items())),
            "provenance": provenance,
            "generated_at": datetime.datetime.now().isoformat(),
        }

    def save_report(
        self,
        tables: dict[str, pd.DataFrame],
        diversity: dict[str, DiversityReport],
        output_dir: str,
        failures: Optional[dict[str, str]] = None,
        provenance: Optional[dict] = None,
    ) -> list[str]:
        """Save the combined dataset and reports to files.

        The combined CSV carries no timestamp, so re-running on the same
        per-target tables reproduces it byte for byte.

        Returns:
            List of saved file paths.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        saved_files = []

        combined = combine_datasets(tables)
        combined_path = output_dir / self.config.combined_filename
        combined.to_csv(combined_path, index=False)
        saved_files.append(str(combined_path))

        if self.config.output_format in ["json", "both"]:
            json_report = self.generate_json_report(tables, diversity, failures, provenance)
            json_path = output_dir / "summary_report.json"
            with open(json_path, "w") as f:
                json.dump(json_report, f, indent=2)
            saved_files.append(str(json_path))

        if self.config.output_format in ["html", "both"]:
            html_report = self.generate_html_report(tables, diversity, failures, provenance)
            html_path = output_dir / "summary_report.html"
            with open(html_path, "w") as f:
                f.write(html_report)
            saved_files.append(str(html_path))

        return saved_files


def generate_report(
    tables: dict[str, pd.DataFrame],
    diversity: dict[str, DiversityReport],
    output_dir: str,
    failures: Optional[dict[str, str]] = None,
    provenance: Optional[dict] = None,
) -> list[str]:
    """Convenience function for report generation.

    Returns:
        List of saved file paths.
    """
    generator = ReportGenerator(ReportConfig(output_format="both"))

    saved = generator.save_report(
        tables=tables,
        diversity=diversity,
        output_dir=output_dir,
        failures=failures,
        provenance=provenance,
    )

    print(f"Reports saved: {len(saved)} files")
    for path in saved:
        print(f"  {path}")

    return saved
