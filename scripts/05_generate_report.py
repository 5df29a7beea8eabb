#!/usr/bin/env python3
"""Step 5: Generate combined dataset and summary report.

Merges the annotated tables of all targets into combined_variants.csv and
writes HTML and JSON summaries. Only reads persisted artifacts, so it can be
re-run without regenerating variants.

Usage:
    python scripts/05_generate_report.py [--config config.yaml] [--output-dir results]
"""

import argparse


def main():
    parser = argparse.ArgumentParser(description="Generate report")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    args = parser.parse_args()

    print("=" * 60)
    print("Antibody Variant Pipeline - Report Generation")
    print("=" * 60)

    from src.pipeline.config import load_pipeline_config
    from src.pipeline.variant_pipeline import VariantPipeline, discover_target_artifacts

    config = load_pipeline_config(args.config, output_dir=args.output_dir)
    pipeline = VariantPipeline(config)

    artifacts = discover_target_artifacts(config)
    result = pipeline.collect_results(artifacts)

    print(f"\nTargets with results: {len(result.tables)}/{len(artifacts)}")
    for name, message in sorted(result.failures.items()):
        print(f"  Skipping {name}: {message}")

    if not result.tables:
        print("ERROR: No annotated variants found. Run steps 01-04 first.")
        return 1

    pipeline.assemble_report(result)

    print("\n" + "=" * 60)
    print("Report generation complete!")
    print(f"Combined dataset: {result.combined_row_count} variants")
    print(f"Reports saved to: {config.output.output_directory}")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    exit(main())
