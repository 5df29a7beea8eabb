#!/usr/bin/env python3
"""Run the complete antibody variant pipeline.

Runs every target branch (fetch, extract, generate, annotate) in parallel and
then assembles the combined dataset and report. With --stepwise the numbered
step scripts are run one after another instead:
1. Fetch structures
2. Extract sequences
3. Generate variants
4. Annotate CDR regions
5. Report generation

Usage:
    python scripts/run_full_pipeline.py [--config config.yaml] [--no-api] [--stepwise]
"""

import argparse
from pathlib import Path
import subprocess
import sys


def run_step(script_name: str, args: list[str] = None) -> int:
    """Run a pipeline step script.

    Args:
        script_name: Name of script in scripts/ directory.
        args: Additional command line arguments.

    Returns:
        Return code from script.
    """
    script_path = Path(__file__).resolve().parent / script_name
    if not script_path.exists():
        print(f"ERROR: Script not found: {script_path}")
        return 1

    cmd = [sys.executable, str(script_path)]
    if args:
        cmd.extend(args)

    result = subprocess.run(cmd)
    return result.returncode


def run_stepwise(args) -> int:
    common_args = ["--config", args.config]
    if args.output_dir:
        common_args += ["--output-dir", args.output_dir]

    steps = [
        ("01_fetch_structures.py", "Fetch structures"),
        ("02_extract_sequences.py", "Extract sequences"),
        ("03_generate_variants.py", "Generate variants"),
        ("04_annotate_variants.py", "Annotate CDR regions"),
        ("05_generate_report.py", "Report generation"),
    ]

    for i, (script, description) in enumerate(steps, start=1):
        if i < args.start_from:
            continue
        if i > args.stop_after:
            break

        print(f"\n{'=' * 70}")
        print(f"[Step {i}] {description}")
        print("=" * 70)

        step_args = common_args.copy()
        if i == 3:
            if args.no_api:
                step_args.append("--no-api")
            if args.token:
                step_args += ["--token", args.token]

        ret = run_step(script, step_args)

        if ret != 0:
            print(f"\nERROR: Step {i} ({description}) failed with code {ret}")
            print("Pipeline aborted.")
            return ret

        print(f"\n[Step {i}] {description} - COMPLETE")

    return 0


def main():
    parser = argparse.ArgumentParser(description="Run full antibody variant pipeline")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    parser.add_argument("--token", type=str, help="API token (default: $BIOLMAI_TOKEN)")
    parser.add_argument("--no-api", action="store_true", help="Use mock variants instead of the API")
    parser.add_argument("--stepwise", action="store_true", help="Run step scripts sequentially")
    parser.add_argument("--start-from", type=int, default=1, help="Start from step N (1-5, stepwise only)")
    parser.add_argument("--stop-after", type=int, default=5, help="Stop after step N (1-5, stepwise only)")
    args = parser.parse_args()

    print("=" * 70)
    print("Antibody Variant Pipeline - Full Run")
    print("=" * 70)
    print(f"Config: {args.config}")
    print(f"Generation: {'mock' if args.no_api else 'API'}")
    print(f"Mode: {'stepwise' if args.stepwise else 'parallel'}")
    print("=" * 70)

    if args.stepwise:
        ret = run_stepwise(args)
        if ret != 0:
            return ret
    else:
        from src.pipeline.config import load_pipeline_config
        from src.pipeline.exceptions import AuthenticationError
        from src.pipeline.variant_pipeline import VariantPipeline

        config = load_pipeline_config(
            args.config, output_dir=args.output_dir, token=args.token, no_api=args.no_api
        )

        try:
            result = VariantPipeline(config).run()
        except (AuthenticationError, ValueError) as e:
            print(f"ERROR: {e}")
            print("Pipeline aborted before any target was processed.")
            return 1

        print(f"\nSuccessful targets: {len(result.tables)}/{len(result.artifacts)}")
        for name, message in sorted(result.failures.items()):
            print(f"  FAILED {name}: {message}")
        print(f"Combined dataset: {result.combined_row_count} variants")

        if not result.tables:
            return 1

    output_dir = args.output_dir or "results"
    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE!")
    print("=" * 70)
    print("\nOutputs:")
    print(f"  - {output_dir}/structures/            : Reference structures")
    print(f"  - {output_dir}/<target>/              : Sequences, raw variants, annotations")
    print(f"  - {output_dir}/combined_variants.csv  : Combined dataset")
    print(f"  - {output_dir}/summary_report.html    : Summary report")
    print("=" * 70)

    return 0


if __name__ == "__main__":
    exit(main())
