#!/usr/bin/env python3
"""Step 2: Extract chain sequences.

Reads each target's structure (from the step 1 mapping) and writes the
heavy/light/antigen chain sequences as JSON and FASTA.

Usage:
    python scripts/02_extract_sequences.py [--config config.yaml] [--output-dir results]
"""

import argparse


def main():
    parser = argparse.ArgumentParser(description="Extract chain sequences")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    args = parser.parse_args()

    print("=" * 60)
    print("Antibody Variant Pipeline - Extract Sequences")
    print("=" * 60)

    from src.pipeline.config import load_pipeline_config
    from src.pipeline.exceptions import PipelineError
    from src.pipeline.variant_pipeline import VariantPipeline, discover_target_artifacts

    config = load_pipeline_config(args.config, output_dir=args.output_dir)
    pipeline = VariantPipeline(config)
    artifacts = discover_target_artifacts(config)

    extracted = 0
    for name, a in artifacts.items():
        if a.structure_path is None or not a.structure_path.exists():
            print(f"  ERROR [{name}] extract: no structure file. Run step 01 first.")
            continue
        try:
            pipeline.extract_stage(a, a.structure_path.read_text())
            extracted += 1
        except (PipelineError, OSError) as e:
            print(f"  ERROR [{name}] extract: {e}")

    print("\n" + "=" * 60)
    print(f"Extracted sequences for {extracted}/{len(artifacts)} targets")
    print("=" * 60)

    return 0 if extracted else 1


if __name__ == "__main__":
    exit(main())
