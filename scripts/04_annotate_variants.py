#!/usr/bin/env python3
"""Step 4: Annotate CDR regions and compute diversity.

Reads each target's raw variant batch, adds CDR region columns and writes
the annotated table plus per-region diversity statistics.

Usage:
    python scripts/04_annotate_variants.py [--config config.yaml] [--no-anarci]
"""

import argparse


def main():
    parser = argparse.ArgumentParser(description="Annotate CDR regions")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    parser.add_argument("--no-anarci", action="store_true", help="Use fixed CDR windows only")
    args = parser.parse_args()

    print("=" * 60)
    print("Antibody Variant Pipeline - CDR Annotation")
    print("=" * 60)

    from src.pipeline.config import load_pipeline_config
    from src.pipeline.variant_pipeline import discover_target_artifacts, reannotate_from_artifacts

    config = load_pipeline_config(args.config, output_dir=args.output_dir)
    if args.no_anarci:
        config.annotation.use_anarci = False

    artifacts = discover_target_artifacts(config)
    for name, a in artifacts.items():
        if a.variants_path is None:
            print(f"  ERROR [{name}] annotate: no variant batch. Run step 03 first.")

    artifacts = reannotate_from_artifacts(config, artifacts)
    annotated = [name for name, a in artifacts.items() if a.succeeded]

    for name in annotated:
        print(f"  [{name}] Annotated: {artifacts[name].annotated_path}")

    print("\n" + "=" * 60)
    print(f"Annotated {len(annotated)}/{len(artifacts)} targets")
    print("=" * 60)

    return 0 if annotated else 1


if __name__ == "__main__":
    exit(main())
