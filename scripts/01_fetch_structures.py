#!/usr/bin/env python3
"""Step 1: Fetch reference structures.

Downloads the antibody-antigen complex for every configured target from RCSB
and records which structure file belongs to which target.

Usage:
    python scripts/01_fetch_structures.py [--config config.yaml] [--output-dir results]
"""

import argparse


def main():
    parser = argparse.ArgumentParser(description="Fetch target structures")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    args = parser.parse_args()

    print("=" * 60)
    print("Antibody Variant Pipeline - Fetch Structures")
    print("=" * 60)

    from src.pipeline.config import load_pipeline_config
    from src.structure.pdb_utils import fetch_target_structures

    config = load_pipeline_config(args.config, output_dir=args.output_dir)

    print(f"\nTargets: {', '.join(t.name for t in config.targets)}")
    records, mapping = fetch_target_structures(
        config.targets,
        config.output.output_directory,
        timeout=config.execution.fetch_timeout,
    )

    failed = [t.name for t in config.targets if t.name not in mapping]

    print("\n" + "=" * 60)
    print(f"Fetched {len(records)}/{len(config.targets)} structures")
    if failed:
        print(f"Failed: {', '.join(failed)}")
    print("=" * 60)

    return 0 if records else 1


if __name__ == "__main__":
    exit(main())
