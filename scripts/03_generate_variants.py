#!/usr/bin/env python3
"""Step 3: Generate antibody variants with AntiFold.

Submits each target's complex structure to the inverse-folding API and
stores the raw response. Requires BIOLMAI_TOKEN (or --token) unless
--no-api is given, in which case a seeded mock batch is written instead.

Usage:
    python scripts/03_generate_variants.py [--config config.yaml] [--no-api]
        [--num-variants 100] [--temperature 0.8]
"""

import argparse


def main():
    parser = argparse.ArgumentParser(description="Generate antibody variants")
    parser.add_argument("--config", type=str, default="config.yaml", help="Config file")
    parser.add_argument("--output-dir", type=str, help="Override output directory")
    parser.add_argument("--token", type=str, help="API token (default: $BIOLMAI_TOKEN)")
    parser.add_argument("--no-api", action="store_true", help="Write mock variants instead of calling the API")
    parser.add_argument("--num-variants", type=int, help="Variants per target")
    parser.add_argument("--temperature", type=float, help="Sampling temperature")
    args = parser.parse_args()

    print("=" * 60)
    print("Antibody Variant Pipeline - Variant Generation")
    print("=" * 60)

    from src.pipeline.config import load_pipeline_config
    from src.pipeline.exceptions import AuthenticationError, PipelineError
    from src.pipeline.variant_pipeline import (
        VariantPipeline,
        discover_target_artifacts,
        load_target_sequences,
    )

    config = load_pipeline_config(
        args.config, output_dir=args.output_dir, token=args.token, no_api=args.no_api
    )
    if args.num_variants is not None:
        config.generation.variant_count = args.num_variants
    if args.temperature is not None:
        config.generation.sampling_temperature = args.temperature

    pipeline = VariantPipeline(config)

    try:
        pipeline.check_preconditions()
    except (AuthenticationError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"\nMode: {'API' if config.execution.use_api else 'mock'}")
    print(f"Variants per target: {config.generation.variant_count}")
    print(f"Sampling temperature: {config.generation.sampling_temperature}")

    artifacts = discover_target_artifacts(config)
    generated = 0
    for name, a in artifacts.items():
        if a.structure_path is None or a.sequences_path is None:
            print(f"  ERROR [{name}] generate: missing structure or sequences. Run steps 01-02 first.")
            continue
        try:
            pipeline.generate_stage(a, a.structure_path.read_text(), load_target_sequences(a))
            generated += 1
        except (PipelineError, ValueError, OSError) as e:
            print(f"  ERROR [{name}] generate: {e}")

    print("\n" + "=" * 60)
    print(f"Generated variants for {generated}/{len(artifacts)} targets")
    print("=" * 60)

    return 0 if generated else 1


if __name__ == "__main__":
    exit(main())
