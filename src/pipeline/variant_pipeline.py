"""End-to-end orchestration of the multi-target variant pipeline.

This module coordinates all pipeline stages:
1. Structure fetch (per target)
2. Chain sequence extraction (per target)
3. Variant generation (per target)
4. CDR annotation and diversity (per target, after generation)
5. Combined dataset and report (all targets)

Target branches share no state and run on a thread pool. Every artifact a
branch writes is recorded on its ``TargetArtifacts`` handle, which is what
later stages read from.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional
import json
import datetime

import pandas as pd

from src.analysis.diversity import (
    DiversityReport,
    annotate_variants,
    compute_diversity,
    load_annotated,
    save_annotated,
    save_diversity,
)
from src.design.variant_generator import GenerationParams, VariantGenerator, load_batch
from src.pipeline.config import PipelineConfig, Target, check_unique_targets, get_provenance
from src.pipeline.exceptions import AuthenticationError, PipelineError
from src.pipeline.report_generator import generate_report
from src.structure.pdb_utils import (
    extract_chain_sequences,
    fetch_structure,
    load_sequence_mapping,
    save_sequence_mapping,
    save_structure_mapping,
    write_fasta,
)


@dataclass
class TargetArtifacts:
    """Handles to every artifact written for one target."""

    target: Target
    structure_path: Optional[Path] = None
    sequences_path: Optional[Path] = None
    fasta_path: Optional[Path] = None
    variants_path: Optional[Path] = None
    annotated_path: Optional[Path] = None
    diversity_path: Optional[Path] = None

    # Failure bookkeeping: stage name and message of the first error
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.annotated_path is not None

    def to_dict(self) -> dict:
        def rel(path):
            return str(path) if path is not None else None

        return {
            "target": self.target.name,
            "structure": rel(self.structure_path),
            "sequences": rel(self.sequences_path),
            "fasta": rel(self.fasta_path),
            "variants": rel(self.variants_path),
            "annotated": rel(self.annotated_path),
            "diversity": rel(self.diversity_path),
            "failed_stage": self.failed_stage,
            "error": self.error,
        }


@dataclass
class PipelineResult:
    """Complete result from pipeline execution."""

    artifacts: dict[str, TargetArtifacts] = field(default_factory=dict)
    tables: dict[str, pd.DataFrame] = field(default_factory=dict)
    diversity: dict[str, DiversityReport] = field(default_factory=dict)
    report_files: list[str] = field(default_factory=list)
    provenance: dict = field(default_factory=dict)
    timestamp: str = ""

    @property
    def failures(self) -> dict[str, str]:
        return {
            name: f"{a.failed_stage}: {a.error}"
            for name, a in self.artifacts.items()
            if a.error is not None
        }

    @property
    def combined_row_count(self) -> int:
        return sum(len(df) for df in self.tables.values())

    def to_dict(self) -> dict:
        return {
            "targets": {name: a.to_dict() for name, a in sorted(self.artifacts.items())},
            "num_successful_targets": len(self.tables),
            "num_failed_targets": len(self.failures),
            "num_variants": self.combined_row_count,
            "report_files": self.report_files,
            "provenance": self.provenance,
            "timestamp": self.timestamp,
        }

    def save(self, output_path: str) -> str:
        """Save run summary to JSON file."""
        with open(output_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        return output_path


class VariantPipeline:
    """Multi-target pipeline from reference structure to summary report."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        generator_factory: Optional[Callable[[Target], VariantGenerator]] = None,
    ):
        """Initialize pipeline.

        Args:
            config: Pipeline configuration (credential already injected).
            generator_factory: Builds the VariantGenerator for a target.
                Defaults to one generator per target using the config
                credential and generation settings.
        """
        self.config = config or PipelineConfig()
        self.generator_factory = generator_factory or self._default_generator
        self.output_dir = self.config.output_path

    def _default_generator(self, target: Target) -> VariantGenerator:
        g = self.config.generation
        params = GenerationParams(
            variant_count=g.variant_count,
            sampling_temperature=g.sampling_temperature,
            regions=list(g.regions),
        )
        return VariantGenerator(
            credential=self.config.credential,
            params=params,
            base_url=g.api_base_url,
            timeout=g.timeout,
        )

    def target_dir(self, target: Target) -> Path:
        return self.output_dir / target.name

    def check_preconditions(self) -> None:
        """Check run-wide preconditions before any network call.

        Raises:
            ValueError: If two targets share a name or PDB ID.
            AuthenticationError: If the API is enabled and no credential is set.
        """
        check_unique_targets(self.config.targets)
        if self.config.execution.use_api:
            # Same check every generator runs, done once up front
            VariantGenerator(credential=self.config.credential).check_credentials()

    # Per-target stages

    def fetch_stage(self, artifacts: TargetArtifacts) -> str:
        record = fetch_structure(
            artifacts.target,
            str(self.output_dir / "structures"),
            timeout=self.config.execution.fetch_timeout,
        )
        artifacts.structure_path = record.path
        return record.pdb_text

    def extract_stage(self, artifacts: TargetArtifacts, pdb_text: str) -> dict[str, str]:
        target = artifacts.target
        sequences = extract_chain_sequences(pdb_text, target.chain_ids())

        out_dir = self.target_dir(target)
        artifacts.sequences_path = Path(save_sequence_mapping(sequences, out_dir / "sequences.json"))
        artifacts.fasta_path = Path(write_fasta(sequences, out_dir / "sequences.fasta", prefix=target.name))

        missing = [c for c in target.chain_ids() if c not in sequences]
        if missing:
            print(f"  [{target.name}] Chains not present in structure: {', '.join(missing)}")
        print(f"  [{target.name}] Extracted chains: "
              + ", ".join(f"{c} ({len(s)} aa)" for c, s in sequences.items()))
        return sequences

    def generate_stage(self, artifacts: TargetArtifacts, pdb_text: str, sequences: dict[str, str]):
        target = artifacts.target
        generator = self.generator_factory(target)
        variants_path = self.target_dir(target) / "variants_raw.json"

        if self.config.execution.use_api:
            batch = generator.generate(
                pdb_text,
                target.chain_roles(),
                target_name=target.name,
                output_path=str(variants_path),
            )
        else:
            batch = generator.run_local_mock(
                heavy_sequence=sequences.get(target.heavy_chain, ""),
                light_sequence=sequences.get(target.light_chain, ""),
                target_name=target.name,
                seed=self.config.execution.mock_seed,
                output_path=str(variants_path),
            )

        artifacts.variants_path = variants_path
        print(f"  [{target.name}] Generated {len(batch)} variants")
        return batch

    def annotate_stage(self, artifacts: TargetArtifacts, batch) -> tuple[pd.DataFrame, DiversityReport]:
        target = artifacts.target
        annotated = annotate_variants(
            batch,
            use_anarci=self.config.annotation.use_anarci,
            scheme=self.config.annotation.scheme,
        )
        report = compute_diversity(annotated, target.name)

        out_dir = self.target_dir(target)
        artifacts.annotated_path = Path(save_annotated(annotated, out_dir / "annotated_variants.csv"))
        artifacts.diversity_path = Path(save_diversity(report, out_dir / "diversity.csv"))
        return annotated, report

    def run_target(self, target: Target) -> TargetArtifacts:
        """Run fetch -> extract -> generate -> annotate for one target.

        Errors are recorded on the returned handle instead of raised, so one
        target's failure leaves the others and earlier artifacts untouched.
        """
        artifacts = TargetArtifacts(target=target)
        stage = "fetch"
        try:
            pdb_text = self.fetch_stage(artifacts)
            stage = "extract"
            sequences = self.extract_stage(artifacts, pdb_text)
            stage = "generate"
            batch = self.generate_stage(artifacts, pdb_text, sequences)
            stage = "annotate"
            self.annotate_stage(artifacts, batch)
        except (PipelineError, ValueError, OSError) as e:
            artifacts.failed_stage = stage
            artifacts.error = str(e)
            print(f"  ERROR [{target.name}] {stage}: {e}")
        except Exception as e:
            # Keep sibling branches running; the failure is reported with the target
            artifacts.failed_stage = stage
            artifacts.error = f"unexpected {type(e).__name__}: {e}"
            print(f"  ERROR [{target.name}] {stage}: {artifacts.error}")

        return artifacts

    def run_targets(self) -> dict[str, TargetArtifacts]:
        """Run all target branches, in parallel when max_workers > 1."""
        targets = list(self.config.targets)
        max_workers = max(1, min(self.config.execution.max_workers, len(targets) or 1))

        if max_workers == 1:
            results = [self.run_target(t) for t in targets]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(self.run_target, targets))

        artifacts = {a.target.name: a for a in results}

        mapping = {
            name: a.structure_path.name
            for name, a in artifacts.items()
            if a.structure_path is not None
        }
        save_structure_mapping(mapping, self.output_dir / "target_structures.json")

        return artifacts

    def collect_results(self, artifacts: dict[str, TargetArtifacts]) -> PipelineResult:
        """Load persisted per-target tables for every successful target."""
        result = PipelineResult(artifacts=artifacts)
        for name, a in artifacts.items():
            if not a.succeeded:
                continue
            result.tables[name] = load_annotated(a.annotated_path)
            result.diversity[name] = compute_diversity(result.tables[name], name)
        return result

    def assemble_report(self, result: PipelineResult) -> PipelineResult:
        result.provenance = get_provenance()
        result.provenance["config_hash"] = self.config.config_hash()
        result.report_files = generate_report(
            tables=result.tables,
            diversity=result.diversity,
            output_dir=str(self.output_dir),
            failures=result.failures,
            provenance=result.provenance,
        )
        return result

    def run(self) -> PipelineResult:
        """Run the full pipeline.

        Raises:
            AuthenticationError: If the API is enabled without a credential.
        """
        self.check_preconditions()

        self.output_dir.mkdir(parents=True, exist_ok=True)
        if self.config.output.save_config:
            self.config.save(str(self.output_dir / "pipeline_config.yaml"))

        print(f"Running {len(self.config.targets)} targets...")
        artifacts = self.run_targets()

        result = self.collect_results(artifacts)
        if self.config.output.generate_report:
            self.assemble_report(result)

        result.timestamp = datetime.datetime.now().isoformat()
        result.save(str(self.output_dir / "pipeline_result.json"))
        return result


def discover_target_artifacts(config: PipelineConfig) -> dict[str, TargetArtifacts]:
    """Build artifact handles from a previous run's output directory.

    Looks up each configured target's directory by name. Targets whose
    annotated table is missing are marked failed at the annotate stage.
    """
    output_dir = config.output_path
    artifacts = {}

    structures = {}
    mapping_path = output_dir / "target_structures.json"
    if mapping_path.exists():
        with open(mapping_path, "r") as f:
            structures = json.load(f)

    for target in config.targets:
        target_dir = output_dir / target.name
        a = TargetArtifacts(target=target)
        if target.name in structures:
            a.structure_path = output_dir / "structures" / structures[target.name]

        for attr, filename in [
            ("sequences_path", "sequences.json"),
            ("fasta_path", "sequences.fasta"),
            ("variants_path", "variants_raw.json"),
            ("annotated_path", "annotated_variants.csv"),
            ("diversity_path", "diversity.csv"),
        ]:
            path = target_dir / filename
            if path.exists():
                setattr(a, attr, path)

        if a.annotated_path is None:
            a.failed_stage = "annotate"
            a.error = f"No annotated variants found in {target_dir}"
        artifacts[target.name] = a

    return artifacts


def reannotate_from_artifacts(
    config: PipelineConfig,
    artifacts: dict[str, TargetArtifacts],
) -> dict[str, TargetArtifacts]:
    """Re-run annotation from persisted raw variant batches (no regeneration)."""
    pipeline = VariantPipeline(config)
    for name, a in artifacts.items():
        if a.variants_path is None:
            continue
        try:
            batch = load_batch(a.variants_path, name)
            pipeline.annotate_stage(a, batch)
            a.failed_stage = None
            a.error = None
        except (PipelineError, ValueError, OSError) as e:
            a.failed_stage = "annotate"
            a.error = str(e)
            print(f"  ERROR [{name}] annotate: {e}")
    return artifacts


def load_target_sequences(artifacts: TargetArtifacts) -> dict[str, str]:
    """Read the chain sequences recorded for a target."""
    if artifacts.sequences_path is None:
        return {}
    return load_sequence_mapping(artifacts.sequences_path)


def run_full_pipeline(config: Optional[PipelineConfig] = None) -> PipelineResult:
    """Convenience function to run the full pipeline."""
    pipeline = VariantPipeline(config)
    return pipeline.run()
