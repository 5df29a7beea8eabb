"""Pipeline configuration management."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os
import yaml
import json
import hashlib
import datetime

from src.utils.constants import (
    CREDENTIAL_ENV_VAR,
    DEFAULT_API_BASE_URL,
    DEFAULT_REGIONS,
)


@dataclass(frozen=True)
class Target:
    """A named antigen with a reference antibody complex structure."""

    name: str
    pdb_id: str
    heavy_chain: str = "H"
    light_chain: str = "L"
    antigen_chain: str = "A"

    def chain_roles(self) -> dict[str, str]:
        """Get the role -> chain ID mapping."""
        return {
            "heavy": self.heavy_chain,
            "light": self.light_chain,
            "antigen": self.antigen_chain,
        }

    def chain_ids(self) -> list[str]:
        """Get chain IDs in role order (heavy, light, antigen)."""
        return [self.heavy_chain, self.light_chain, self.antigen_chain]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "pdb_id": self.pdb_id,
            "heavy_chain": self.heavy_chain,
            "light_chain": self.light_chain,
            "antigen_chain": self.antigen_chain,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Target":
        """Create from dictionary.

        Accepts either flat chain keys or a nested ``chains`` mapping:
            chains:
              heavy: H
              light: L
              antigen: A
        """
        chains = data.get("chains", {})
        return cls(
            name=data["name"],
            pdb_id=data["pdb_id"],
            heavy_chain=chains.get("heavy", data.get("heavy_chain", "H")),
            light_chain=chains.get("light", data.get("light_chain", "L")),
            antigen_chain=chains.get("antigen", data.get("antigen_chain", "A")),
        )


# Reference deployment: four antibody-antigen complexes from the PDB
DEFAULT_TARGETS = [
    # Cetuximab Fab bound to EGFR domain III
    Target(name="EGFR", pdb_id="1YY9", heavy_chain="D", light_chain="C", antigen_chain="A"),
    # Atezolizumab Fab bound to PD-L1
    Target(name="PDL1", pdb_id="5X8L", heavy_chain="H", light_chain="L", antigen_chain="A"),
    # Trastuzumab Fab bound to HER2 extracellular domain
    Target(name="HER2", pdb_id="1N8Z", heavy_chain="B", light_chain="A", antigen_chain="C"),
    # Adalimumab Fab bound to TNF-alpha
    Target(name="TNFA", pdb_id="3WD5", heavy_chain="H", light_chain="L", antigen_chain="A"),
]


def check_unique_targets(targets: list[Target]) -> None:
    """Reject target lists whose branches would write the same files.

    Names key the per-target output directories and PDB IDs key the shared
    structure cache, so both must be unique (PDB IDs case-insensitively).

    Raises:
        ValueError: On a duplicate name or PDB ID.
    """
    names = set()
    pdb_ids = set()
    for target in targets:
        if target.name in names:
            raise ValueError(f"Duplicate target name: {target.name}")
        pdb_id = target.pdb_id.upper()
        if pdb_id in pdb_ids:
            raise ValueError(f"Duplicate PDB ID {pdb_id} (target {target.name})")
        names.add(target.name)
        pdb_ids.add(pdb_id)


@dataclass
class GenerationConfig:
    """Configuration for inverse-folding variant generation."""

    variant_count: int = 100
    sampling_temperature: float = 0.8
    regions: list[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: float = 300.0  # Seconds per generation request


@dataclass
class AnnotationConfig:
    """Configuration for CDR region annotation."""

    use_anarci: bool = True
    scheme: str = "chothia"


@dataclass
class ExecutionConfig:
    """Configuration for running target branches."""

    max_workers: int = 4
    use_api: bool = True  # False runs the seeded local mock instead
    mock_seed: int = 42
    fetch_timeout: float = 30.0


@dataclass
class OutputConfig:
    """Configuration for pipeline output."""

    output_directory: str = "results"
    generate_report: bool = True
    save_config: bool = True


@dataclass
class PipelineConfig:
    """Complete pipeline configuration.

    The API credential lives on the config object but is never serialized;
    scripts resolve it with ``resolve_credential`` and inject it here.
    """

    targets: list[Target] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    annotation: AnnotationConfig = field(default_factory=AnnotationConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    credential: Optional[str] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (credential excluded)."""
        return {
            "targets": [t.to_dict() for t in self.targets],
            "generation": {
                "variant_count": self.generation.variant_count,
                "sampling_temperature": self.generation.sampling_temperature,
                "regions": list(self.generation.regions),
                "api_base_url": self.generation.api_base_url,
                "timeout": self.generation.timeout,
            },
            "annotation": {
                "use_anarci": self.annotation.use_anarci,
                "scheme": self.annotation.scheme,
            },
            "execution": {
                "max_workers": self.execution.max_workers,
                "use_api": self.execution.use_api,
                "mock_seed": self.execution.mock_seed,
                "fetch_timeout": self.execution.fetch_timeout,
            },
            "output": {
                "output_directory": self.output.output_directory,
                "generate_report": self.output.generate_report,
                "save_config": self.output.save_config,
            },
        }

    def config_hash(self) -> str:
        """Generate hash of configuration."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:12]

    def get_target(self, name: str) -> Optional[Target]:
        """Look up a configured target by name."""
        for target in self.targets:
            if target.name == name:
                return target
        return None

    def save(self, output_path: str) -> str:
        """Save configuration to YAML file."""
        with open(output_path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        return output_path

    @classmethod
    def load(cls, config_path: str) -> "PipelineConfig":
        """Load configuration from YAML file.

        Missing sections keep their defaults. A ``credential`` key in the file
        is honoured but discouraged; prefer the environment variable.
        """
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "targets" in data:
            config.targets = [Target.from_dict(t) for t in data["targets"]]
            check_unique_targets(config.targets)

        if "generation" in data:
            g = data["generation"]
            config.generation.variant_count = g.get("variant_count", 100)
            config.generation.sampling_temperature = g.get("sampling_temperature", 0.8)
            config.generation.regions = g.get("regions", list(DEFAULT_REGIONS))
            config.generation.api_base_url = g.get("api_base_url", DEFAULT_API_BASE_URL)
            config.generation.timeout = g.get("timeout", 300.0)

        if "annotation" in data:
            a = data["annotation"]
            config.annotation.use_anarci = a.get("use_anarci", True)
            config.annotation.scheme = a.get("scheme", "chothia")

        if "execution" in data:
            e = data["execution"]
            config.execution.max_workers = e.get("max_workers", 4)
            config.execution.use_api = e.get("use_api", True)
            config.execution.mock_seed = e.get("mock_seed", 42)
            config.execution.fetch_timeout = e.get("fetch_timeout", 30.0)

        if "output" in data:
            o = data["output"]
            # Support the flat key name used in early configs
            config.output.output_directory = o.get("output_directory", o.get("output_dir", "results"))
            config.output.generate_report = o.get("generate_report", True)
            config.output.save_config = o.get("save_config", True)

        if data.get("credential"):
            config.credential = data["credential"]

        return config

    @property
    def output_path(self) -> Path:
        return Path(self.output.output_directory)


def resolve_credential(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the API credential from an explicit value or the environment.

    Only scripts call this; pipeline components receive the credential
    through ``PipelineConfig.credential``.
    """
    if explicit:
        return explicit
    token = os.environ.get(CREDENTIAL_ENV_VAR, "").strip()
    return token or None


def load_pipeline_config(
    config_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    token: Optional[str] = None,
    no_api: bool = False,
) -> PipelineConfig:
    """Load config for a script run and apply command line overrides.

    Falls back to defaults when ``config_path`` does not exist, and injects
    the credential resolved from ``token`` or the environment.
    """
    if config_path and Path(config_path).exists():
        config = PipelineConfig.load(config_path)
    else:
        config = PipelineConfig()

    if output_dir:
        config.output.output_directory = output_dir
    if no_api:
        config.execution.use_api = False

    config.credential = resolve_credential(token or config.credential)
    return config


def get_provenance() -> dict:
    """Get provenance information for output files."""
    import subprocess

    provenance = {
        "pipeline_version": "1.0.0",
        "run_timestamp": datetime.datetime.now().isoformat(),
    }

    # Try to get git commit
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            provenance["git_commit"] = result.stdout.strip()[:12]
    except (OSError, subprocess.SubprocessError):
        pass

    return provenance


def create_default_config(output_path: Optional[str] = None) -> PipelineConfig:
    """Create a default configuration.

    Args:
        output_path: If provided, save config to this path.

    Returns:
        Default PipelineConfig.
    """
    config = PipelineConfig()

    if output_path:
        config.save(output_path)
        print(f"Default config saved to: {output_path}")

    return config
