import pytest
import yaml

from src.pipeline.config import (
    DEFAULT_TARGETS,
    PipelineConfig,
    check_unique_targets,
    Target,
    load_pipeline_config,
    resolve_credential,
)


def test_defaults_match_reference_deployment():
    config = PipelineConfig()

    assert [t.name for t in config.targets] == ["EGFR", "PDL1", "HER2", "TNFA"]
    assert config.generation.variant_count == 100
    assert config.generation.sampling_temperature == 0.8
    assert config.generation.regions == ["CDR1", "CDR2", "CDR3"]
    assert config.output.output_directory == "results"
    assert config.credential is None


def test_credential_is_never_serialized(tmp_path):
    config = PipelineConfig(credential="supersecret")
    path = tmp_path / "config.yaml"

    config.save(str(path))

    assert "supersecret" not in path.read_text()
    assert "supersecret" not in repr(config)
    assert "credential" not in config.to_dict()


def test_save_and_load_round_trip(tmp_path):
    config = PipelineConfig(targets=[Target("EGFR", "1YY9", "D", "C", "A")])
    config.generation.variant_count = 12
    config.generation.regions = ["CDR3"]
    config.execution.use_api = False
    path = tmp_path / "config.yaml"

    config.save(str(path))
    loaded = PipelineConfig.load(str(path))

    assert loaded.to_dict() == config.to_dict()
    assert loaded.config_hash() == config.config_hash()


def test_load_supports_nested_chain_roles(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "targets": [{"name": "PDL1", "pdb_id": "5X8L", "chains": {"heavy": "B", "light": "C"}}],
        "output": {"output_dir": "out"},
    }))

    config = PipelineConfig.load(str(path))

    assert config.targets[0].chain_roles() == {"heavy": "B", "light": "C", "antigen": "A"}
    assert config.output.output_directory == "out"
    assert config.generation.variant_count == 100


def test_resolve_credential_prefers_explicit(monkeypatch):
    monkeypatch.setenv("BIOLMAI_TOKEN", "from-env")

    assert resolve_credential("explicit") == "explicit"
    assert resolve_credential() == "from-env"


def test_resolve_credential_blank_env_is_none(monkeypatch):
    monkeypatch.setenv("BIOLMAI_TOKEN", "  ")

    assert resolve_credential() is None


def test_load_pipeline_config_applies_overrides(monkeypatch, tmp_path):
    monkeypatch.delenv("BIOLMAI_TOKEN", raising=False)

    config = load_pipeline_config(str(tmp_path / "missing.yaml"), output_dir="elsewhere", token="tok", no_api=True)

    assert config.output.output_directory == "elsewhere"
    assert config.credential == "tok"
    assert config.execution.use_api is False
    assert config.targets == DEFAULT_TARGETS


@pytest.mark.parametrize("second", [
    {"name": "EGFR", "pdb_id": "5X8L"},
    {"name": "EGFR2", "pdb_id": "1yy9"},
])
def test_load_rejects_duplicate_targets(tmp_path, second):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"targets": [{"name": "EGFR", "pdb_id": "1YY9"}, second]}))

    with pytest.raises(ValueError, match="Duplicate"):
        PipelineConfig.load(str(path))


def test_check_unique_targets_accepts_defaults():
    check_unique_targets(DEFAULT_TARGETS)
