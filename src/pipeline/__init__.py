"""Pipeline orchestration modules.

This package provides:
- Configuration management
- Pipeline error types
- End-to-end pipeline orchestration (``src.pipeline.variant_pipeline``)
- Report generation (``src.pipeline.report_generator``)

Only configuration and errors are re-exported here; the orchestration and
report modules import the structure and design packages, which in turn
import this package.
"""

from src.pipeline.config import (
    Target,
    DEFAULT_TARGETS,
    GenerationConfig,
    AnnotationConfig,
    ExecutionConfig,
    OutputConfig,
    PipelineConfig,
    check_unique_targets,
    resolve_credential,
    load_pipeline_config,
    get_provenance,
    create_default_config,
)
from src.pipeline.exceptions import (
    PipelineError,
    FetchError,
    AuthenticationError,
    GenerationError,
    ParseError,
)

__all__ = [
    # Config
    "Target",
    "DEFAULT_TARGETS",
    "GenerationConfig",
    "AnnotationConfig",
    "ExecutionConfig",
    "OutputConfig",
    "PipelineConfig",
    "check_unique_targets",
    "resolve_credential",
    "load_pipeline_config",
    "get_provenance",
    "create_default_config",
    # Errors
    "PipelineError",
    "FetchError",
    "AuthenticationError",
    "GenerationError",
    "ParseError",
]
