"""AntiFold variant generation through the BioLM inference API.

Submits an antibody-antigen complex structure to the inverse-folding service
and collects the redesigned heavy/light sequences with their scores.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import json
import hashlib
import warnings

import pandas as pd
import requests

from src.pipeline.exceptions import AuthenticationError, GenerationError
from src.utils.constants import (
    AMINO_ACIDS,
    ANTIFOLD_ENDPOINT,
    DEFAULT_API_BASE_URL,
    DEFAULT_REGIONS,
    DESIGNABLE_REGIONS,
    VARIANT_COLUMNS,
)


@dataclass
class GenerationParams:
    """Parameters for one generation request."""

    variant_count: int = 100
    sampling_temperature: float = 0.8
    regions: list[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))

    def validate(self) -> list[str]:
        """Validate parameters and return list of errors."""
        errors = []

        if isinstance(self.variant_count, bool) or not isinstance(self.variant_count, int):
            errors.append(f"variant_count must be an integer, got {self.variant_count!r}")
        elif self.variant_count < 1:
            errors.append(f"variant_count must be >= 1, got {self.variant_count}")

        if self.sampling_temperature <= 0:
            errors.append(f"sampling_temperature must be > 0, got {self.sampling_temperature}")

        if not self.regions:
            errors.append("regions must name at least one region")
        else:
            unknown = [r for r in self.regions if r not in DESIGNABLE_REGIONS]
            if unknown:
                errors.append(f"Unknown regions: {', '.join(unknown)}")

        return errors

    def to_dict(self) -> dict:
        return {
            "variant_count": self.variant_count,
            "sampling_temperature": self.sampling_temperature,
            "regions": list(self.regions),
        }

    def config_hash(self) -> str:
        """Generate hash of params for reproducibility tracking."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:12]


@dataclass
class Variant:
    """A single generated heavy/light sequence pair."""

    heavy: str
    light: str
    score: Optional[float] = None
    global_score: Optional[float] = None
    mutation_count: Optional[int] = None
    sequence_recovery: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "heavy": self.heavy,
            "light": self.light,
            "score": self.score,
            "global_score": self.global_score,
            "mutation_count": self.mutation_count,
            "sequence_recovery": self.sequence_recovery,
        }

    @classmethod
    def from_response(cls, item: dict) -> "Variant":
        """Create from one entry of the service's ``sequences`` list.

        Raises:
            GenerationError: If the entry lacks heavy/light sequences.
        """
        if not isinstance(item, dict):
            raise GenerationError(f"Malformed sequence entry: {item!r}")

        heavy = item.get("heavy")
        light = item.get("light")
        if not isinstance(heavy, str) or not isinstance(light, str):
            raise GenerationError("Sequence entry is missing heavy/light chains")

        mutations = item.get("mutations", item.get("mutation_count"))
        return cls(
            heavy=heavy,
            light=light,
            score=_as_float(item.get("score")),
            global_score=_as_float(item.get("global_score")),
            mutation_count=_as_int(mutations),
            sequence_recovery=_as_float(item.get("seq_recovery", item.get("sequence_recovery"))),
        )


def _as_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise GenerationError(f"Non-numeric score value: {value!r}") from None


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise GenerationError(f"Non-integer mutation count: {value!r}") from None


@dataclass
class VariantBatch:
    """All variants generated for one target."""

    target_name: str
    variants: list[Variant] = field(default_factory=list)
    raw_response: Optional[dict] = None

    def __len__(self) -> int:
        return len(self.variants)

    def to_dataframe(self) -> pd.DataFrame:
        """Variant table, one row per variant, in service order."""
        return pd.DataFrame(
            [v.to_dict() for v in self.variants],
            columns=VARIANT_COLUMNS,
        )


def parse_response(data, target_name: str) -> VariantBatch:
    """Parse a generation response body into a VariantBatch.

    Accepts ``{"sequences": [...]}`` as well as the list-wrapped form
    ``{"results": [{"sequences": [...]}]}`` returned for batched items.

    Raises:
        GenerationError: If no ``sequences`` list can be found.
    """
    body = data
    if isinstance(body, dict) and "results" in body:
        results = body["results"]
        if not isinstance(results, list) or not results:
            raise GenerationError("Response 'results' is empty")
        body = results[0]
    elif isinstance(body, list):
        if not body:
            raise GenerationError("Response list is empty")
        body = body[0]

    if not isinstance(body, dict) or not isinstance(body.get("sequences"), list):
        raise GenerationError("Response has no 'sequences' list")

    variants = [Variant.from_response(item) for item in body["sequences"]]
    return VariantBatch(target_name=target_name, variants=variants, raw_response=data)


def load_batch(input_path, target_name: str) -> VariantBatch:
    """Rebuild a VariantBatch from a persisted raw response.

    Lets a report re-run skip regeneration.
    """
    with open(input_path, "r") as f:
        data = json.load(f)
    return parse_response(data, target_name)


class VariantGenerator:
    """Client for AntiFold variant generation.

    The credential is injected by the caller; this class never reads the
    environment. It handles:
    - Credential precondition check (before any request)
    - Request construction and submission
    - Verbatim persistence of the raw response
    - Response parsing into a VariantBatch
    """

    def __init__(
        self,
        credential: Optional[str],
        params: Optional[GenerationParams] = None,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize generator.

        Args:
            credential: API token. Checked lazily by ``check_credentials``.
            params: Generation parameters. If None, uses defaults.
            base_url: API root URL.
            timeout: Request timeout in seconds.
            session: Optional requests session (shared connection pool).
        """
        self.credential = credential
        self.params = params or GenerationParams()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session

    def __repr__(self) -> str:
        masked = "***" if self.credential else None
        return (
            f"VariantGenerator(credential={masked!r}, params={self.params!r}, "
            f"base_url={self.base_url!r})"
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{ANTIFOLD_ENDPOINT}"

    def check_credentials(self) -> None:
        """Fail fast when no usable credential is configured.

        Raises:
            AuthenticationError: If the credential is missing or blank.
        """
        if not self.credential or not self.credential.strip():
            raise AuthenticationError(
                "No API credential configured. Set BIOLMAI_TOKEN or pass "
                "--token before running variant generation."
            )

    def build_request(self, pdb_text: str, chain_roles: dict[str, str]) -> dict:
        """Build the request body for one structure."""
        return {
            "items": [{"pdb": pdb_text}],
            "params": {
                "heavy_chain": chain_roles["heavy"],
                "light_chain": chain_roles["light"],
                "num_seq_per_target": self.params.variant_count,
                "sampling_temp": self.params.sampling_temperature,
                "regions": list(self.params.regions),
            },
        }

    def generate(
        self,
        pdb_text: str,
        chain_roles: dict[str, str],
        target_name: str = "target",
        output_path: Optional[str] = None,
    ) -> VariantBatch:
        """Generate variants for one target structure.

        Args:
            pdb_text: Complex structure as PDB text.
            chain_roles: Mapping with ``heavy``, ``light`` (and ``antigen``) chain IDs.
            target_name: Target label for the batch.
            output_path: Where to write the raw response before parsing.

        Returns:
            VariantBatch in service order.

        Raises:
            AuthenticationError: If no credential is set or it is rejected.
            GenerationError: If the request fails or the response is malformed.
            ValueError: If the generation parameters are invalid.
        """
        self.check_credentials()

        errors = self.params.validate()
        if errors:
            raise ValueError(f"Invalid generation parameters: {'; '.join(errors)}")

        payload = self.build_request(pdb_text, chain_roles)
        headers = {
            "Authorization": f"Token {self.credential.strip()}",
            "Content-Type": "application/json",
        }

        http = self.session or requests
        try:
            response = http.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise GenerationError(f"Generation request for {target_name} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Credential rejected by {self.endpoint} (HTTP {response.status_code})"
            )
        if not response.ok:
            raise GenerationError(
                f"Generation request for {target_name} returned HTTP "
                f"{response.status_code}: {response.text[:200]}"
            )

        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError(f"Generation response for {target_name} is not JSON") from e

        batch = parse_response(data, target_name)
        self._check_batch_size(batch)
        return batch

    def run_local_mock(
        self,
        heavy_sequence: str,
        light_sequence: str,
        target_name: str = "target",
        seed: int = 42,
        output_path: Optional[str] = None,
    ) -> VariantBatch:
        """Generate a mock batch for testing without the API.

        Mutates residues inside the fixed CDR windows of the parent chains,
        so the output has the same shape as a real response. Not realistic,
        just for exercising the pipeline offline.
        """
        import random

        from src.utils.constants import CDR_WINDOWS

        errors = self.params.validate()
        if errors:
            raise ValueError(f"Invalid generation parameters: {'; '.join(errors)}")

        rng = random.Random(seed)

        def mutate(sequence: str, chain_class: str) -> tuple[str, int]:
            residues = list(sequence)
            mutated = 0
            for start, end in CDR_WINDOWS[chain_class].values():
                for i in range(start, min(end, len(residues))):
                    if rng.random() < 0.15 * self.params.sampling_temperature:
                        new_aa = rng.choice(AMINO_ACIDS)
                        if new_aa != residues[i]:
                            residues[i] = new_aa
                            mutated += 1
            return "".join(residues), mutated

        sequences = []
        for _ in range(self.params.variant_count):
            heavy, heavy_mut = mutate(heavy_sequence, "heavy")
            light, light_mut = mutate(light_sequence, "light")
            total_len = len(heavy_sequence) + len(light_sequence)
            mutations = heavy_mut + light_mut
            sequences.append({
                "heavy": heavy,
                "light": light,
                "score": round(rng.uniform(0.2, 1.2), 4),
                "global_score": round(rng.uniform(0.2, 1.0), 4),
                "mutations": mutations,
                "seq_recovery": round(1 - mutations / total_len, 4) if total_len else 0.0,
            })

        data = {"sequences": sequences}
        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(data, f, indent=2)

        return parse_response(data, target_name)

    def _check_batch_size(self, batch: VariantBatch) -> None:
        if len(batch) != self.params.variant_count:
            warnings.warn(
                f"{batch.target_name}: requested {self.params.variant_count} variants, "
                f"service returned {len(batch)}"
            )
