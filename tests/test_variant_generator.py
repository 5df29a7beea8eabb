import json

import pytest
import requests

from src.design import variant_generator
from src.design.variant_generator import (
    GenerationParams,
    VariantGenerator,
    load_batch,
    parse_response,
)
from src.pipeline.exceptions import AuthenticationError, GenerationError


ROLES = {"heavy": "H", "light": "L", "antigen": "A"}


class _FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)
        self._body = body

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class _FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _sequences(n):
    return [
        {
            "heavy": "EVQLV" + str(i),
            "light": "DIQMT",
            "score": 0.5 + i,
            "global_score": 0.25,
            "mutations": i,
            "seq_recovery": 0.9,
        }
        for i in range(n)
    ]


def test_missing_credential_raises_before_any_request(monkeypatch):
    def no_network(*_args, **_kwargs):
        raise AssertionError("network call attempted")

    monkeypatch.setattr(variant_generator.requests, "post", no_network)
    generator = VariantGenerator(credential=None, params=GenerationParams(variant_count=5))

    with pytest.raises(AuthenticationError, match="BIOLMAI_TOKEN"):
        generator.generate("ATOM", ROLES, target_name="EGFR")


def test_blank_credential_is_rejected():
    session = _FakeSession(_FakeResponse(body={"sequences": []}))
    generator = VariantGenerator(credential="   ", session=session)

    with pytest.raises(AuthenticationError):
        generator.generate("ATOM", ROLES)

    assert session.calls == []


def test_sibling_generator_with_credential_still_succeeds():
    missing = VariantGenerator(credential="", params=GenerationParams(variant_count=5))
    session = _FakeSession(_FakeResponse(body={"sequences": _sequences(5)}))
    valid = VariantGenerator(credential="tok", params=GenerationParams(variant_count=5), session=session)

    with pytest.raises(AuthenticationError):
        missing.generate("ATOM", ROLES, target_name="EGFR")
    batch = valid.generate("ATOM", ROLES, target_name="PDL1")

    assert batch.target_name == "PDL1"
    assert len(batch) == 5


def test_generate_builds_request_and_parses_variants(tmp_path):
    body = {"sequences": _sequences(2)}
    session = _FakeSession(_FakeResponse(body=body))
    params = GenerationParams(variant_count=2, sampling_temperature=0.5, regions=["CDR3"])
    generator = VariantGenerator(credential="secret", params=params, base_url="https://api.test/v3/", session=session)
    out = tmp_path / "EGFR" / "variants_raw.json"

    batch = generator.generate("PDBTEXT", ROLES, target_name="EGFR", output_path=str(out))

    call = session.calls[0]
    assert call["url"] == "https://api.test/v3/antifold/generate/"
    assert call["headers"]["Authorization"] == "Token secret"
    assert call["json"]["items"] == [{"pdb": "PDBTEXT"}]
    assert call["json"]["params"] == {
        "heavy_chain": "H",
        "light_chain": "L",
        "num_seq_per_target": 2,
        "sampling_temp": 0.5,
        "regions": ["CDR3"],
    }
    assert out.read_text() == json.dumps(body)
    assert [v.mutation_count for v in batch.variants] == [0, 1]
    assert batch.variants[1].score == pytest.approx(1.5)
    assert batch.variants[0].sequence_recovery == pytest.approx(0.9)


def test_raw_response_is_persisted_verbatim_even_if_unparseable(tmp_path):
    session = _FakeSession(_FakeResponse(body={"unexpected": True}))
    generator = VariantGenerator(credential="tok", session=session)
    out = tmp_path / "raw.json"

    with pytest.raises(GenerationError, match="sequences"):
        generator.generate("ATOM", ROLES, output_path=str(out))

    assert json.loads(out.read_text()) == {"unexpected": True}


def test_non_success_status_raises_generation_error():
    session = _FakeSession(_FakeResponse(status_code=500, text="internal error"))
    generator = VariantGenerator(credential="tok", session=session)

    with pytest.raises(GenerationError, match="HTTP 500"):
        generator.generate("ATOM", ROLES, target_name="HER2")


def test_rejected_credential_raises_authentication_error():
    session = _FakeSession(_FakeResponse(status_code=401, text="bad token"))
    generator = VariantGenerator(credential="tok", session=session)

    with pytest.raises(AuthenticationError, match="401"):
        generator.generate("ATOM", ROLES)


def test_transport_error_raises_generation_error():
    session = _FakeSession(requests.ConnectionError("connection refused"))
    generator = VariantGenerator(credential="tok", session=session)

    with pytest.raises(GenerationError, match="connection refused"):
        generator.generate("ATOM", ROLES)


def test_short_batch_warns():
    session = _FakeSession(_FakeResponse(body={"sequences": _sequences(3)}))
    generator = VariantGenerator(credential="tok", params=GenerationParams(variant_count=5), session=session)

    with pytest.warns(UserWarning, match="requested 5"):
        batch = generator.generate("ATOM", ROLES, target_name="TNFA")

    assert len(batch) == 3


@pytest.mark.parametrize(
    "params",
    [
        GenerationParams(variant_count=0),
        GenerationParams(sampling_temperature=0.0),
        GenerationParams(regions=[]),
        GenerationParams(regions=["CDR9"]),
    ],
)
def test_invalid_params_are_rejected(params):
    generator = VariantGenerator(credential="tok", params=params, session=_FakeSession(None))

    with pytest.raises(ValueError):
        generator.generate("ATOM", ROLES)


def test_parse_response_accepts_results_wrapper():
    batch = parse_response({"results": [{"sequences": _sequences(1)}]}, "EGFR")

    assert batch.variants[0].heavy == "EVQLV0"


def test_parse_response_rejects_entries_without_chains():
    with pytest.raises(GenerationError):
        parse_response({"sequences": [{"heavy": "EVQ", "score": 1.0}]}, "EGFR")


@pytest.mark.parametrize("field, value", [
    ("mutations", [1]),
    ("mutations", {"count": 2}),
    ("mutations", "many"),
    ("mutations", float("inf")),
    ("score", "high"),
    ("global_score", [0.5]),
    ("seq_recovery", {"value": 0.9}),
])
def test_parse_response_rejects_malformed_numeric_fields(field, value):
    entry = _sequences(1)[0]
    entry[field] = value

    with pytest.raises(GenerationError):
        parse_response({"sequences": [entry]}, "EGFR")


def test_malformed_entry_from_service_raises_generation_error(tmp_path):
    entries = _sequences(2)
    entries[1]["mutations"] = [1]
    session = _FakeSession(_FakeResponse(body={"sequences": entries}))
    generator = VariantGenerator("tok", GenerationParams(variant_count=2), session=session)
    raw_path = tmp_path / "variants_raw.json"

    with pytest.raises(GenerationError, match="mutation count"):
        generator.generate("ATOM", ROLES, target_name="BAD", output_path=str(raw_path))

    assert json.loads(raw_path.read_text())["sequences"][1]["mutations"] == [1]


def test_load_batch_rebuilds_from_artifact(tmp_path):
    path = tmp_path / "variants_raw.json"
    path.write_text(json.dumps({"sequences": _sequences(4)}))

    batch = load_batch(path, "PDL1")

    df = batch.to_dataframe()
    assert list(df.columns) == ["heavy", "light", "score", "global_score", "mutation_count", "sequence_recovery"]
    assert len(df) == 4


def test_mock_generation_is_seeded_and_sized(tmp_path):
    generator = VariantGenerator(credential=None, params=GenerationParams(variant_count=7))
    heavy = "E" * 120
    light = "D" * 108

    first = generator.run_local_mock(heavy, light, target_name="EGFR", seed=3, output_path=str(tmp_path / "a.json"))
    second = generator.run_local_mock(heavy, light, target_name="EGFR", seed=3)

    assert len(first) == 7
    assert [v.to_dict() for v in first.variants] == [v.to_dict() for v in second.variants]
    for v in first.variants:
        assert len(v.heavy) == len(heavy)
        assert v.heavy[:26] == heavy[:26]
    assert load_batch(tmp_path / "a.json", "EGFR").to_dataframe().equals(first.to_dataframe())


def test_repr_masks_credential():
    assert "supersecret" not in repr(VariantGenerator(credential="supersecret"))
