# -*- coding: utf-8 -*-
"""Unit tests for the offline spec build."""

# Standard
from pathlib import Path

# Third-Party
import orjson
import pytest
import yaml

# First-Party
from cloudflare_mcp.errors import SpecResolutionError
from cloudflare_mcp.spec import builder
from cloudflare_mcp.spec.builder import (
    build_endpoints,
    build_products,
    build_resolved_spec,
    count_categories,
    ENDPOINTS_FILE,
    extract_product,
    load_document,
    PRODUCTS_FILE,
    SPEC_FILE,
    write_artifacts,
)
from cloudflare_mcp.spec.resolver import contains_reference


def test_extract_product_variants() -> None:
    assert extract_product("/accounts/{account_id}/r2/buckets") == "r2"
    assert extract_product("/zones/{zone_identifier}/dns_records/{id}") == "dns_records"
    assert extract_product("/accounts/{account_id}") is None
    assert extract_product("/user") is None


def test_build_resolved_spec_shape(openapi_document) -> None:
    spec = build_resolved_spec(openapi_document)

    assert set(spec) == {"paths"}
    assert list(spec["paths"]) == list(openapi_document["paths"])
    assert not contains_reference(spec)

    zones_get = spec["paths"]["/zones"]["get"]
    assert zones_get["parameters"] == [{"name": "per_page", "in": "query", "schema": {"type": "integer"}}]
    assert "requestBody" not in zones_get
    assert "description" not in zones_get

    body_schema = spec["paths"]["/zones"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert body_schema["properties"]["parent"] == {"$circular": "#/components/schemas/Zone"}

    scripts = spec["paths"]["/accounts/{account_id}/workers/scripts"]["get"]
    assert scripts["tags"] == ["workers", "Worker Script"]
    assert scripts["responses"]["200"]["content"]["application/json"]["schema"]["items"] == {"type": "object", "properties": {"id": {"type": "string"}}}


def test_build_resolved_spec_keeps_only_known_verbs() -> None:
    doc = {"paths": {"/zones": {"get": {"summary": "List"}, "options": {"summary": "Ignored"}, "parameters": []}}}

    assert build_resolved_spec(doc) == {"paths": {"/zones": {"get": {"summary": "List", "tags": []}}}}


def test_unresolvable_reference_fails_build() -> None:
    doc = {"paths": {"/zones": {"get": {"parameters": [{"$ref": "#/components/parameters/nope"}]}}}}

    with pytest.raises(SpecResolutionError):
        build_resolved_spec(doc)


def test_build_endpoints_sorted(openapi_document) -> None:
    endpoints = build_endpoints(openapi_document)

    assert [(e["method"], e["path"]) for e in endpoints] == [
        ("GET", "/accounts/{account_id}/workers/scripts"),
        ("PUT", "/accounts/{account_id}/workers/scripts/{script_name}"),
        ("DELETE", "/accounts/{account_id}/workers/scripts/{script_name}"),
        ("GET", "/zones"),
        ("POST", "/zones"),
        ("GET", "/zones/{zone_id}/dns_records"),
    ]
    assert endpoints[0]["summary"] == "List Workers"


def test_products_ordered_by_path_count() -> None:
    paths = ["/zones/{z}/dns_records", "/accounts/{a}/workers/scripts", "/accounts/{a}/workers/routes", "/zones"]

    assert build_products(paths) == ["workers", "dns_records"]
    assert count_categories(paths) == {"zones": 2, "accounts": 2}


def test_write_artifacts(tmp_path: Path, openapi_document) -> None:
    written = write_artifacts(openapi_document, tmp_path / "data")

    assert written["spec"] == tmp_path / "data" / SPEC_FILE
    spec = orjson.loads((tmp_path / "data" / SPEC_FILE).read_bytes())
    assert spec == build_resolved_spec(openapi_document)

    assert orjson.loads((tmp_path / "data" / PRODUCTS_FILE).read_bytes()) == ["workers", "dns_records"]

    catalog = orjson.loads((tmp_path / "data" / ENDPOINTS_FILE).read_bytes())
    assert catalog["version"] == "3.0.3 | Cloudflare API v4.0.0"
    assert catalog["endpoint_count"] == 6
    assert catalog["categories"] == {"accounts": 2, "zones": 2}
    assert "## Zones" in catalog["summary"]
    assert "- GET|POST /zones - List Zones" in catalog["summary"]


def test_write_artifacts_requires_paths(tmp_path: Path) -> None:
    with pytest.raises(SpecResolutionError, match="no 'paths'"):
        write_artifacts({"openapi": "3.0.0"}, tmp_path)


def test_load_document_yaml(tmp_path: Path, openapi_document) -> None:
    source = tmp_path / "openapi.yaml"
    source.write_text(yaml.safe_dump(openapi_document), encoding="utf-8")

    assert load_document(source) == openapi_document


def test_load_document_rejects_non_mapping(tmp_path: Path) -> None:
    source = tmp_path / "openapi.json"
    source.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(SpecResolutionError):
        load_document(source)


def test_main_builds_from_local_source(tmp_path: Path, openapi_document) -> None:
    source = tmp_path / "openapi.json"
    source.write_bytes(orjson.dumps(openapi_document))

    assert builder.main(["--source", str(source), "--output", str(tmp_path / "out")]) == 0
    assert (tmp_path / "out" / SPEC_FILE).exists()


def test_main_reports_failure(tmp_path: Path) -> None:
    assert builder.main(["--source", str(tmp_path / "missing.json"), "--output", str(tmp_path / "out")]) == 1
    assert not (tmp_path / "out").exists()


def test_main_fetches_remote_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, openapi_document) -> None:
    seen = []

    def fake_fetch(url, timeout=60.0):
        seen.append(url)
        return openapi_document

    monkeypatch.setattr(builder, "fetch_document", fake_fetch)

    assert builder.main(["--url", "https://example.com/openapi.json", "--output", str(tmp_path)]) == 0
    assert seen == ["https://example.com/openapi.json"]
    assert (tmp_path / PRODUCTS_FILE).exists()


def test_main_reports_values_the_artifact_encoder_rejects(tmp_path: Path, openapi_document) -> None:
    openapi_document["paths"]["/zones"]["get"]["responses"] = {"200": {"description": "OK", "x-max-id": 2**70}}
    source = tmp_path / "openapi.yaml"
    source.write_text(yaml.safe_dump(openapi_document), encoding="utf-8")

    assert builder.main(["--source", str(source), "--output", str(tmp_path / "out")]) == 1
    assert not (tmp_path / "out" / SPEC_FILE).exists()


def test_main_sets_up_and_tears_down_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, openapi_document) -> None:
    calls = []

    class RecordingLoggingService:
        async def initialize(self) -> None:
            calls.append("initialize")

        async def shutdown(self) -> None:
            calls.append("shutdown")

    monkeypatch.setattr(builder, "logging_service", RecordingLoggingService())
    source = tmp_path / "openapi.json"
    source.write_bytes(orjson.dumps(openapi_document))

    assert builder.main(["--source", str(source), "--output", str(tmp_path / "out")]) == 0
    assert calls == ["initialize", "shutdown"]
