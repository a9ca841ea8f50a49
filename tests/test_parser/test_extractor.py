"""Tests for rulesmith.parser.extractor."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from rulesmith.models import EndpointInfo, ExtractorOptions, HTTPMethod, ParameterLocation
from rulesmith.parser.extractor import (
    extract_endpoints,
    generate_operation_id,
    parameter_type,
)
from rulesmith.parser.preprocessor import preprocess


def _extract(raw: dict[str, Any], **options: Any) -> list[EndpointInfo]:
    return extract_endpoints(preprocess(raw), raw, ExtractorOptions(**options))


def _ids(endpoints: list[EndpointInfo]) -> list[str]:
    return [ep.operation_id for ep in endpoints]


def _minimal(paths: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"openapi": "3.0.3", "info": {"title": "t", "version": "1"}, "paths": paths, **extra}


# ---------------------------------------------------------------------------
# Operation ids and ordering
# ---------------------------------------------------------------------------


class TestOperationIds:
    def test_synthesised_id(self) -> None:
        assert generate_operation_id(HTTPMethod.GET, "/pets/{id}") == "GET_PETS_ID"

    def test_synthesised_id_nested(self) -> None:
        assert generate_operation_id(HTTPMethod.DELETE, "/api/v1/users/{userId}") == "DELETE_API_V1_USERS_USERID"

    def test_fixture_order_and_ids(self, oas3_endpoints: list[EndpointInfo]) -> None:
        assert _ids(oas3_endpoints) == [
            "listPets",
            "createPet",
            "GET_PETS_ID",
            "listOwnerPets",
            "getNodeTree",
            "healthCheck",
        ]

    def test_methods_in_canonical_order(self) -> None:
        ok = {"responses": {}}
        raw = _minimal({"/a": {"delete": ok, "head": ok, "get": ok, "patch": ok, "post": ok}})

        endpoints = _extract(raw)

        assert [ep.method for ep in endpoints] == [
            HTTPMethod.GET,
            HTTPMethod.POST,
            HTTPMethod.PATCH,
            HTTPMethod.DELETE,
            HTTPMethod.HEAD,
        ]

    def test_untagged_operation_gets_default_tag(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        assert oas3_by_id["getNodeTree"].tags == ["default"]
        assert oas3_by_id["listOwnerPets"].tags == ["owners", "pets"]


# ---------------------------------------------------------------------------
# Exclusion
# ---------------------------------------------------------------------------


class TestExclusion:
    def test_deprecated_excluded_by_default(self, oas3_endpoints: list[EndpointInfo]) -> None:
        assert "deletePet" not in _ids(oas3_endpoints)

    def test_deprecated_included_when_disabled(self, oas3_raw: dict) -> None:
        endpoints = _extract(oas3_raw, exclude_deprecated=False)

        by_id = {ep.operation_id: ep for ep in endpoints}
        assert by_id["deletePet"].deprecated is True
        assert _ids(endpoints).index("deletePet") == _ids(endpoints).index("GET_PETS_ID") + 1

    def test_excluded_tag_drops_only_fully_excluded_operations(self, oas3_raw: dict) -> None:
        ids = _ids(_extract(oas3_raw, exclude_tags={"pets"}))

        assert ids == ["listOwnerPets", "getNodeTree", "healthCheck"]

    def test_default_tag_can_be_excluded(self, oas3_raw: dict) -> None:
        assert "getNodeTree" not in _ids(_extract(oas3_raw, exclude_tags={"default"}))

    def test_all_tags_excluded(self, oas3_raw: dict) -> None:
        assert "listOwnerPets" not in _ids(_extract(oas3_raw, exclude_tags={"owners", "pets"}))

    def test_path_pattern_anchored(self, oas3_raw: dict) -> None:
        assert "healthCheck" not in _ids(_extract(oas3_raw, exclude_paths=["^/internal"]))

    def test_path_pattern_searches_anywhere(self, oas3_raw: dict) -> None:
        ids = _ids(_extract(oas3_raw, exclude_paths=["pets"]))

        assert ids == ["getNodeTree", "healthCheck"]

    def test_invalid_pattern_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid exclude path pattern"):
            ExtractorOptions(exclude_paths=["(unclosed"])


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class TestParameters:
    def test_query_parameters(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        limit, status = oas3_by_id["listPets"].parameters

        assert limit.name == "limit"
        assert limit.location == ParameterLocation.QUERY
        assert limit.required is False
        assert limit.type == "integer"
        assert limit.description == "How many items to return"
        assert limit.example == 20
        assert status.type == '"available" | "sold"[]'

    def test_path_level_ref_parameter(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        (param,) = oas3_by_id["GET_PETS_ID"].parameters

        assert param.name == "id"
        assert param.location == ParameterLocation.PATH
        assert param.required is True
        assert param.type == "integer"
        assert param.description == "Pet identifier"

    def test_header_parameter(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        locations = [p.location for p in oas3_by_id["listOwnerPets"].parameters]
        assert locations == [ParameterLocation.PATH, ParameterLocation.HEADER]

    def test_path_level_first_and_not_deduplicated(self) -> None:
        raw = _minimal(
            {
                "/a/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
                            {"name": "q", "in": "query", "schema": {"type": "string"}},
                        ],
                        "responses": {},
                    },
                }
            }
        )

        params = _extract(raw)[0].parameters

        assert [(p.name, p.type) for p in params] == [
            ("id", "string"),
            ("id", "integer"),
            ("q", "string"),
        ]

    def test_swagger2_type_on_parameter(self, swagger2_by_id: dict[str, EndpointInfo]) -> None:
        (status,) = swagger2_by_id["findPetsByStatus"].parameters
        assert status.required is True
        assert status.type == '"available" | "pending" | "sold"[]'
        (pet_id,) = swagger2_by_id["getPetById"].parameters
        assert pet_id.type == "integer"

    def test_form_data_parameter_skipped(self, swagger2_by_id: dict[str, EndpointInfo]) -> None:
        assert [p.name for p in swagger2_by_id["updatePetWithForm"].parameters] == ["petId"]

    def test_parameter_without_location_skipped(self) -> None:
        raw = _minimal(
            {
                "/a": {
                    "get": {
                        "parameters": [
                            {"name": "nowhere", "schema": {"type": "string"}},
                            {"name": "q", "in": "query", "schema": {"type": "string"}},
                        ],
                        "responses": {},
                    },
                }
            }
        )

        assert [p.name for p in _extract(raw)[0].parameters] == ["q"]

    @pytest.mark.parametrize(
        "schema, expected",
        [
            (None, "unknown"),
            ({}, "object"),
            ({"type": "string"}, "string"),
            ({"type": "array", "items": {"type": "integer"}}, "integer[]"),
            ({"type": "string", "enum": ["a", "b"]}, '"a" | "b"'),
            ({"type": "integer", "enum": [1, 2]}, "1 | 2"),
            ({"type": ["string", "null"]}, "string"),
        ],
    )
    def test_parameter_type(self, schema: Any, expected: str) -> None:
        assert parameter_type(schema) == expected


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class TestRequestBody:
    def test_request_body_ref(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        body = oas3_by_id["createPet"].request_body

        assert body is not None
        assert body.content_type == "application/json"
        assert body.required is True
        assert body.schema_name == "NewPet"
        assert body.schema_.schema_name == "NewPet"
        assert body.schema_.properties["category"].schema_name == "Category"

    def test_no_body(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        assert oas3_by_id["listPets"].request_body is None

    def test_body_parameter_dialect(self) -> None:
        raw = {
            "swagger": "2.0",
            "paths": {
                "/pets": {
                    "post": {
                        "parameters": [
                            {"name": "pet", "in": "body", "required": False, "schema": {"$ref": "#/definitions/Pet"}}
                        ],
                        "responses": {"201": {"description": "Created"}},
                    }
                }
            },
            "definitions": {"Pet": {"type": "object", "properties": {"name": {"type": "string"}}}},
        }

        (endpoint,) = _extract(raw)

        body = endpoint.request_body
        assert body.content_type == "application/json"
        assert body.schema_name == "Pet"
        assert body.required is False
        assert body.schema_.properties["name"].type == "string"
        assert endpoint.parameters == []

    def test_swagger2_fixture_bodies(self, swagger2_by_id: dict[str, EndpointInfo]) -> None:
        add_pet = swagger2_by_id["addPet"].request_body
        assert add_pet.schema_name == "Pet"
        assert add_pet.required is True
        assert add_pet.schema_.properties["tags"].schema_name == "Tag[]"

        place_order = swagger2_by_id["placeOrder"].request_body
        assert place_order.schema_name == "Order"
        assert swagger2_by_id["updatePetWithForm"].request_body is None

    def test_request_body_wins_over_body_parameter(self) -> None:
        raw = _minimal(
            {
                "/a": {
                    "post": {
                        "parameters": [{"name": "legacy", "in": "body", "schema": {"type": "string"}}],
                        "requestBody": {"content": {"text/plain": {"schema": {"type": "integer"}}}},
                        "responses": {},
                    }
                }
            }
        )

        body = _extract(raw)[0].request_body

        assert body.content_type == "text/plain"
        assert body.schema_.type == "integer"

    def test_json_preferred_over_first_content_type(self) -> None:
        raw = _minimal(
            {
                "/a": {
                    "post": {
                        "requestBody": {
                            "content": {
                                "application/xml": {"schema": {"type": "string"}},
                                "application/json": {
                                    "schema": {"type": "object"},
                                    "examples": {"sample": {"value": {"k": 1}}},
                                },
                            }
                        },
                        "responses": {},
                    }
                }
            }
        )

        body = _extract(raw)[0].request_body

        assert body.content_type == "application/json"
        assert body.example == {"k": 1}

    def test_request_body_without_content_is_dropped(self) -> None:
        raw = _minimal({"/a": {"post": {"requestBody": {"content": {}}, "responses": {}}}})
        assert _extract(raw)[0].request_body is None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class TestResponses:
    def test_only_allow_listed_codes_kept(self) -> None:
        raw = _minimal(
            {
                "/a": {
                    "get": {
                        "responses": {
                            "302": {"description": "Found"},
                            "201": {"description": "Created"},
                        }
                    }
                }
            }
        )

        responses = _extract(raw)[0].responses

        assert [r.status_code for r in responses] == ["201"]

    def test_fixture_responses(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        created, invalid = oas3_by_id["createPet"].responses

        assert created.status_code == "201"
        assert created.schema_name == "Pet"
        assert created.content_type == "application/json"
        assert invalid.status_code == "400"
        assert invalid.description == "Invalid input"
        assert invalid.content_type is None
        assert invalid.schema_ is None

    def test_array_response_and_ref_response(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        ok, error = oas3_by_id["listPets"].responses

        assert ok.schema_name == "Pet[]"
        assert ok.schema_.items.schema_name == "Pet"
        assert ok.schema_.items.properties["tags"].schema_name == "Tag[]"
        assert error.status_code == "500"
        assert error.description == "Unexpected error"
        assert error.schema_name == "Error"

    def test_all_of_response(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        (ok,) = oas3_by_id["listOwnerPets"].responses
        schema = ok.schema_

        assert ok.schema_name == "OwnerWithPets"
        assert schema.type == "object"
        assert set(schema.properties) == {"id", "name", "pets", "address"}
        assert schema.required == ["id", "pets"]
        assert schema.properties["pets"].schema_name == "Pet[]"
        assert schema.properties["address"].schema_name == "Address"

    def test_cyclic_response_terminates(self, oas3_by_id: dict[str, EndpointInfo]) -> None:
        (ok,) = oas3_by_id["getNodeTree"].responses
        children = ok.schema_.properties["children"]

        assert ok.schema_name == "Node"
        assert children.schema_name == "Node[]"
        assert children.items.properties is None

    def test_swagger2_response_content_type_from_produces(
        self, swagger2_by_id: dict[str, EndpointInfo]
    ) -> None:
        (ok, bad) = swagger2_by_id["findPetsByStatus"].responses
        assert ok.content_type == "application/xml"
        assert ok.schema_name == "Pet[]"
        assert bad.content_type is None

        (ok,) = swagger2_by_id["addPet"].responses
        assert ok.content_type == "application/json"

    def test_swagger2_examples_map(self, swagger2_by_id: dict[str, EndpointInfo]) -> None:
        ok = swagger2_by_id["getPetById"].responses[0]
        assert ok.example == {"id": 1, "name": "rex"}

    def test_integer_status_keys(self) -> None:
        raw = _minimal({"/a": {"get": {"responses": {200: {"description": "ok"}, 418: {"description": "teapot"}}}}})

        (ok,) = _extract(raw)[0].responses

        assert ok.status_code == "200"
        assert ok.description == "ok"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_documents_not_mutated(self, oas3_raw: dict) -> None:
        processed = preprocess(oas3_raw)
        raw_snapshot = copy.deepcopy(oas3_raw)
        processed_snapshot = copy.deepcopy(processed)

        extract_endpoints(processed, oas3_raw)

        assert oas3_raw == raw_snapshot
        assert processed == processed_snapshot

    def test_without_original_names_are_lost(self, oas3_raw: dict) -> None:
        endpoints = extract_endpoints(preprocess(oas3_raw))

        by_id = {ep.operation_id: ep for ep in endpoints}
        assert by_id["createPet"].request_body.schema_name is None
        assert by_id["createPet"].request_body.schema_.properties["name"].type == "string"

    def test_missing_paths(self) -> None:
        assert extract_endpoints({"openapi": "3.0.0"}) == []
