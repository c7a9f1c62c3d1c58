"""Tests for the Pydantic models."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import ISSUER_ID, KEY_ID
from xcodecloud.exceptions import (
    InvalidPrivateKeyError,
    KeyFileNotFoundError,
    MissingCredentialsError,
)
from xcodecloud.models import (
    APIErrorResponse,
    APIListResponse,
    APIResponse,
    CiBuildAction,
    CiBuildRun,
    CiBuildRunCreateRequest,
    CiProduct,
    CiWorkflow,
    ConfigFile,
    Credentials,
    GitReference,
    Profile,
)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_blank_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Credentials(key_id="  ", issuer_id=ISSUER_ID, private_key="x")

    def test_frozen(self, credentials: Credentials) -> None:
        with pytest.raises(ValidationError):
            credentials.key_id = "other"  # type: ignore[misc]

    def test_private_key_not_in_repr(self, credentials: Credentials) -> None:
        assert "PRIVATE KEY" not in repr(credentials)

    def test_from_key_file(self, key_file: Path, pem_key: str) -> None:
        creds = Credentials.from_key_file(KEY_ID, ISSUER_ID, str(key_file))
        assert creds.private_key == pem_key

    def test_from_key_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(KeyFileNotFoundError) as exc_info:
            Credentials.from_key_file(KEY_ID, ISSUER_ID, str(tmp_path / "nope.p8"))
        assert "nope.p8" in str(exc_info.value)

    def test_from_key_file_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.p8"
        path.write_text("")
        with pytest.raises(InvalidPrivateKeyError):
            Credentials.from_key_file(KEY_ID, ISSUER_ID, str(path))

    def test_from_key_file_expands_home(self, isolated_home: Path, pem_key: str) -> None:
        key = isolated_home / "home" / "AuthKey.p8"
        key.write_text(pem_key)
        creds = Credentials.from_key_file(KEY_ID, ISSUER_ID, "~/AuthKey.p8")
        assert creds.private_key == pem_key


# ---------------------------------------------------------------------------
# Profiles and config files
# ---------------------------------------------------------------------------


class TestProfile:
    def test_inline_key_wins(self, key_file: Path) -> None:
        profile = Profile(
            key_id=KEY_ID,
            issuer_id=ISSUER_ID,
            private_key="inline",
            private_key_path=str(key_file),
        )
        assert profile.to_credentials().private_key == "inline"

    def test_path_used_without_inline(self, key_file: Path, pem_key: str) -> None:
        profile = Profile(key_id=KEY_ID, issuer_id=ISSUER_ID, private_key_path=str(key_file))
        assert profile.to_credentials().private_key == pem_key

    def test_no_key_material(self) -> None:
        profile = Profile(key_id=KEY_ID, issuer_id=ISSUER_ID)
        with pytest.raises(MissingCredentialsError):
            profile.to_credentials()

    def test_camel_case_aliases(self) -> None:
        profile = Profile.model_validate(
            {"keyId": KEY_ID, "issuerId": ISSUER_ID, "privateKeyPath": "~/k.p8"}
        )
        assert profile.private_key_path == "~/k.p8"
        dumped = profile.model_dump(by_alias=True, exclude_none=True)
        assert dumped == {"keyId": KEY_ID, "issuerId": ISSUER_ID, "privateKeyPath": "~/k.p8"}


class TestConfigFile:
    def test_default_key(self) -> None:
        config = ConfigFile.model_validate(
            {"default": "work", "profiles": {"work": {"keyId": "K", "issuerId": "I"}}}
        )
        assert config.default_profile == "work"
        assert config.profiles["work"].key_id == "K"

    def test_empty(self) -> None:
        config = ConfigFile.model_validate({})
        assert config.default_profile is None
        assert config.profiles == {}


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


PRODUCTS_PAGE = {
    "data": [
        {
            "type": "ciProducts",
            "id": "prod-1",
            "attributes": {
                "name": "My App",
                "createdDate": "2024-01-15T10:30:00.000+00:00",
                "productType": "APP",
                "someFutureField": True,
            },
            "relationships": {
                "app": {"data": {"type": "apps", "id": "app-1"}},
                "bundleId": {"data": {"type": "bundleIds", "id": "bundle-1"}},
            },
        }
    ],
    "included": [
        {
            "type": "apps",
            "id": "app-1",
            "attributes": {"bundleId": "com.example.fromapp", "nested": {"a": [1, None, 2.5]}},
        },
        {"type": "bundleIds", "id": "bundle-1", "attributes": {"identifier": "com.example.app"}},
    ],
    "links": {
        "self": "https://api.appstoreconnect.apple.com/v1/ciProducts",
        "next": "https://api.appstoreconnect.apple.com/v1/ciProducts?cursor=Mg.AAAA&limit=1",
    },
    "meta": {"paging": {"total": 3, "limit": 1}},
}


class TestEnvelopes:
    def test_list_response(self) -> None:
        page = APIListResponse[CiProduct].model_validate(PRODUCTS_PAGE)
        assert page.data[0].attributes.name == "My App"
        assert page.data[0].attributes.product_type == "APP"
        assert page.total == 3
        assert page.next_cursor == PRODUCTS_PAGE["links"]["next"]

    def test_included_attributes_hold_any_json(self) -> None:
        page = APIListResponse[CiProduct].model_validate(PRODUCTS_PAGE)
        app = page.included[0]
        assert app.attributes["nested"] == {"a": [1, None, 2.5]}

    def test_no_next_link(self) -> None:
        page = APIListResponse[CiProduct].model_validate({"data": []})
        assert page.next_cursor is None
        assert page.total is None

    def test_self_link_alias_round_trips(self) -> None:
        page = APIListResponse[CiProduct].model_validate(PRODUCTS_PAGE)
        dumped = page.model_dump(by_alias=True, exclude_none=True)
        assert dumped["links"]["self"] == PRODUCTS_PAGE["links"]["self"]

    def test_single_response(self) -> None:
        body = {"data": {"type": "ciWorkflows", "id": "wf-1", "attributes": {"isEnabled": True}}}
        response = APIResponse[CiWorkflow].model_validate(body)
        assert response.data.attributes.is_enabled is True

    def test_error_response(self) -> None:
        body = {
            "errors": [
                {"status": "409", "code": "ENTITY_ERROR", "title": "Conflict", "detail": "Busy"}
            ]
        }
        errors = APIErrorResponse.model_validate(body).errors
        assert errors[0].detail == "Busy"


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class TestCiProduct:
    def test_bundle_id_from_bundle_id_relationship(self) -> None:
        page = APIListResponse[CiProduct].model_validate(PRODUCTS_PAGE)
        assert page.data[0].bundle_id(page.included) == "com.example.app"

    def test_bundle_id_falls_back_to_app(self) -> None:
        data = json.loads(json.dumps(PRODUCTS_PAGE))
        data["included"] = data["included"][:1]
        page = APIListResponse[CiProduct].model_validate(data)
        assert page.data[0].bundle_id(page.included) == "com.example.fromapp"

    def test_bundle_id_without_included(self) -> None:
        page = APIListResponse[CiProduct].model_validate(PRODUCTS_PAGE)
        assert page.data[0].bundle_id(None) is None


class TestCiBuildRun:
    def test_nested_commit(self) -> None:
        run = CiBuildRun.model_validate(
            {
                "type": "ciBuildRuns",
                "id": "run-1",
                "attributes": {
                    "number": 42,
                    "executionProgress": "COMPLETE",
                    "completionStatus": "SUCCEEDED",
                    "sourceCommit": {
                        "commitSha": "abcdef1234567",
                        "author": {"displayName": "Dev"},
                    },
                },
            }
        )
        assert run.attributes.number == 42
        assert run.attributes.source_commit.author.display_name == "Dev"


class TestCiBuildAction:
    @pytest.mark.parametrize(
        "status, failed",
        [("FAILED", True), ("ERRORED", True), ("SUCCEEDED", False), (None, False)],
    )
    def test_failed(self, status, failed) -> None:
        action = CiBuildAction.model_validate(
            {"type": "ciBuildActions", "id": "a", "attributes": {"completionStatus": status}}
        )
        assert action.failed is failed


class TestBuildRunCreateRequest:
    def test_without_reference(self) -> None:
        body = CiBuildRunCreateRequest.for_workflow("wf-1")
        assert body.model_dump(by_alias=True, exclude_none=True) == {
            "data": {
                "type": "ciBuildRuns",
                "relationships": {"workflow": {"data": {"type": "ciWorkflows", "id": "wf-1"}}},
            }
        }

    def test_with_branch(self) -> None:
        body = CiBuildRunCreateRequest.for_workflow("wf-1", GitReference.branch("main"))
        dumped = body.model_dump(by_alias=True, exclude_none=True)
        assert dumped["data"]["attributes"] == {
            "sourceBranchOrTag": {"kind": "BRANCH", "name": "main"}
        }

    def test_tag_reference(self) -> None:
        assert GitReference.tag("v1.0").kind == "TAG"
