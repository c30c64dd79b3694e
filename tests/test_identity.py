# TaskBrowse test scripts
from __future__ import annotations

import json

import pytest
import responses

from conftest import API
from tb_platform.blob_store import MemoryBlobStore
from tb_platform.errors import ConfigError, UpstreamError
from tb_platform.identity import org_slug_from_name, resolve_identity
from tb_platform.productive import ProductiveClient


def _cfg(**productive: str) -> dict:
    return {"productive": {"api_token": "tok", **productive}}


def test_org_slug_from_name() -> None:
    assert org_slug_from_name("Acme Digital, Inc.") == "acmedigitalinc"


def test_config_values_skip_api_lookups() -> None:
    store = MemoryBlobStore()
    client = ProductiveClient("tok", api_base=API)
    with responses.RequestsMock():
        ident = resolve_identity(_cfg(org_id="42", org_slug="acme", person_id="7"), client, store)
    assert (ident.org_id, ident.org_slug, ident.person_id) == ("42", "acme", "7")
    assert client.org_id == "42"
    assert store.writes == []


def test_lookups_hit_api_once_then_use_cache() -> None:
    store = MemoryBlobStore()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{API}/organizations",
            json={"data": [{"id": "42", "type": "organizations", "attributes": {"name": "Acme Digital"}}]},
        )
        rsps.add(
            responses.GET,
            f"{API}/organization_memberships",
            json={
                "data": [{"id": "900", "type": "organization_memberships"}],
                "included": [{"id": "7", "type": "people", "attributes": {"name": "Alice"}}],
            },
        )
        ident = resolve_identity(_cfg(), ProductiveClient("tok", api_base=API), store)

        assert "X-Organization-Id" not in rsps.calls[0].request.headers
        assert rsps.calls[1].request.headers["X-Organization-Id"] == "42"

    assert ident.org_id == "42"
    assert ident.org_slug == "acmedigital"
    assert ident.person_id == "7"
    assert ident.person_name == "Alice"
    assert json.loads(store.data["organization_info"]) == {"orgId": "42", "orgSlug": "acmedigital"}
    assert store.data["current_person_id"] == "7"
    assert store.data["current_person_name"] == "Alice"

    # second pass: cache only, no HTTP registered
    with responses.RequestsMock():
        again = resolve_identity(_cfg(), ProductiveClient("tok", api_base=API), store)
    assert again == ident


def test_missing_token_is_config_error() -> None:
    with pytest.raises(ConfigError):
        resolve_identity({"productive": {"api_token": ""}}, ProductiveClient("", api_base=API), MemoryBlobStore())


def test_no_organizations_is_config_error() -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/organizations", json={"data": []})
        with pytest.raises(ConfigError):
            resolve_identity(_cfg(), ProductiveClient("tok", api_base=API), MemoryBlobStore())


def test_person_lookup_failure_propagates() -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/organization_memberships", body="nope", status=401)
        with pytest.raises(UpstreamError) as ei:
            resolve_identity(_cfg(org_id="42", org_slug="acme"), ProductiveClient("tok", api_base=API), MemoryBlobStore())
    assert ei.value.status == 401
