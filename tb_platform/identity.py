# tb_platform/identity.py
# TaskBrowse - organization/person identity resolution (config -> cache -> API)
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from _logging import log as BASE_LOG
from .blob_store import BlobStore
from .errors import ConfigError
from .productive import ProductiveClient

__all__ = ["Identity", "resolve_identity", "resolve_organization", "resolve_person", "org_slug_from_name"]

K_ORG = "organization_info"
K_PERSON_ID = "current_person_id"
K_PERSON_NAME = "current_person_name"

_LOG = BASE_LOG.child("IDENTITY")


@dataclass(frozen=True)
class Identity:
    org_id: str
    org_slug: str
    person_id: str
    person_name: str = ""


def org_slug_from_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(name or "").lower())


def _cache_put(cache: BlobStore, key: str, value: str) -> None:
    # best effort: a failed cache write only means another lookup next time
    try:
        cache.put(key, value)
    except OSError as e:
        _LOG.warn(f"could not cache {key}: {e}")


def resolve_organization(pcfg: Mapping[str, Any], client: ProductiveClient, cache: BlobStore) -> tuple[str, str]:
    org_id = str(pcfg.get("org_id") or "").strip()
    org_slug = str(pcfg.get("org_slug") or "").strip()
    if org_id and org_slug:
        return org_id, org_slug

    raw = cache.get(K_ORG)
    if raw:
        try:
            cached = json.loads(raw)
            if cached.get("orgId") and cached.get("orgSlug"):
                return str(cached["orgId"]), str(cached["orgSlug"])
        except (ValueError, AttributeError):
            _LOG.warn("ignoring unreadable organization_info cache")

    # organizations endpoint does not take the org header
    saved_org = client.org_id
    client.org_id = None
    try:
        data = client.get("organizations")
    finally:
        client.org_id = saved_org

    orgs = data.get("data") or []
    if not orgs:
        raise ConfigError("No organizations found for this API token")
    org = orgs[0]
    name = (org.get("attributes") or {}).get("name")
    if not name:
        raise ConfigError("Organization name not found in API response")

    info = {"orgId": str(org.get("id")), "orgSlug": org_slug_from_name(name)}
    _LOG.info(f"detected organization {info['orgId']}-{info['orgSlug']}")
    _cache_put(cache, K_ORG, json.dumps(info))
    return info["orgId"], info["orgSlug"]


def resolve_person(pcfg: Mapping[str, Any], client: ProductiveClient, cache: BlobStore) -> tuple[str, str]:
    person_id = str(pcfg.get("person_id") or "").strip()
    if person_id:
        return person_id, cache.get(K_PERSON_NAME) or ""

    cached = (cache.get(K_PERSON_ID) or "").strip()
    if cached:
        return cached, cache.get(K_PERSON_NAME) or ""

    data = client.get("organization_memberships", {"include": "person"})
    person = next(
        (it for it in (data.get("included") or []) if isinstance(it, Mapping) and it.get("type") == "people"),
        None,
    )
    if not person:
        raise ConfigError("Could not determine current user from API")

    attrs = person.get("attributes") or {}
    pid = str(person.get("id"))
    pname = str(attrs.get("name") or attrs.get("email") or "")
    _LOG.info(f"detected person id {pid} ({pname})")
    _cache_put(cache, K_PERSON_ID, pid)
    _cache_put(cache, K_PERSON_NAME, pname)
    return pid, pname


def resolve_identity(cfg: Mapping[str, Any], client: ProductiveClient, cache: BlobStore) -> Identity:
    """Resolve who we sync for. Called once per sync pass."""
    pcfg = cfg.get("productive") or {}
    if not str(pcfg.get("api_token") or "").strip():
        raise ConfigError("PRODUCTIVE_API_TOKEN not configured")

    org_id, org_slug = resolve_organization(pcfg, client, cache)
    client.org_id = org_id
    person_id, person_name = resolve_person(pcfg, client, cache)
    return Identity(org_id=org_id, org_slug=org_slug, person_id=person_id, person_name=person_name)
