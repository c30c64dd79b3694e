# tb_platform/productive.py
# TaskBrowse - Productive.io REST client (JSON:API over requests)
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import requests

from .errors import UpstreamError

__all__ = ["ProductiveClient", "UA", "client_from_config"]

UA = os.environ.get("TB_UA", "TaskBrowse/1.0 (Productive)")


class ProductiveClient:
    def __init__(
        self,
        api_token: str,
        *,
        api_base: str = "https://api.productive.io/api/v2",
        org_id: str | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_token = str(api_token or "").strip()
        self.api_base = str(api_base or "").rstrip("/")
        self.org_id = str(org_id or "").strip() or None
        self.timeout = float(timeout or 15.0)
        self.session = session or requests.Session()

    def build_headers(self) -> dict[str, str]:
        h = {
            "X-Auth-Token": self.api_token,
            "Content-Type": "application/vnd.api+json",
            "Accept": "application/vnd.api+json",
            "User-Agent": UA,
        }
        if self.org_id:
            h["X-Organization-Id"] = self.org_id
        return h

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """GET one endpoint. No retries: any failure raises ``UpstreamError``."""
        url = f"{self.api_base}/{path.lstrip('/')}"
        try:
            resp = self.session.get(url, params=dict(params or {}), headers=self.build_headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(0, str(e), url) from e
        if not resp.ok:
            raise UpstreamError(resp.status_code, resp.text or "", url)
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(resp.status_code, f"invalid JSON: {e}", url) from e
        return data if isinstance(data, dict) else {}


def client_from_config(cfg: Mapping[str, Any], session: requests.Session | None = None) -> ProductiveClient:
    pcfg = cfg.get("productive") or {}
    return ProductiveClient(
        str(pcfg.get("api_token") or ""),
        api_base=str(pcfg.get("api_base") or "https://api.productive.io/api/v2"),
        org_id=str(pcfg.get("org_id") or "") or None,
        timeout=float(pcfg.get("timeout") or 15.0),
        session=session,
    )
