"""Per-organisation settings lookups."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class TenantDirectory(Protocol):
    def origin_postal_code(self, org_id: str) -> str | None: ...


class SettingsTenantDirectory:
    """Origin postal codes taken from ``SERVICE_SHIPPING_ORIGIN_POSTAL_CODES``."""

    def __init__(self, origin_postal_codes: Mapping[str, str]) -> None:
        self._origin_postal_codes = {
            org_id: code.strip() for org_id, code in origin_postal_codes.items() if code and code.strip()
        }

    def origin_postal_code(self, org_id: str) -> str | None:
        return self._origin_postal_codes.get(org_id)
