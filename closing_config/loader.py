"""
Configuration loader (``closing_config.loader``).

Loads a YAML file and parses it into ``ClosingConfig``.  Missing optional
sections fall back to the schema defaults; malformed values raise.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``account_classes`` -> ``KeyError``.
* Unknown account class or bad date -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from closing_config.schema import AccountRoles, ClosingConfig, DocPrefixes
from closing_kernel.domain.accounts import AccountClass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _codes(value: Any) -> tuple[str, ...]:
    return tuple(str(v) for v in value)


def parse_roles(data: dict[str, Any]) -> AccountRoles:
    defaults = AccountRoles()
    return AccountRoles(
        prepaid_source=str(data.get("prepaid_source", defaults.prepaid_source)),
        allocation_targets=_codes(data.get("allocation_targets", defaults.allocation_targets)),
        fx_clearing=str(data.get("fx_clearing", defaults.fx_clearing)),
        fx_gain=str(data.get("fx_gain", defaults.fx_gain)),
        fx_loss=str(data.get("fx_loss", defaults.fx_loss)),
        fx_accounts=_codes(data.get("fx_accounts", defaults.fx_accounts)),
        income_summary=str(data.get("income_summary", defaults.income_summary)),
        retained_earnings=str(data.get("retained_earnings", defaults.retained_earnings)),
        vat_input=str(data.get("vat_input", defaults.vat_input)),
        vat_output=str(data.get("vat_output", defaults.vat_output)),
    )


def parse_prefixes(data: dict[str, Any]) -> DocPrefixes:
    defaults = DocPrefixes()
    return DocPrefixes(
        allocation=str(data.get("allocation", defaults.allocation)),
        revaluation=str(data.get("revaluation", defaults.revaluation)),
        closing=str(data.get("closing", defaults.closing)),
        reallocation=str(data.get("reallocation", defaults.reallocation)),
        vat_offset=str(data.get("vat_offset", defaults.vat_offset)),
    )


def parse_config(data: dict[str, Any]) -> ClosingConfig:
    """
    Parse a configuration dict.

    Raises:
        KeyError: ``account_classes`` is missing.
        ValueError: unknown account class, bad date or non-positive numbers.
    """
    account_classes = {
        str(prefix): AccountClass(str(cls))
        for prefix, cls in data["account_classes"].items()
    }
    default_life = int(data.get("default_life_months", 12))
    workers = int(data.get("duplicate_check_workers", 8))
    if default_life <= 0:
        raise ValueError("default_life_months must be positive")
    if workers <= 0:
        raise ValueError("duplicate_check_workers must be positive")

    return ClosingConfig(
        account_classes=account_classes,
        roles=parse_roles(data.get("roles") or {}),
        prefixes=parse_prefixes(data.get("prefixes") or {}),
        default_life_months=default_life,
        duplicate_check_workers=workers,
        locked_until=_parse_date(data.get("locked_until")),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ClosingConfig:
    return parse_config(load_yaml_file(path))
