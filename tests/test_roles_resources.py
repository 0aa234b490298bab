from __future__ import annotations

import pytest

from scanly.auth.resources import (
    RESOURCE_ALIASES,
    canonicalize,
    is_analytics_resource,
    normalize_permission_type,
    PermissionType,
)
from scanly.auth.roles import ADMIN_LABELS, is_admin_role, normalize_role


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Administrator", "admin"),
        ("ADMIN", "admin"),
        ("superadmin", "admin"),
        (" Super-Admin ", "admin"),
        ("Editor", "editor"),
        ("read-only", "viewer"),
        ("ReadOnly", "viewer"),
        ("viewer", "viewer"),
        ("Marketing", "marketing"),
        ("", "user"),
        ("   ", "user"),
        (None, "user"),
    ],
)
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["Administrator", "super-admin", "EDITOR", "readonly", "Team Lead", "", None, "user", "ÄDMIN"],
)
def test_normalize_role_is_idempotent(raw):
    once = normalize_role(raw)
    assert normalize_role(once) == once


def test_is_admin_role_accepts_admin_labels_only():
    for label in ADMIN_LABELS:
        assert is_admin_role(label.upper())
    assert not is_admin_role("editor")
    assert not is_admin_role("")
    assert not is_admin_role(None)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("qr_codes", "qr_code"),
        ("QR", "qr_code"),
        ("qr_code", "qr_code"),
        ("short_urls", "short_url"),
        ("URLS", "short_url"),
        ("url", "short_url"),
        ("user_analytics", "users"),
        ("qr_category", "qr_category"),
        ("Brand_New_Thing", "Brand_New_Thing"),
    ],
)
def test_canonicalize(raw, expected):
    assert canonicalize(raw) == expected


@pytest.mark.parametrize("raw", ["x", "  ", "qr_codes", "ünïcode", "a" * 300, "-", "0"])
def test_canonicalize_never_empties_non_empty_input(raw):
    assert canonicalize(raw) != ""


def test_canonicalize_is_total_on_odd_input():
    assert canonicalize(None) == ""
    assert canonicalize("") == ""
    assert canonicalize(42) == "42"


def test_alias_targets_are_canonical():
    for target in RESOURCE_ALIASES.values():
        assert canonicalize(target) == target


def test_export_resolves_as_read():
    assert normalize_permission_type("export") == "read"
    assert normalize_permission_type("EXPORT") == "read"
    assert normalize_permission_type(PermissionType.EXPORT) == "read"
    assert normalize_permission_type(" Delete ") == "delete"


def test_analytics_family_uses_canonical_names():
    assert is_analytics_resource("qr_analytics")
    assert is_analytics_resource("Scan_Events")
    assert not is_analytics_resource("qr_codes")
