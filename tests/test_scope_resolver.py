from __future__ import annotations

import logging

import pytest

from scanly.auth.scope import (
    UNSET,
    evaluate_scope,
    groups_match,
    normalize_group_id,
    resolve_scope,
)


@pytest.mark.parametrize("scope, expected", [("all", True), ("group", True), ("own", True), ("none", False)])
def test_create_is_allowed_for_any_non_none_scope(scope, expected):
    assert resolve_scope(scope, "create", "u1", 0) is expected
    # Ownership never matters for create.
    assert resolve_scope(scope, "create", "u1", 5, resource_owner_id="u2", resource_group_id=9) is expected


def test_create_with_unknown_scope_is_denied():
    assert evaluate_scope("everyone", "create", "u1", 1) == (False, "unknown_scope")


@pytest.mark.parametrize(
    "owner, expected",
    [("u1", True), ("u2", False), (None, False), ("", False)],
)
def test_own_scope_requires_matching_owner(owner, expected):
    assert resolve_scope("own", "update", "u1", 3, resource_owner_id=owner) is expected


def test_own_scope_without_caller_is_denied():
    assert resolve_scope("own", "read", None, 0, resource_owner_id=None) is False


@pytest.mark.parametrize(
    "owner, group",
    [(None, UNSET), ("u2", 4), (None, None), ("u1", 0)],
)
def test_all_scope_ignores_ownership(owner, group):
    assert evaluate_scope("all", "delete", "u1", None, owner, group) == (True, "scope_all")


def test_none_scope_denies():
    assert evaluate_scope("none", "read", "u1", 1, "u1", 1) == (False, "scope_none")


def test_group_scope_compares_provided_group():
    assert evaluate_scope("group", "read", "u1", 7, resource_group_id=7) == (True, "group_match")
    assert evaluate_scope("group", "read", "u1", 7, resource_group_id=8) == (False, "group_mismatch")
    assert evaluate_scope("group", "read", "u1", "7", resource_group_id=7) == (True, "group_match")


@pytest.mark.parametrize("caller_group", [0, None, ""])
def test_group_scope_without_caller_group_never_matches(caller_group):
    # "No group" is not a group: two group-less parties do not share one.
    assert resolve_scope("group", "read", "u1", caller_group, resource_group_id=0) is False
    assert resolve_scope("group", "read", "u1", caller_group, resource_group_id=None) is False
    assert resolve_scope("group", "read", "u1", caller_group, resource_group_id=1) is False


@pytest.mark.parametrize("scope", ["all", "group", "own", "none", "bogus"])
@pytest.mark.parametrize("action", ["create", "read", "update"])
@pytest.mark.parametrize("resource_group", [UNSET, None, 0, 1, 2])
def test_zero_and_null_caller_groups_are_equivalent(scope, action, resource_group):
    with_zero = evaluate_scope(scope, action, "u1", 0, "u2", resource_group)
    with_null = evaluate_scope(scope, action, "u1", None, "u2", resource_group)
    assert with_zero == with_null


def test_group_scope_without_group_context_is_permissive():
    assert evaluate_scope("group", "read", "u1", 0) == (True, "group_context_missing")
    assert evaluate_scope("group", "update", "u1", 3, resource_owner_id="u2") == (True, "group_context_missing")


def test_group_scope_for_users_resource_looks_up_target_group():
    groups = {"u2": 3, "u3": 4, "u4": 0}
    lookup = groups.get

    def check(target):
        return evaluate_scope(
            "group", "read", "u1", 3, resource_owner_id=target, resource_type="users", group_lookup=lookup
        )

    assert check("u2") == (True, "group_match")
    assert check("u3") == (False, "group_mismatch")
    assert check("u4") == (False, "group_mismatch")
    assert check("ghost") == (False, "ownership_unresolvable")


def test_unknown_scope_is_denied_and_logged(caplog):
    caplog.set_level(logging.ERROR, logger="scanly.auth.scope")
    assert evaluate_scope("superuser", "read", "u1", 1, resource_type="qr_code") == (False, "unknown_scope")
    records = [r for r in caplog.records if r.name == "scanly.auth.scope"]
    assert records and records[0].levelno == logging.ERROR
    assert records[0].scope == "superuser"


def test_scope_values_are_case_insensitive():
    assert resolve_scope("ALL", "read", "u1", 0) is True
    assert resolve_scope(" Own ", "read", "u1", 0, resource_owner_id="u1") is True


@pytest.mark.parametrize(
    "value, expected",
    [(0, None), (None, None), ("", None), (" 0 ", None), (UNSET, None), ("12", 12), (5, 5), ("abc", None)],
)
def test_normalize_group_id(value, expected):
    assert normalize_group_id(value) == expected


def test_groups_match_requires_real_group_on_both_sides():
    assert groups_match(2, "2")
    assert not groups_match(0, 0)
    assert not groups_match(None, None)
    assert not groups_match(0, None)
