"""Tests for routing key generation."""

import pytest

from labelforge.routing import routing_key, routing_keys, to_env
from labelforge.sync.state import IdentifierMap


@pytest.mark.parametrize(
    "path, expected",
    [
        (("MANAGER", "Hailey"), "MANAGER_HAILEY"),
        (("GOOGLE REVIEW",), "GOOGLE_REVIEW"),
        (("SERVICE", "A/C Repair"), "SERVICE_A_C_REPAIR"),
        (("SUPPLIERS", "  Lennox  "), "SUPPLIERS_LENNOX"),
        (("SALES", "Follow-ups & Quotes"), "SALES_FOLLOW_UPS_QUOTES"),
        (("MISC", "***"), "MISC"),
    ],
)
def test_routing_key(path, expected):
    assert routing_key(path) == expected


def test_routing_keys_for_one_provider():
    label_map = IdentifierMap()
    label_map.set("gmail", ("MANAGER",), "Label_1")
    label_map.set("gmail", ("MANAGER", "Hailey"), "Label_2")
    label_map.set("outlook", ("MANAGER",), "AAMk-1")

    result = routing_keys(label_map, "gmail")

    assert result.keys == {"MANAGER": "Label_1", "MANAGER_HAILEY": "Label_2"}
    assert result.collisions == []


def test_collision_keeps_first_path():
    label_map = IdentifierMap()
    label_map.set("gmail", ("SERVICE", "A/C"), "Label_1")
    label_map.set("gmail", ("SERVICE", "A C"), "Label_2")

    result = routing_keys(label_map, "gmail")

    assert result.keys == {"SERVICE_A_C": "Label_1"}
    assert result.collisions == [(("SERVICE", "A C"), ("SERVICE", "A/C"), "SERVICE_A_C")]


def test_archived_entries_have_no_keys():
    label_map = IdentifierMap()
    label_map.set("gmail", ("MANAGER", "Hailey"), "Label_2")
    label_map.archive("gmail", ("MANAGER", "Hailey"), ("ARCHIVED", "MANAGER", "Hailey"))

    assert routing_keys(label_map, "gmail").keys == {}


def test_to_env():
    assert to_env({"MANAGER_HAILEY": "Label_2"}) == {"LABEL_MANAGER_HAILEY": "Label_2"}
    assert to_env({"SALES": "Label_3"}, prefix="") == {"SALES": "Label_3"}
