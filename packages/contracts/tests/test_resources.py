from __future__ import annotations

from snippet_runner_contracts import boot_schema, schema_version_int


def test_schema_version_is_int_ge_1():
    assert schema_version_int() >= 1


def test_boot_schema_loads():
    s = boot_schema()
    assert s["type"] == "object"
    assert "resources" in s["required"]
