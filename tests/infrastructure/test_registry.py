"""Tests for ComponentRegistry."""

from __future__ import annotations

import pytest

from dlp_impact.infrastructure.registry import ComponentRegistry


class TestComponentRegistry:

    def test_register_instance_and_get(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "FileOpenDelay", "factory")
        assert reg.get("check", "FileOpenDelay") == "factory"

    def test_get_missing_lists_available(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "AgentCpuUsage", object())
        with pytest.raises(KeyError, match="AgentCpuUsage"):
            reg.get("check", "missing")

    def test_get_or_none_and_has(self) -> None:
        reg = ComponentRegistry()
        assert reg.get_or_none("check", "a") is None
        assert not reg.has("check", "a")
        reg.register_instance("check", "a", 42)
        assert reg.get_or_none("check", "a") == 42
        assert reg.has("check", "a")

    def test_register_decorator_returns_component(self) -> None:
        reg = ComponentRegistry()

        @reg.register("check", "Custom")
        def build_custom(ctx):
            return ctx

        assert reg.get("check", "Custom") is build_custom
        assert build_custom(7) == 7

    def test_duplicate_rejected(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "a", 1)
        with pytest.raises(ValueError, match="already registered"):
            reg.register_instance("check", "a", 2)

    def test_overwrite(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "a", 1)
        reg.register_instance("check", "a", 2, overwrite=True)
        assert reg.get("check", "a") == 2

    def test_list_category_keeps_registration_order(self) -> None:
        reg = ComponentRegistry()
        for name in ("z", "a", "m"):
            reg.register_instance("check", name, name)
        assert reg.list_category("check") == ["z", "a", "m"]
        assert reg.list_category("probe") == []
        assert reg.list_categories() == ["check"]

    def test_unregister(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "a", 1)
        assert reg.unregister("check", "a") == 1
        with pytest.raises(KeyError, match="not found"):
            reg.unregister("check", "a")

    def test_clear(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "a", 1)
        reg.register_instance("probe", "b", 2)
        reg.clear("check")
        assert reg.list_categories() == ["probe"]
        reg.clear()
        assert reg.list_categories() == []

    def test_contains(self) -> None:
        reg = ComponentRegistry()
        reg.register_instance("check", "a", 1)
        assert ("check", "a") in reg
        assert ("check", "b") not in reg
        assert "a" not in reg

    def test_builtin_checks_registered(self) -> None:
        import dlp_impact.catalog  # noqa: F401
        from dlp_impact.infrastructure.registry import registry

        names = registry.list_category("check")
        assert "FileOpenDelay" in names
        assert "PolicyCoverage" in names
