"""
Unit tests for lifecycle hook slots.
"""

import pytest

from esmodeller.hooks import HOOK_NAMES, Hooks


class TestHooks:
    """Tests for Hooks."""

    def test_hook_names(self):
        """Every event has a before and after slot."""
        assert len(HOOK_NAMES) == 12
        assert "before_create" in HOOK_NAMES
        assert "after_fetch" in HOOK_NAMES

    def test_unknown_name_raises(self):
        """Unknown slot names are rejected."""
        hooks = Hooks()
        with pytest.raises(ValueError, match="Unknown hook 'before_delete'"):
            hooks.add("before_delete", lambda m: None)

    def test_non_callable_raises(self):
        """Hooks must be callable."""
        with pytest.raises(TypeError):
            Hooks().add("before_save", "not callable")

    def test_initial_hooks(self):
        """Initial hooks may be single callables or lists."""

        def a(m):
            pass

        def b(m):
            pass

        hooks = Hooks({"before_save": a, "after_save": [a, b]})

        assert hooks.get("before_save") == (a,)
        assert hooks.get("after_save") == (a, b)
        assert len(hooks) == 3

    def test_discard_and_clear(self):
        """Hooks can be removed individually or all at once."""
        hooks = Hooks()

        def fn(m):
            pass

        hooks.add("before_save", fn)
        hooks.add("after_save", fn)

        hooks.discard("before_save", fn)
        assert hooks.get("before_save") == ()

        hooks.clear()
        assert len(hooks) == 0

    def test_copy_is_independent(self):
        """Copies do not share slots."""
        hooks = Hooks({"before_save": lambda m: None})
        copied = hooks.copy()

        copied.add("after_save", lambda m: None)

        assert len(hooks) == 1
        assert len(copied) == 2

    @pytest.mark.asyncio
    async def test_run_in_order(self):
        """Hooks run in registration order, sync and async alike."""
        calls = []
        hooks = Hooks()

        def first(instance):
            calls.append(("first", instance))

        async def second(instance):
            calls.append(("second", instance))

        hooks.add("before_save", first)
        hooks.add("before_save", second)

        await hooks.run("before_save", "doc")

        assert calls == [("first", "doc"), ("second", "doc")]

    @pytest.mark.asyncio
    async def test_raising_hook_stops_the_slot(self):
        """A raising hook propagates and later hooks do not run."""
        calls = []
        hooks = Hooks()

        def boom(instance):
            raise RuntimeError("boom")

        hooks.add("before_save", boom)
        hooks.add("before_save", lambda instance: calls.append(instance))

        with pytest.raises(RuntimeError, match="boom"):
            await hooks.run("before_save", "doc")
        assert calls == []
