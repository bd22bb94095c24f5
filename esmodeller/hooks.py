"""
Lifecycle hook slots for entity classes.

Every entity class owns a Hooks object with one ordered slot per lifecycle
point. Hooks receive the model instance and may mutate it in place before
the operation continues.

Usage:
    Post = modeller.create_model("posts", {"title": "string", "created_at": "string"})

    @Post.hook("before_create")
    async def stamp(post):
        post.created_at = datetime.now(timezone.utc).isoformat()

Invariants:
    - Hooks in a slot run in registration order
    - Each hook completes (awaited if it returns an awaitable) before the next
    - A raising hook aborts the operation; the exception propagates unchanged
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

HookFn = Callable[[Any], Any]

EVENTS = ("validate", "create", "update", "remove", "fetch", "save")

HOOK_NAMES = tuple(f"{when}_{event}" for when in ("before", "after") for event in EVENTS)


class Hooks:
    """Named, ordered hook slots.

    Example:
        hooks = Hooks()
        hooks.add("before_save", lambda model: print("saving", model.id))
        await hooks.run("before_save", instance)
    """

    VALID_NAMES = frozenset(HOOK_NAMES)

    def __init__(self, hooks: Mapping[str, HookFn | list[HookFn]] | None = None) -> None:
        """Initialize hook slots.

        Args:
            hooks: Optional initial hooks, a callable or list of callables per name
        """
        self._slots: dict[str, list[HookFn]] = {name: [] for name in HOOK_NAMES}
        self.update(hooks)

    def _check_name(self, name: str) -> None:
        if name not in self.VALID_NAMES:
            raise ValueError(
                f"Unknown hook '{name}'. Valid hooks: {', '.join(HOOK_NAMES)}"
            )

    def add(self, name: str, fn: HookFn) -> HookFn:
        """Append a hook to a slot.

        Returns:
            The hook itself, so add() can back a decorator
        """
        self._check_name(name)
        if not callable(fn):
            raise TypeError(f"Hook for '{name}' must be callable")
        self._slots[name].append(fn)
        return fn

    def update(self, hooks: Mapping[str, HookFn | list[HookFn]] | None) -> None:
        """Append hooks from a mapping of name to a callable or list of callables."""
        for name, fns in (hooks or {}).items():
            for fn in fns if isinstance(fns, (list, tuple)) else [fns]:
                self.add(name, fn)

    def discard(self, name: str, fn: HookFn) -> None:
        """Remove a hook from a slot if present."""
        self._check_name(name)
        if fn in self._slots[name]:
            self._slots[name].remove(fn)

    def get(self, name: str) -> tuple[HookFn, ...]:
        """Hooks registered for a slot."""
        self._check_name(name)
        return tuple(self._slots[name])

    def clear(self, name: str | None = None) -> None:
        """Empty one slot, or all of them."""
        if name is None:
            for fns in self._slots.values():
                fns.clear()
        else:
            self._check_name(name)
            self._slots[name].clear()

    def copy(self) -> Hooks:
        """Independent copy with the same hooks."""
        return Hooks({name: list(fns) for name, fns in self._slots.items() if fns})

    async def run(self, name: str, instance: Any) -> None:
        """Run every hook in a slot against ``instance``."""
        self._check_name(name)
        for fn in self._slots[name]:
            logger.debug(
                "Running hook",
                extra={"hook": name, "fn": getattr(fn, "__qualname__", repr(fn))},
            )
            result = fn(instance)
            if inspect.isawaitable(result):
                await result

    def __len__(self) -> int:
        return sum(len(fns) for fns in self._slots.values())

    def __repr__(self) -> str:
        registered = {name: len(fns) for name, fns in self._slots.items() if fns}
        return f"Hooks({registered})"
