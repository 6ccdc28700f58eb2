"""
Tests for HookDecoder and the structural hook classification.
"""

from types import SimpleNamespace

import pytest

from fiberscope.fiber.hooks import HookDecoder, classify_hook, DEFAULT_MAX_HOOKS
from fiberscope.fiber.types import HookKind


class TestHookDecoder:
    """Test suite for HookDecoder.decode."""

    def test_decode_in_chain_order(self, make_hook_chain):
        """Records keep chain order and positional indices."""
        head = make_hook_chain(
            {"memoized_state": 0, "queue": SimpleNamespace(pending=None)},
            {"memoized_state": SimpleNamespace(deps=["count"])},
            {"memoized_state": "ref"},
        )

        records = HookDecoder().decode(head)

        assert [r.index for r in records] == [0, 1, 2]
        assert [r.kind for r in records] == [HookKind.STATE, HookKind.EFFECT, HookKind.CUSTOM]
        assert records[0].value == 0
        assert records[1].dependencies == ["count"]
        assert records[2].dependencies is None

    def test_no_hooks(self):
        """A component without hooks decodes to an empty list."""
        assert HookDecoder().decode(None) == []

    def test_cycle_is_bounded(self, make_hook_chain):
        """A ``next`` cycle stops at the first repeated node."""
        head = make_hook_chain({"memoized_state": 1}, {"memoized_state": 2})
        head.next.next = head

        records = HookDecoder().decode(head)

        assert [r.value for r in records] == [1, 2]

    def test_long_chain_is_capped(self, make_hook_chain):
        """Chains longer than max_hooks are cut off."""
        head = make_hook_chain(*[{"memoized_state": i} for i in range(DEFAULT_MAX_HOOKS + 25)])

        records = HookDecoder().decode(head)

        assert len(records) == DEFAULT_MAX_HOOKS
        assert records[-1].index == DEFAULT_MAX_HOOKS - 1

    def test_custom_limit(self, make_hook_chain):
        head = make_hook_chain(*[{"memoized_state": i} for i in range(10)])

        assert len(HookDecoder(max_hooks=3).decode(head)) == 3

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            HookDecoder(max_hooks=-1)

    def test_unreadable_link_stops_decoding(self):
        """A ``next`` read that fails keeps what was decoded so far."""

        class Exploding:
            memoized_state = "first"

            @property
            def next(self):
                raise RuntimeError("torn")

        records = HookDecoder().decode(Exploding())

        assert len(records) == 1
        assert records[0].value == "first"

    def test_mapping_hook_nodes(self):
        head = {"memoized_state": 5, "queue": {}, "next": {"memoized_state": None, "deps": (1, 2)}}

        records = HookDecoder().decode(head)

        assert [r.kind for r in records] == [HookKind.STATE, HookKind.EFFECT]
        assert records[1].dependencies == [1, 2]


class TestClassifyHook:
    """Structural kind inference."""

    def test_queue_wins_over_deps(self):
        node = SimpleNamespace(queue=object(), deps=[1], memoized_state=None)
        assert classify_hook(node) is HookKind.STATE

    def test_string_state_is_not_treated_as_deps(self):
        node = SimpleNamespace(memoized_state="deps")
        assert classify_hook(node) is HookKind.CUSTOM
