"""
Hook Chain Decoder

Turns a component's internal hook chain (a singly linked list threaded through
``next``) into an ordered list of HookRecord values.

Hook identity in the host runtime is positional, so ``index`` is the only
stable way to refer to a hook. The ``kind`` we attach is inferred purely from
the shape of each hook node:

- a non-empty update queue means a stateful hook,
- a dependency list (on the node or on the effect it stores) means an
  effect-like hook (effects, memos, callbacks),
- anything else is reported as ``custom``.

This is best-effort. A stateful hook that also carries a dependency list is
reported as ``state``; a memo without deps is reported as ``custom``. Tests
and callers should treat ``kind`` as a hint, not as ground truth.
"""

import logging
from typing import Any, List, Optional

from .raw import read_field, has_field
from .types import HookKind, HookRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOOKS = 50


class HookDecoder:
    """Decodes hook chains with a hard upper bound on the chain length."""

    def __init__(self, max_hooks: int = DEFAULT_MAX_HOOKS):
        if max_hooks < 0:
            raise ValueError("max_hooks must be non-negative")
        self.max_hooks = max_hooks

    def decode(self, head: Any) -> List[HookRecord]:
        """
        Decode the chain starting at ``head``.

        Args:
            head: First hook node, or None when the component holds no hooks.

        Returns:
            At most ``max_hooks`` records in chain order. Decoding also stops at
            the first node seen twice, so a ``next`` cycle cannot repeat entries.
        """
        records: List[HookRecord] = []
        seen = set()
        node = head

        while node is not None and len(records) < self.max_hooks:
            if id(node) in seen:
                logger.debug(f"Hook chain cycle detected after {len(records)} hooks")
                break
            seen.add(id(node))

            try:
                records.append(self._decode_node(node, len(records)))
                node = read_field(node, "next")
            except Exception as e:
                logger.debug(f"Stopping hook decode at index {len(records)}: {e}")
                break

        return records

    def _decode_node(self, node: Any, index: int) -> HookRecord:
        value = read_field(node, "memoized_state")
        return HookRecord(
            index=index,
            kind=classify_hook(node),
            value=value,
            dependencies=_dependencies_of(node),
        )


def classify_hook(node: Any) -> HookKind:
    """Structural hook kind inference. See the module docstring for caveats."""
    if has_field(node, "queue"):
        return HookKind.STATE
    if _dependencies_of(node) is not None:
        return HookKind.EFFECT
    return HookKind.CUSTOM


def _dependencies_of(node: Any) -> Optional[List[Any]]:
    deps = read_field(node, "deps")
    if deps is None:
        # Effect hooks keep their deps on the effect object they store.
        state = read_field(node, "memoized_state")
        if not isinstance(state, (str, bytes)):
            deps = read_field(state, "deps")
    if deps is None or isinstance(deps, (str, bytes)):
        return None
    try:
        return list(deps)
    except TypeError:
        return None
