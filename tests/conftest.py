"""
Shared fixtures: fake host runtime graphs and hook chains.
"""

import os
import sys
from types import SimpleNamespace

import pytest

# Make the package importable when running from a source checkout.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


def _link(node_type, children=(), key=None, props=None, state=None, source=None, **extra):
    """Build a raw node and wire child/sibling/return_ links like the host runtime does."""
    node = SimpleNamespace(
        type=node_type,
        key=key,
        index=0,
        child=None,
        sibling=None,
        return_=None,
        memoized_props=props if props is not None else {},
        memoized_state=state,
        **extra,
    )
    if source is not None:
        node.debug_source = source

    previous = None
    for position, child in enumerate(children):
        child.index = position
        child.return_ = node
        if previous is None:
            node.child = child
        else:
            previous.sibling = child
        previous = child
    return node


def _hook_chain(*hooks):
    """Link hook nodes (SimpleNamespace or kwargs dicts) through ``next``."""
    nodes = [h if isinstance(h, SimpleNamespace) else SimpleNamespace(**h) for h in hooks]
    for current, following in zip(nodes, nodes[1:]):
        current.next = following
    if nodes:
        nodes[-1].next = None
    return nodes[0] if nodes else None


@pytest.fixture
def make_fiber():
    return _link


@pytest.fixture
def make_hook_chain():
    return _hook_chain


@pytest.fixture
def components():
    """A few component types in the shapes the host runtime uses."""

    def App(props):
        return None

    def Counter(props):
        return None

    def UserList(props):
        return None

    class Dashboard:
        display_name = None

    def inner_card(props):
        return None

    return SimpleNamespace(
        App=App,
        Counter=Counter,
        UserList=UserList,
        Dashboard=Dashboard,
        memo=lambda inner, name=None: SimpleNamespace(typeof="react.memo", type=inner, display_name=name),
        forward_ref=lambda render: SimpleNamespace(typeof="react.forward_ref", render=render),
        strict_mode=SimpleNamespace(typeof="react.strict_mode"),
        profiler=SimpleNamespace(typeof="react.profiler"),
        fragment=SimpleNamespace(typeof="react.fragment"),
        suspense=SimpleNamespace(typeof="react.suspense"),
        provider=SimpleNamespace(typeof="react.provider", context=SimpleNamespace(display_name="Theme")),
        inner_card=inner_card,
    )


@pytest.fixture
def app_graph(make_fiber, components):
    """HostRoot -> StrictMode -> App -> [Counter, UserList -> [li, li]]."""
    user_list = make_fiber(components.UserList, children=[
        make_fiber("li", key="u1", props={"children": "Ada"}),
        make_fiber("li", key="u2", props={"children": "Linus"}),
    ], props={"users": ["Ada", "Linus"]})
    counter = make_fiber(components.Counter, props={"start": 0})
    app = make_fiber(components.App, children=[counter, user_list])
    strict = make_fiber(components.strict_mode, children=[app])
    return make_fiber(None, children=[strict])
