"""
Graph runner — sugar over nodnod.

    from cartflow import _graph as G

    @G.node
    class LoadQuote:
        @classmethod
        async def __compose__(cls, spec: EntrySpec) -> "LoadQuote": ...

    outcome = await G.resolve(FinalNode, spec)

Dependencies are discovered from the target's `__compose__` signature.
Inputs are injected by their runtime type.
"""

from __future__ import annotations

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import scalar_node as node
from nodnod import EventLoopAgent, Node, Scope, Value


async def resolve[T](target: type[T], *inputs: object) -> T:
    """
    Build the graph behind `target`, run it, return the target node.

    Raises LookupError if the target could not be resolved; a graph
    whose final node always has a live case never does.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    scope = Scope(detail=target.__name__)

    async with scope:
        for value in inputs:
            scope.push(Value(type(value), value))

        run = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run(scope, {})

        resolved = scope.get(target)
        if resolved is None:
            raise LookupError(f"{target.__name__} was not resolved")
        return cast(T, resolved.value)


__all__ = ("node", "resolve")
