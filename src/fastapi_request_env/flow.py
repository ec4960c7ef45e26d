"""Flow class — ordered container for one authenticator and its components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from fastapi_request_env.component import Authenticator, FlowComponent

if TYPE_CHECKING:
    from fastapi_request_env.hooks import FlowHook

FlowItem = Union[Authenticator, FlowComponent, "Flow"]


@dataclass(frozen=True)
class ResolvedFlow:
    """Immutable, pre-computed execution plan."""

    authenticator: Authenticator | None
    components: tuple[FlowComponent, ...]
    hooks: tuple[FlowHook, ...] = ()


class Flow:
    """Ordered container of an optional Authenticator and FlowComponents.

    Nested flows are flattened. A resolved flow holds at most one
    authenticator, which makes it the only writer of the request principal.
    """

    def __init__(self, *items: FlowItem) -> None:
        self._items: list[FlowItem] = list(items)
        self._hooks: list[FlowHook] = []
        self._resolved: ResolvedFlow | None = None

    def add(self, *items: FlowItem) -> Flow:
        self._items.extend(items)
        self._resolved = None
        return self

    def add_hook(self, hook: FlowHook) -> Flow:
        self._hooks.append(hook)
        self._resolved = None
        return self

    def resolve(self) -> ResolvedFlow:
        if self._resolved is not None:
            return self._resolved

        authenticators: list[Authenticator] = []
        components: list[FlowComponent] = []
        hooks: list[FlowHook] = []
        self._flatten(self, authenticators, components, hooks)

        if len(authenticators) > 1:
            names = ", ".join(type(a).__name__ for a in authenticators)
            raise ValueError(f"A flow may hold only one authenticator, got: {names}")

        self._resolved = ResolvedFlow(
            authenticator=authenticators[0] if authenticators else None,
            components=tuple(sorted(components, key=lambda c: c.category.order)),
            hooks=tuple(hooks),
        )
        return self._resolved

    @staticmethod
    def _flatten(
        flow: Flow,
        authenticators: list[Authenticator],
        components: list[FlowComponent],
        hooks: list[FlowHook],
    ) -> None:
        hooks.extend(flow._hooks)
        for item in flow._items:
            if isinstance(item, Flow):
                Flow._flatten(item, authenticators, components, hooks)
            elif isinstance(item, Authenticator):
                authenticators.append(item)
            elif isinstance(item, FlowComponent):
                components.append(item)
            else:
                raise TypeError(f"Unsupported flow item: {item!r}")
