from __future__ import annotations

from typing import Callable, Generic, List, TypeVar


T = TypeVar("T")

Listener = Callable[[T], None]


class Observable(Generic[T]):
    """
    Minimal single-writer, multi-reader value holder.

    - `on_set` hooks run before the value changes and receive the new value;
      if a hook raises, the set is aborted and the old value stays in place.
      Persistence is registered this way.
    - `subscribe` calls the listener right away with the current value and
      again after every change; `listen` only reports changes.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._hooks: List[Listener[T]] = []
        self._listeners: List[Listener[T]] = []

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        for hook in list(self._hooks):
            hook(value)
        self._value = value
        for listener in list(self._listeners):
            listener(value)

    def on_set(self, hook: Listener[T]) -> Callable[[], None]:
        self._hooks.append(hook)
        return lambda: self._remove(self._hooks, hook)

    def listen(self, listener: Listener[T]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._remove(self._listeners, listener)

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        unsubscribe = self.listen(listener)
        listener(self._value)
        return unsubscribe

    @staticmethod
    def _remove(items: List[Listener[T]], item: Listener[T]) -> None:
        if item in items:
            items.remove(item)


__all__ = ["Observable"]
