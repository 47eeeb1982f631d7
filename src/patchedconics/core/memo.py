"""
Explicit memoization cell.

A ``MemoCell`` holds a value that is derived once from immutable inputs and
then reused. The factory passed to :meth:`MemoCell.get` must be a pure
function of those inputs: calling it twice has to give the same result, so
whether the cell is filled or not never changes what a caller observes.
"""

from typing import Callable, Generic, TypeVar

T = TypeVar('T')

class _Unset:
    # Pickles back to the module singleton
    def __reduce__(self):
        return '_UNSET'

    def __repr__(self):
        return '<unset>'


_UNSET = _Unset()


class MemoCell(Generic[T]):
    """Single-slot cache. ``None`` is a valid stored value."""

    __slots__ = ('_value',)

    def __init__(self) -> None:
        self._value = _UNSET

    @property
    def is_set(self) -> bool:
        return self._value is not _UNSET

    def get(self, factory: Callable[[], T]) -> T:
        """Return the stored value, computing it with *factory* on first use."""
        if self._value is _UNSET:
            self._value = factory()
        return self._value

    def peek(self) -> T:
        """
        Stored value without computing it.

        Raises
        ------
        RuntimeError
            If the cell has not been filled yet.
        """
        if self._value is _UNSET:
            raise RuntimeError("MemoCell has not been computed")
        return self._value

    def __repr__(self) -> str:
        return f"MemoCell({self._value!r})"
