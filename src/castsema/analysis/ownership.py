"""
Ownership handle tracking.

Handle lifecycle:

    Valid --move-->    Moved      (a fresh Valid handle takes over the pointee)
    Valid --copy-->    Valid      (shared only; lineage count + 1, new Valid alias)
    Valid --release--> Destroyed  (shared: pointee freed when the count hits 0)

Every operation on a Moved or Destroyed handle raises an OwnershipViolation;
nothing is ever a silent no-op. A handle is owned by the scope that created
it until a variable takes it over (adopt), and is released when its owning
scope exits.
"""

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Generator, List, Optional

from ..shared.errors import (
    DoubleReleaseError,
    NonCopyableError,
    UseAfterMoveError,
    UseAfterReleaseError,
)
from ..shared.source_location import SourceLocation
from ..shared.types import Type

logger = logging.getLogger("castsema.analysis.ownership")


class OwnershipMode(Enum):
    UNIQUE = "unique"
    SHARED = "shared"


class HandleState(Enum):
    VALID = "valid"
    MOVED = "moved"
    DESTROYED = "destroyed"


@dataclass(eq=False)
class SharedLineage:
    """Reference count shared by every copy of one shared handle."""
    lineage_id: int
    count: int = 1
    freed: bool = False


@dataclass(eq=False)
class OwnershipHandle:
    handle_id: int
    mode: OwnershipMode
    pointee: Type
    state: HandleState = HandleState.VALID
    lineage: Optional[SharedLineage] = None
    origin: Optional[SourceLocation] = field(default=None, repr=False)

    @property
    def is_valid(self) -> bool:
        return self.state is HandleState.VALID

    @property
    def ref_count(self) -> int:
        """Live aliases of the pointee (1 or 0 for unique handles)."""
        if self.lineage is not None:
            return self.lineage.count
        return 1 if self.is_valid else 0

    def __str__(self) -> str:
        return f"{self.mode.value}#{self.handle_id}<{self.pointee}>"


class OwnershipTracker:
    """Models unique/shared handle state as construction, copy, move and release are resolved."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lineage_ids = itertools.count(1)
        self.handles: List[OwnershipHandle] = []
        self._scopes: List[List[OwnershipHandle]] = []

    # -- scopes --------------------------------------------------------------

    def enter_scope(self) -> None:
        self._scopes.append([])

    def exit_scope(self, location: Optional[SourceLocation] = None) -> List[OwnershipHandle]:
        """Release every still-Valid handle the innermost scope owns."""
        if not self._scopes:
            raise RuntimeError("Cannot exit ownership scope: no active scope")
        owned = self._scopes.pop()
        released = []
        for handle in owned:
            if handle.is_valid:
                self.release(handle, location)
                released.append(handle)
        return released

    def adopt(self, handle: OwnershipHandle, depth: int) -> None:
        """Make the scope at `depth` (0 = outermost) the owner of `handle`."""
        if not 0 <= depth < len(self._scopes):
            raise RuntimeError(f"Cannot adopt into ownership scope {depth}: {len(self._scopes)} active")
        for owned in self._scopes:
            if handle in owned:
                owned.remove(handle)
                break
        self._scopes[depth].append(handle)

    @contextmanager
    def scope(self, location: Optional[SourceLocation] = None) -> Generator[None, None, None]:
        self.enter_scope()
        try:
            yield
        finally:
            self.exit_scope(location)

    def _new_handle(self, mode: OwnershipMode, pointee: Type, lineage: Optional[SharedLineage],
                    location: Optional[SourceLocation]) -> OwnershipHandle:
        handle = OwnershipHandle(next(self._ids), mode, pointee, lineage=lineage, origin=location)
        self.handles.append(handle)
        if self._scopes:
            self._scopes[-1].append(handle)
        return handle

    # -- construction ----------------------------------------------------------

    def make_unique(self, pointee: Type, location: Optional[SourceLocation] = None) -> OwnershipHandle:
        handle = self._new_handle(OwnershipMode.UNIQUE, pointee, None, location)
        logger.debug("created %s", handle)
        return handle

    def make_shared(self, pointee: Type, location: Optional[SourceLocation] = None) -> OwnershipHandle:
        lineage = SharedLineage(next(self._lineage_ids))
        handle = self._new_handle(OwnershipMode.SHARED, pointee, lineage, location)
        logger.debug("created %s (lineage %d)", handle, lineage.lineage_id)
        return handle

    # -- operations --------------------------------------------------------------

    def _check_live(self, handle: OwnershipHandle, operation: str,
                    location: Optional[SourceLocation]) -> None:
        if handle.state is HandleState.MOVED:
            raise UseAfterMoveError(f"{operation} of '{handle}' after it was moved from", location)
        if handle.state is HandleState.DESTROYED:
            raise UseAfterReleaseError(f"{operation} of '{handle}' after it was released", location)

    def use(self, handle: OwnershipHandle, location: Optional[SourceLocation] = None) -> None:
        """Dereference or member access through the handle."""
        self._check_live(handle, "use", location)

    def move(self, handle: OwnershipHandle, location: Optional[SourceLocation] = None) -> OwnershipHandle:
        self._check_live(handle, "move", location)
        handle.state = HandleState.MOVED
        moved = self._new_handle(handle.mode, handle.pointee, handle.lineage, location)
        logger.debug("moved %s -> %s", handle, moved)
        return moved

    def copy(self, handle: OwnershipHandle, location: Optional[SourceLocation] = None) -> OwnershipHandle:
        self._check_live(handle, "copy", location)
        if handle.mode is OwnershipMode.UNIQUE:
            raise NonCopyableError(f"'{handle}' is a unique handle and cannot be copied", location)
        handle.lineage.count += 1
        alias = self._new_handle(handle.mode, handle.pointee, handle.lineage, location)
        logger.debug("copied %s -> %s (count %d)", handle, alias, handle.lineage.count)
        return alias

    def release(self, handle: OwnershipHandle, location: Optional[SourceLocation] = None) -> None:
        if handle.state is HandleState.DESTROYED:
            raise DoubleReleaseError(f"'{handle}' is released twice", location)
        if handle.state is HandleState.MOVED:
            raise UseAfterMoveError(f"release of '{handle}' after it was moved from", location)
        handle.state = HandleState.DESTROYED
        if handle.lineage is not None:
            handle.lineage.count -= 1
            if handle.lineage.count == 0:
                handle.lineage.freed = True
                logger.debug("lineage %d freed its %s", handle.lineage.lineage_id, handle.pointee)
        logger.debug("released %s", handle)
