"""Grouping strategies: which variants form each test unit.

Every strategy yields a finite, restartable sequence of TestUnits. Members
of a unit are ascending 0-based variant indices. Units come in ascending
source order, except for named sets, which follow the order in which sets
first appear in the mapping file.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from ordscan.errors import ConfigurationError
from ordscan.io.snpset import read_snpset_file, validate_snpset_order


@dataclass
class TestUnit:
    """One joint hypothesis test.

    Attributes:
        index: Position of the unit in the scan (0-based).
        members: Ascending variant indices.
        label: Set id for named-set units.
    """

    __test__ = False  # not a pytest test class

    index: int
    members: np.ndarray
    label: str | None = None

    @property
    def width(self) -> int:
        return len(self.members)


def partition_windows(n_variants: int, width: int) -> list[tuple[int, int]]:
    """Split [0, n_variants) into contiguous (start, end) chunks of ``width``.

    The last chunk holds the remainder and may be shorter. Yields
    ceil(n_variants / width) chunks.
    """
    if width < 1:
        raise ConfigurationError(f"window width must be positive, got {width}")
    return [
        (start, min(start + width, n_variants))
        for start in range(0, n_variants, width)
    ]


class GroupingStrategy:
    """Base class for grouping strategies.

    Attributes:
        requires_random_access: Members of a unit may be far apart in the
            source, so forward-only sources must be materialized first.
        mode: Grouping mode name used to select the output layout
            ("single", "window", "snpset" or "explicit").
    """

    requires_random_access = False
    mode = "single"

    def units(self, n_variants: int) -> Iterator[TestUnit]:
        raise NotImplementedError

    def count_units(self, n_variants: int) -> int:
        raise NotImplementedError

    def max_width(self, n_variants: int) -> int:
        raise NotImplementedError

    def validate(self, source) -> None:
        """Check the strategy against an opened source before scanning."""


class SingleVariant(GroupingStrategy):
    """One unit per variant, optionally restricted by a variant mask.

    Args:
        variant_mask: None (all variants), boolean mask over the source's
            variants, or ascending 0-based indices.
    """

    mode = "single"

    def __init__(self, variant_mask: np.ndarray | list | None = None):
        self.variant_mask = variant_mask

    def selected(self, n_variants: int) -> np.ndarray:
        if self.variant_mask is None:
            return np.arange(n_variants)
        mask = np.asarray(self.variant_mask)
        if mask.dtype == bool:
            if mask.shape != (n_variants,):
                raise ConfigurationError(
                    f"variant mask has length {mask.size} but the genetic file has "
                    f"{n_variants} variants"
                )
            return np.flatnonzero(mask)
        idx = np.unique(mask.astype(np.intp))
        if len(idx) and (idx[0] < 0 or idx[-1] >= n_variants):
            raise ConfigurationError(
                f"variant index out of range for {n_variants} variants"
            )
        return idx

    def validate(self, source) -> None:
        self.selected(source.n_variants)

    def units(self, n_variants: int) -> Iterator[TestUnit]:
        for i, variant in enumerate(self.selected(n_variants)):
            yield TestUnit(index=i, members=np.array([variant]))

    def count_units(self, n_variants: int) -> int:
        return len(self.selected(n_variants))

    def max_width(self, n_variants: int) -> int:
        return 1


class FixedWindow(GroupingStrategy):
    """Contiguous windows of ``width`` variants; the last may be shorter."""

    mode = "window"

    def __init__(self, width: int):
        if int(width) < 1:
            raise ConfigurationError(f"window width must be positive, got {width}")
        self.width = int(width)

    def units(self, n_variants: int) -> Iterator[TestUnit]:
        for i, (start, end) in enumerate(partition_windows(n_variants, self.width)):
            yield TestUnit(index=i, members=np.arange(start, end))

    def count_units(self, n_variants: int) -> int:
        return -(-n_variants // self.width)

    def max_width(self, n_variants: int) -> int:
        return min(self.width, n_variants)


class NamedSets(GroupingStrategy):
    """Variant sets named by a two-column mapping (set id, variant id).

    The mapping has one row per variant of the genetic file, in the file's
    variant order; ``validate`` enforces this against the source.
    """

    mode = "snpset"
    requires_random_access = True

    def __init__(self, set_ids: np.ndarray, variant_ids: np.ndarray):
        self.set_ids = np.asarray(set_ids)
        self.variant_ids = np.asarray(variant_ids)
        if len(self.set_ids) != len(self.variant_ids):
            raise ConfigurationError("set_ids and variant_ids differ in length")
        self.names = list(dict.fromkeys(self.set_ids.tolist()))
        self._members = {
            name: np.flatnonzero(self.set_ids == name) for name in self.names
        }

    @classmethod
    def from_file(cls, path: Path) -> "NamedSets":
        return cls(*read_snpset_file(path))

    def validate(self, source) -> None:
        validate_snpset_order(self.variant_ids, source.variant_ids())

    def units(self, n_variants: int) -> Iterator[TestUnit]:
        for i, name in enumerate(self.names):
            yield TestUnit(index=i, members=self._members[name], label=str(name))

    def count_units(self, n_variants: int) -> int:
        return len(self.names)

    def max_width(self, n_variants: int) -> int:
        return max(len(m) for m in self._members.values())


class ExplicitSet(GroupingStrategy):
    """A single unit formed by explicit variant indices or a boolean mask."""

    mode = "explicit"
    requires_random_access = True

    def __init__(self, indices: np.ndarray | list):
        self.indices = indices

    def members(self, n_variants: int) -> np.ndarray:
        arr = np.asarray(self.indices)
        if arr.dtype == bool:
            if arr.shape != (n_variants,):
                raise ConfigurationError(
                    f"set mask has length {arr.size} but the genetic file has "
                    f"{n_variants} variants"
                )
            members = np.flatnonzero(arr)
        else:
            members = np.unique(arr.astype(np.intp))
            if len(members) and (members[0] < 0 or members[-1] >= n_variants):
                raise ConfigurationError(
                    f"set index out of range for {n_variants} variants"
                )
        if len(members) == 0:
            raise ConfigurationError("explicit variant set is empty")
        return members

    def validate(self, source) -> None:
        self.members(source.n_variants)

    def units(self, n_variants: int) -> Iterator[TestUnit]:
        yield TestUnit(index=0, members=self.members(n_variants))

    def count_units(self, n_variants: int) -> int:
        return 1

    def max_width(self, n_variants: int) -> int:
        return len(self.members(n_variants))


def resolve_grouping(snpset=None, variant_mask=None) -> GroupingStrategy:
    """Choose a grouping strategy from the scan arguments.

    Args:
        snpset: None (single-variant scan), an int window width, a path to
            a mapping file, or an index list / boolean mask forming one set.
        variant_mask: Variant selection for single-variant scans only.

    Raises:
        ConfigurationError: If a variant mask is combined with a set
            grouping, or ``snpset`` has an unsupported type.
    """
    if snpset is None:
        return SingleVariant(variant_mask)
    if variant_mask is not None:
        raise ConfigurationError(
            "variant_mask applies to single-variant scans only; restrict sets "
            "through the snpset argument instead"
        )
    if isinstance(snpset, bool):
        raise ConfigurationError(f"unrecognized snpset argument: {snpset!r}")
    if isinstance(snpset, (int, np.integer)):
        return FixedWindow(int(snpset))
    if isinstance(snpset, (str, Path)):
        return NamedSets.from_file(Path(snpset))
    if isinstance(snpset, (list, tuple, np.ndarray)):
        return ExplicitSet(snpset)
    raise ConfigurationError(f"unrecognized snpset argument: {snpset!r}")
