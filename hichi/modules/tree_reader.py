"""
Entry-by-entry reader for the HiForest analysis trees

A HiForest analyzer writes one TDirectory (e.g. ``convAna``) holding several
TTrees that describe the same events: ``<Prefix>_Event`` with one entry of
event information per event and ``<Prefix>_Reco`` with the reconstructed
objects of that event stored as jagged branches. The trees are linked by
entry number only.

TreeReader opens such a directory with uproot, keeps the trees in lockstep
and serves the columns of the current entry. Columns are declared through an
explicit schema (``Column`` class attributes on the reader subclass), so a
misspelled column is an AttributeError rather than a silent zero in the
event loop.

Reading model:
- Only active columns are read from storage, in chunks of ``step_size``
  entries with ``TTree.arrays``.
- ``declare`` + ``activate`` enable the columns up front. ``value`` on an
  inactive column activates it on the spot and re-reads the current entry.
- ``advance`` clears every per-entry value before loading the new entry.
- Four-vector columns are turned into ``vector`` arrays on first access
  and cached until the next ``advance``.

Example usage:
    with HiConversionTree() as conv:
        conv.open("HiChiForest.root")
        conv.declare(conv.Event_Run, conv.Reco_Chi_Mass)
        conv.activate()
        for entry in range(conv.num_entries):
            conv.advance(entry)
            masses = conv[conv.Reco_Chi_Mass]
"""

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import awkward as ak
import numpy as np
import uproot
import vector

from .exceptions import BranchMissingError, DataLoadError

# Register vector behavior for 4-momentum calculations
vector.register_awkward()

LORENTZ_COMPONENTS = ("px", "py", "pz", "E")
VECTOR3_COMPONENTS = ("x", "y", "z")


class Kind(Enum):
    """Storage layout of a column"""
    SCALAR = "scalar"     # one number per entry
    ARRAY = "array"       # jagged list of numbers per entry
    LORENTZ = "lorentz"   # jagged list of four-vectors (px, py, pz, E)
    VECTOR3 = "vector3"   # one three-vector (x, y, z) per entry


@dataclass(frozen=True)
class Column:
    """
    Schema entry of a tree column

    The row group (tree) a column belongs to is the prefix of its name up to
    the first underscore: ``Event_Run`` lives in the ``Event`` tree,
    ``Reco_Chi_Mass`` in the ``Reco`` tree.
    """
    name: str
    kind: Kind = Kind.SCALAR
    dtype: type = np.float32

    @property
    def group(self) -> str:
        return self.name.split("_", 1)[0]

    @property
    def composite(self) -> bool:
        return self.kind in (Kind.LORENTZ, Kind.VECTOR3)

    @property
    def branches(self) -> Tuple[str, ...]:
        """Names of the branches holding this column in the file"""
        if self.kind is Kind.LORENTZ:
            return tuple(f"{self.name}_{c}" for c in LORENTZ_COMPONENTS)
        if self.kind is Kind.VECTOR3:
            return tuple(f"{self.name}_{c}" for c in VECTOR3_COMPONENTS)
        return (self.name,)

    def zero(self):
        """Value returned when the column is inactive or absent"""
        if self.kind is Kind.SCALAR:
            return self.dtype(0)
        if self.kind is Kind.ARRAY:
            return np.zeros(0, dtype=self.dtype)
        if self.kind is Kind.LORENTZ:
            return lorentz_vectors({c: np.zeros(0) for c in LORENTZ_COMPONENTS})
        return vector.obj(x=0.0, y=0.0, z=0.0)


def lorentz_vectors(components: Dict[str, np.ndarray]) -> ak.Array:
    """Build an awkward Momentum4D array from px, py, pz, E component arrays"""
    return vector.zip({c: components[c] for c in LORENTZ_COMPONENTS})


class TreeReader:
    """
    Base class for readers of linked HiForest trees

    Subclasses set ``DIRECTORY`` (top-level TDirectory name), ``TREES``
    (row group -> TTree name) and declare their columns as ``Column`` class
    attributes named after the column.
    """

    DIRECTORY: str = ""
    TREES: Dict[str, str] = {}
    COLUMNS: Dict[str, Column] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        columns = {}
        for base in reversed(cls.__mro__):
            for attr, value in vars(base).items():
                if isinstance(value, Column):
                    if attr != value.name:
                        raise TypeError(
                            f"{cls.__name__}.{attr} declares column '{value.name}'"
                        )
                    columns[attr] = value
        if cls.TREES:
            unknown = sorted({c.group for c in columns.values()} - set(cls.TREES))
            if unknown:
                raise TypeError(f"{cls.__name__} has columns in unknown trees {unknown}")
        cls.COLUMNS = columns

    def __init__(self, step_size: int = 10000):
        """
        Parameters:
        - step_size: Number of entries read from storage per chunk
        """
        if step_size < 1:
            raise ValueError(f"step_size must be positive, got {step_size}")
        self.step_size = step_size
        self.logger = logging.getLogger(f"HiChi.{type(self).__name__}")

        # Read probes, used by the tests and the debug summary
        self.storage_reads: Counter = Counter()
        self.materializations: Counter = Counter()

        self._reset()

    def _reset(self):
        self.path: Optional[str] = None
        self.entry: int = -1
        self._file = None
        self._trees: Dict[str, "uproot.TTree"] = {}
        self._primary: Optional[str] = None
        self._available: Dict[Column, bool] = {}
        self._declared: set = set()
        self._active: set = set()
        self._chunks: Dict[Column, Tuple[int, int, ak.Array]] = {}
        self._row: Dict[Column, object] = {}
        self._materialized: Dict[Column, object] = {}

    # ------------------------------------------------------------------
    # File handling
    # ------------------------------------------------------------------

    def open(self, path: str, primary: Optional[str] = None) -> None:
        """
        Open the trees of this schema in ``path`` and link them

        Parameters:
        - path: Local file path or remote URI (root://...)
        - primary: Row group driving the entry count (first found if None)

        Raises:
        - DataLoadError: if the file, the directory or every tree is missing
        """
        self.close()
        path = str(path)
        try:
            rootfile = uproot.open(path)
        except Exception as e:
            raise DataLoadError(f"Cannot open {path}: {e}") from e

        try:
            if self.DIRECTORY not in rootfile:
                raise DataLoadError(f"Directory '{self.DIRECTORY}' not found in {path}")
            directory = rootfile[self.DIRECTORY]

            trees = {}
            for group, tree_name in self.TREES.items():
                if tree_name not in directory:
                    self.logger.warning(f"Tree {self.DIRECTORY}/{tree_name} not found in {path}")
                    continue
                tree = directory[tree_name]
                if not isinstance(tree, uproot.TTree):
                    raise DataLoadError(f"{self.DIRECTORY}/{tree_name} in {path} is not a TTree")
                trees[group] = tree
            if not trees:
                raise DataLoadError(f"No trees of {self.DIRECTORY} found in {path}")
        except DataLoadError:
            rootfile.close()
            raise
        except Exception as e:
            rootfile.close()
            raise DataLoadError(f"Malformed file {path}: {e}") from e

        self.path = path
        self._file = rootfile
        self._trees = trees
        keys = {group: set(tree.keys()) for group, tree in trees.items()}
        self._available = {c: self._find_column(c, keys) for c in self.COLUMNS.values()}

        try:
            self.link(primary)
        except DataLoadError:
            self.close()
            raise

        self.logger.info(
            f"Opened {self.DIRECTORY} in {path}: trees {list(trees)} "
            f"with {self.num_entries} entries"
        )

    def link(self, primary: Optional[str] = None) -> None:
        """
        Designate the primary row group; all others follow its entry number

        Raises:
        - DataLoadError: if nothing is open, the primary is unknown, or the
          linked trees do not have the same number of entries
        """
        if not self._trees:
            raise DataLoadError("No trees opened, cannot link")
        if primary is None:
            primary = next(iter(self._trees))
        if primary not in self._trees:
            raise DataLoadError(
                f"Unknown row group '{primary}', available: {list(self._trees)}"
            )

        n_entries = self._trees[primary].num_entries
        for group, tree in self._trees.items():
            if group != primary and tree.num_entries != n_entries:
                raise DataLoadError(
                    f"Inconsistent number of entries in {self.path}: "
                    f"{self.TREES[primary]} has {n_entries}, "
                    f"{self.TREES[group]} has {tree.num_entries}"
                )

        self._primary = primary
        self.logger.debug(f"Linked {list(self._trees)} to primary tree '{primary}'")

    def close(self) -> None:
        """Release the file and forget every cached value"""
        if self._file is not None:
            self._file.close()
        self._reset()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def groups(self) -> List[str]:
        return list(self._trees)

    @property
    def num_entries(self) -> int:
        """Entries in the primary tree (0 if nothing is open)"""
        if self._primary is None:
            return 0
        return self._trees[self._primary].num_entries

    def __len__(self) -> int:
        return self.num_entries

    # ------------------------------------------------------------------
    # Column activation
    # ------------------------------------------------------------------

    def _check(self, column: Column) -> None:
        if self.COLUMNS.get(column.name) != column:
            raise BranchMissingError(column.name, self.path)

    @staticmethod
    def _find_column(column: Column, keys: Dict[str, set]) -> bool:
        group_keys = keys.get(column.group)
        if group_keys is None:
            return False
        return all(branch in group_keys for branch in column.branches)

    def has_column(self, column: Column) -> bool:
        """True if the open file provides every branch of ``column``"""
        self._check(column)
        return self._available.get(column, False)

    def is_active(self, column: Column) -> bool:
        return column in self._active

    def declare(self, *columns: Column) -> None:
        """Register columns to be enabled by the next ``activate`` call"""
        for column in columns:
            self._check(column)
            self._declared.add(column)

    def activate(self) -> None:
        """Enable every declared column present in the file"""
        enabled = [c for c in self._declared if self._enable(c)]
        if self.entry >= 0 and enabled:
            self._load([c for c in enabled if not self._covers(c, self.entry)], self.entry)
            for column in enabled:
                self._fill(column)
        self.logger.debug(f"Active columns: {sorted(c.name for c in self._active)}")

    def _enable(self, column: Column) -> bool:
        if column in self._active:
            return True
        if not self._available.get(column, False):
            self.logger.debug(f"Column {column.name} not available in {self.path}")
            return False
        self._active.add(column)
        return True

    # ------------------------------------------------------------------
    # Entry loading
    # ------------------------------------------------------------------

    def _covers(self, column: Column, entry: int) -> bool:
        chunk = self._chunks.get(column)
        return chunk is not None and chunk[0] <= entry < chunk[1]

    def _load(self, columns: Iterable[Column], entry: int) -> None:
        """Read the chunk holding ``entry`` for ``columns``, one call per tree"""
        by_group: Dict[str, List[Column]] = {}
        for column in columns:
            by_group.setdefault(column.group, []).append(column)

        start = (entry // self.step_size) * self.step_size
        stop = min(start + self.step_size, self.num_entries)
        for group, group_columns in by_group.items():
            branches = [b for c in group_columns for b in c.branches]
            arrays = self._trees[group].arrays(
                branches, entry_start=start, entry_stop=stop, library="ak"
            )
            for column in group_columns:
                self._chunks[column] = (start, stop, arrays)
                self.storage_reads[column.name] += 1

    def _fill(self, column: Column) -> None:
        """Copy the current entry of ``column`` from its chunk into the buffer"""
        start, _, arrays = self._chunks[column]
        i = self.entry - start
        if column.kind is Kind.SCALAR:
            self._row[column] = column.dtype(arrays[column.name][i])
        elif column.kind is Kind.ARRAY:
            self._row[column] = ak.to_numpy(arrays[column.name][i]).astype(column.dtype)
        elif column.kind is Kind.LORENTZ:
            self._row[column] = {
                c: ak.to_numpy(arrays[b][i]).astype(np.float64)
                for c, b in zip(LORENTZ_COMPONENTS, column.branches)
            }
        else:
            self._row[column] = {
                c: float(arrays[b][i]) for c, b in zip(VECTOR3_COMPONENTS, column.branches)
            }

    def clear(self) -> None:
        """Reset every per-entry value, including materialized four-vectors"""
        self._row.clear()
        self._materialized.clear()

    def advance(self, entry: int) -> bool:
        """
        Move every linked tree to ``entry`` and load the active columns

        Returns:
        - False if nothing is open or the entry is out of range
        """
        if self._primary is None or not 0 <= entry < self.num_entries:
            return False
        self.entry = entry
        self.clear()
        stale = [c for c in self._active if not self._covers(c, entry)]
        if stale:
            self._load(stale, entry)
        for column in self._active:
            self._fill(column)
        return True

    # ------------------------------------------------------------------
    # Column access
    # ------------------------------------------------------------------

    def current(self, column: Column):
        """
        Value of ``column`` in the loaded entry, without activating it

        Inactive or absent columns give the zero value of their type.
        """
        self._check(column)
        if column not in self._row:
            return column.zero()
        if not column.composite:
            return self._row[column]
        if column not in self._materialized:
            self._materialized[column] = self._materialize(column)
            self.materializations[column.name] += 1
        return self._materialized[column]

    def value(self, column: Column):
        """
        Value of ``column`` in the loaded entry, activating it if needed

        A column absent from the file gives the zero value of its type.
        """
        self._check(column)
        if column not in self._active:
            if not self._enable(column):
                return column.zero()
            self.logger.debug(f"Lazily activated {column.name} at entry {self.entry}")
            if self.entry >= 0:
                if not self._covers(column, self.entry):
                    self._load([column], self.entry)
                self._fill(column)
        return self.current(column)

    __getitem__ = value

    def _materialize(self, column: Column):
        raw = self._row[column]
        if column.kind is Kind.LORENTZ:
            return lorentz_vectors(raw)
        return vector.obj(**raw)
