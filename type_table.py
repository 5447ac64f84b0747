# type_table.py
"""
The rule set of the simulation: which type attracts which, and over
what range.

A TypeTable holds three N x N matrices indexed by an ordered type pair
(self_type, other_type): the signed attraction coefficient, the
repulsion core radius and the interaction cutoff. The matrices are not
assumed symmetric; type A chasing type B while B flees from A is what
produces the orbiting and chasing patterns.

Tables are immutable. Every change produces a new table with a higher
version, which the world swaps in wholesale between steps.
"""
import logging
import numpy as np
from typing import Optional, Sequence, Tuple

from constants import ATTRACTION_RANGE, MIN_DISTANCE_RANGE, MAX_DISTANCE_RANGE
from errors import InvalidTypeTable, InvalidType, DegenerateConfiguration

# --- Data Contracts ---
#
# class TypeTable:
#   - __init__(self, attraction, min_distance, max_distance, version=0):
#     - Inputs: three square array-likes of the same shape (N, N), N >= 1.
#     - Raises InvalidTypeTable if shapes differ, values are not finite,
#       distances are negative or min_distance > max_distance anywhere.
#     - Invariants: the stored arrays are float64 and read-only.
#
#   - randomize_attraction(self, rng_seed) -> TypeTable
#   - randomize_distances(self, rng_seed) -> TypeTable
#     - Deterministic for a given seed. Only the named part changes.


def _frozen(values, name: str) -> np.ndarray:
    try:
        array = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidTypeTable(f"{name} is not a numeric matrix: {e}")
    if array.ndim != 2 or array.shape[0] != array.shape[1] or array.shape[0] == 0:
        raise InvalidTypeTable(f"{name} must be a non-empty square matrix, got shape {array.shape}.")
    if not np.all(np.isfinite(array)):
        raise InvalidTypeTable(f"{name} contains non-finite values.")
    array.setflags(write=False)
    return array


class TypeTable:
    """
    Attraction matrix plus per-pair distance thresholds.
    """
    def __init__(self, attraction, min_distance, max_distance, version: int = 0):
        attraction = _frozen(attraction, "attraction")
        min_distance = _frozen(min_distance, "min_distance")
        max_distance = _frozen(max_distance, "max_distance")

        if not (attraction.shape == min_distance.shape == max_distance.shape):
            raise InvalidTypeTable(
                f"Matrix shapes disagree: attraction {attraction.shape}, "
                f"min_distance {min_distance.shape}, max_distance {max_distance.shape}."
            )
        if np.any(min_distance < 0):
            raise InvalidTypeTable("min_distance cannot be negative.")
        violations = np.argwhere(min_distance > max_distance)
        if violations.size:
            i, j = violations[0]
            raise InvalidTypeTable(
                f"min_distance[{i}][{j}] = {min_distance[i, j]} exceeds "
                f"max_distance[{i}][{j}] = {max_distance[i, j]}."
            )

        self.attraction = attraction
        self.min_distance = min_distance
        self.max_distance = max_distance
        self.version = int(version)

    @classmethod
    def from_lists(cls, attraction, min_distance, max_distance) -> "TypeTable":
        """Builds a table from externally supplied data, logging rejections."""
        try:
            return cls(attraction, min_distance, max_distance)
        except InvalidTypeTable as e:
            logging.error(f"Rejected type table: {e}")
            raise

    @classmethod
    def random(
        cls,
        n_types: int,
        seed: int,
        attraction_range: Tuple[float, float] = ATTRACTION_RANGE,
        min_distance_range: Tuple[float, float] = MIN_DISTANCE_RANGE,
        max_distance_range: Tuple[float, float] = MAX_DISTANCE_RANGE,
    ) -> "TypeTable":
        """
        Generates a complete rule set for `n_types` types.

        The attraction matrix and the distances draw from independent
        child generators of `seed`, so regenerating one part never
        depends on how the other was drawn.
        """
        if n_types <= 0:
            raise DegenerateConfiguration(f"A type table needs at least one type, got {n_types}.")
        attraction_seed, distance_seed = np.random.SeedSequence(normalize_seed(seed)).generate_state(2)
        attraction = _draw_attraction(n_types, int(attraction_seed), attraction_range)
        min_distance, max_distance = _draw_distances(
            n_types, int(distance_seed), min_distance_range, max_distance_range
        )
        return cls(attraction, min_distance, max_distance)

    @property
    def n_types(self) -> int:
        return self.attraction.shape[0]

    @property
    def max_cutoff(self) -> float:
        return float(self.max_distance.max())

    def attraction_between(self, self_type: int, other_type: int) -> float:
        self_type, other_type = self._check_pair(self_type, other_type)
        return float(self.attraction[self_type, other_type])

    def min_distance_between(self, self_type: int, other_type: int) -> float:
        self_type, other_type = self._check_pair(self_type, other_type)
        return float(self.min_distance[self_type, other_type])

    def max_distance_between(self, self_type: int, other_type: int) -> float:
        self_type, other_type = self._check_pair(self_type, other_type)
        return float(self.max_distance[self_type, other_type])

    def is_valid_type(self, type_id) -> bool:
        # Type ids are integers only; bools and integral floats are rejected.
        if isinstance(type_id, bool) or not isinstance(type_id, (int, np.integer)):
            return False
        return 0 <= int(type_id) < self.n_types

    def _check_pair(self, *type_ids) -> Tuple[int, ...]:
        for type_id in type_ids:
            if not self.is_valid_type(type_id):
                raise InvalidType(f"Type id {type_id!r} is not an integer in [0, {self.n_types}).")
        return tuple(int(type_id) for type_id in type_ids)

    def randomize_attraction(
        self, rng_seed: int, attraction_range: Tuple[float, float] = ATTRACTION_RANGE
    ) -> "TypeTable":
        """Returns a copy with a freshly drawn attraction matrix."""
        attraction = _draw_attraction(self.n_types, rng_seed, attraction_range)
        return TypeTable(attraction, self.min_distance, self.max_distance, self.version + 1)

    def randomize_distances(
        self,
        rng_seed: int,
        min_distance_range: Tuple[float, float] = MIN_DISTANCE_RANGE,
        max_distance_range: Tuple[float, float] = MAX_DISTANCE_RANGE,
    ) -> "TypeTable":
        """Returns a copy with freshly drawn repulsion cores and cutoffs."""
        min_distance, max_distance = _draw_distances(
            self.n_types, rng_seed, min_distance_range, max_distance_range
        )
        return TypeTable(self.attraction, min_distance, max_distance, self.version + 1)

    def with_attraction(self, attraction) -> "TypeTable":
        return TypeTable(attraction, self.min_distance, self.max_distance, self.version + 1)

    def with_attraction_value(self, self_type: int, other_type: int, value: float) -> "TypeTable":
        self_type, other_type = self._check_pair(self_type, other_type)
        attraction = self.attraction.copy()
        attraction[self_type, other_type] = value
        return self.with_attraction(attraction)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TypeTable):
            return NotImplemented
        return (
            np.array_equal(self.attraction, other.attraction)
            and np.array_equal(self.min_distance, other.min_distance)
            and np.array_equal(self.max_distance, other.max_distance)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"TypeTable(n_types={self.n_types}, version={self.version}, max_cutoff={self.max_cutoff:.2f})"


def _draw_attraction(n_types: int, rng_seed: int, attraction_range: Tuple[float, float]) -> np.ndarray:
    low, high = attraction_range
    rng = np.random.default_rng(normalize_seed(rng_seed))
    return rng.uniform(low, high, size=(n_types, n_types))


def _draw_distances(
    n_types: int,
    rng_seed: int,
    min_distance_range: Tuple[float, float],
    max_distance_range: Tuple[float, float],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draws the repulsion core first, then a cutoff no smaller than it.
    """
    min_low, min_high = min_distance_range
    max_low, max_high = max_distance_range
    if min_low < 0 or min_low > min_high or max_low > max_high or min_high > max_high:
        raise DegenerateConfiguration(
            f"Distance ranges cannot guarantee min <= max: "
            f"min {min_distance_range}, max {max_distance_range}."
        )
    rng = np.random.default_rng(normalize_seed(rng_seed))
    min_distance = rng.uniform(min_low, min_high, size=(n_types, n_types))
    lower = np.maximum(min_distance, max_low)
    max_distance = lower + rng.random(size=(n_types, n_types)) * (max_high - lower)
    # Guard the upper edge against rounding in lower + u * (high - lower).
    max_distance = np.clip(max_distance, min_distance, max_high)
    return min_distance, max_distance


def attraction_summary(table: TypeTable, labels: Optional[Sequence[str]] = None) -> str:
    """Formats the attraction matrix for a log line."""
    labels = labels or [str(i) for i in range(table.n_types)]
    rows = [
        f"{labels[i]}: " + " ".join(f"{v:+.2f}" for v in table.attraction[i])
        for i in range(table.n_types)
    ]
    return " | ".join(rows)


def normalize_seed(seed) -> int:
    """Maps any integer, negative ones included, onto a valid NumPy seed."""
    return int(seed) % (1 << 128)
