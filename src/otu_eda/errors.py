# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from typing import Iterable, List, Optional

# ==================================== EXCEPTIONS ==================================== #

class OtuEdaError(Exception):
    """Base class for all errors raised by otu_eda."""


class MalformedInputError(OtuEdaError, ValueError):
    """An input table parsed but violates a table invariant (mismatched sample
    sets, duplicate identifiers, negative or non-integer counts)."""


class InsufficientDepthError(OtuEdaError, ValueError):
    """A rarefaction target depth exceeds the total reads of one or more samples.

    Attributes:
        target_depth: Requested rarefaction depth.
        samples:      Identifiers of the samples shallower than `target_depth`.
    """

    def __init__(self, target_depth: int, samples: Iterable[str]):
        self.target_depth = target_depth
        self.samples: List[str] = [str(s) for s in samples]
        if not self.samples:
            super().__init__(f"Target depth {target_depth} exceeds the sample read total")
            return
        shown = ", ".join(self.samples[:10])
        if len(self.samples) > 10:
            shown += f", ... ({len(self.samples)} total)"
        super().__init__(
            f"Target depth {target_depth} exceeds the read total of: {shown}"
        )


class UnknownRankError(OtuEdaError, KeyError):
    """Aggregation or filtering was requested at an undefined taxonomic rank.

    Attributes:
        rank:      The rank that was requested.
        available: Rank labels of the taxonomy table.
    """

    def __init__(self, rank: str, available: Optional[Iterable[str]] = None):
        self.rank = rank
        self.available: List[str] = list(available) if available is not None else []
        super().__init__(
            f"Unknown taxonomic rank '{rank}'. Expected one of {self.available}"
        )

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class EmptySampleGroupError(OtuEdaError):
    """A filter or merge left no samples (or no taxa) to analyse."""
