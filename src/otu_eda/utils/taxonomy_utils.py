# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
import re
from typing import List, Optional, Sequence

# Third-Party Imports
import pandas as pd

# Local Imports
from otu_eda import constants
from otu_eda.errors import MalformedInputError, UnknownRankError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('otu_eda')

_RANK_PREFIX = re.compile(constants.RANK_PREFIX_PATTERN, re.IGNORECASE)
_BOOTSTRAP_SUFFIX = re.compile(constants.BOOTSTRAP_SUFFIX_PATTERN)

# ==================================== FUNCTIONS ===================================== #

def clean_label(label: Optional[str]) -> str:
    """Strip rank prefixes ('p__'), mothur bootstrap suffixes ('(100)') and
    whitespace from a single rank label.

    Empty or placeholder labels become `constants.UNCLASSIFIED_LABEL`.
    """
    if label is None or (isinstance(label, float) and pd.isna(label)):
        return constants.UNCLASSIFIED_LABEL
    label = str(label).strip().strip('"').strip()
    label = _BOOTSTRAP_SUFFIX.sub('', label).strip()
    label = _RANK_PREFIX.sub('', label).strip()
    if label.lower() in constants.EMPTY_LABELS:
        return constants.UNCLASSIFIED_LABEL
    return label


def split_lineage(lineage: Optional[str]) -> List[str]:
    """Split a lineage string on ';' (or tabs) into cleaned rank labels.

    Trailing separators are ignored, so the mothur form
    'Bacteria(100);Firmicutes(100);' gives ['Bacteria', 'Firmicutes'].
    """
    if lineage is None or (isinstance(lineage, float) and pd.isna(lineage)):
        return []
    sep = ';' if ';' in str(lineage) else '\t'
    parts = [p for p in str(lineage).split(sep)]
    while parts and not parts[-1].strip():
        parts.pop()
    return [clean_label(p) for p in parts]


def infer_ranks(n_levels: int) -> List[str]:
    """Default rank labels for lineages with at most `n_levels` levels:
    Kingdom..Genus, extended with Species for 7-level (e.g. SILVA/QIIME) lineages."""
    if n_levels > len(constants.DEFAULT_RANKS):
        return list(constants.FULL_RANKS)
    return list(constants.DEFAULT_RANKS)


def lineages_to_frame(
    lineages: pd.Series,
    ranks: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """Expand a Series of lineage strings (indexed by taxon id) into a
    taxon × rank DataFrame.

    Lineages shorter than `ranks` are padded with the unclassified label. When
    `ranks` is None they are inferred from the longest lineage.

    Raises:
        MalformedInputError: If a lineage has more levels than `ranks`.
    """
    split = {str(taxon_id): split_lineage(lineage) for taxon_id, lineage in lineages.items()}
    if ranks is None:
        longest = max((len(labels) for labels in split.values()), default=0)
        ranks = infer_ranks(longest)
    ranks = list(ranks)
    rows = {}
    for taxon_id, labels in split.items():
        if len(labels) > len(ranks):
            raise MalformedInputError(
                f"Taxon '{taxon_id}' has {len(labels)} rank labels but only "
                f"{len(ranks)} ranks are defined ({ranks})"
            )
        labels += [constants.UNCLASSIFIED_LABEL] * (len(ranks) - len(labels))
        rows[taxon_id] = labels
    frame = pd.DataFrame.from_dict(rows, orient='index', columns=ranks)
    frame.index = frame.index.astype(str)
    frame.index.name = 'taxon_id'
    return frame


def resolve_rank(rank: str, available: Sequence[str]) -> str:
    """Match `rank` case-insensitively against the available rank labels.

    Raises:
        UnknownRankError: If no rank matches.
    """
    lookup = {str(r).lower(): r for r in available}
    key = str(rank).strip().lower()
    if key not in lookup:
        raise UnknownRankError(rank, available)
    return lookup[key]
