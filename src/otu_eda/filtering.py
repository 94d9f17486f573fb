# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Callable, Dict, Iterable, Optional, Union

# Third-Party Imports
import numpy as np
import pandas as pd

# Local Imports
from otu_eda import constants
from otu_eda.dataset import MergedDataset
from otu_eda.errors import EmptySampleGroupError
from otu_eda.utils.taxonomy_utils import resolve_rank

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("otu_eda")

Predicate = Callable[[pd.DataFrame], Union[pd.Series, np.ndarray]]

# ================================== PREDICATES ====================================== #

def _as_list(values) -> list:
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return [values]
    return list(values)


def metadata_equals(column: str, values) -> Predicate:
    """Keep samples whose metadata `column` is one of `values`."""
    values = _as_list(values)

    def predicate(metadata: pd.DataFrame) -> pd.Series:
        if column not in metadata.columns:
            raise KeyError(f"Metadata column '{column}' not found")
        return metadata[column].isin(values)
    return predicate


def metadata_not_in(column: str, values) -> Predicate:
    """Keep samples whose metadata `column` is not one of `values` (e.g. drop
    blanks and mock communities)."""
    values = _as_list(values)

    def predicate(metadata: pd.DataFrame) -> pd.Series:
        if column not in metadata.columns:
            raise KeyError(f"Metadata column '{column}' not found")
        return ~metadata[column].isin(values)
    return predicate


def taxon_not_in(rank: str, values, case_sensitive: bool = False) -> Predicate:
    """Keep taxa whose label at `rank` is not one of `values` (e.g. drop
    Chloroplast and Mitochondria)."""
    values = [str(v) for v in _as_list(values)]

    def predicate(taxonomy: pd.DataFrame) -> pd.Series:
        column = resolve_rank(rank, taxonomy.columns)
        labels = taxonomy[column].astype(str)
        if case_sensitive:
            return ~labels.isin(values)
        return ~labels.str.lower().isin([v.lower() for v in values])
    return predicate

# =================================== FILTERING ====================================== #

def _mask(result, index: pd.Index, what: str) -> np.ndarray:
    if isinstance(result, pd.Series):
        result = result.reindex(index)
        if result.isna().any():
            raise ValueError(f"{what} predicate returned a mask missing some identifiers")
        return result.to_numpy(dtype=bool)
    mask = np.asarray(result, dtype=bool)
    if mask.shape != (len(index),):
        raise ValueError(
            f"{what} predicate returned shape {mask.shape}, expected ({len(index)},)"
        )
    return mask


def filter_dataset(
    dataset: MergedDataset,
    predicate: Optional[Predicate] = None,
    taxon_predicate: Optional[Predicate] = None,
    drop_empty_taxa: bool = True
) -> MergedDataset:
    """Remove samples and/or taxa from a dataset.

    Args:
        dataset:         Input dataset (not modified).
        predicate:       Called with the metadata table, returns a boolean mask of
                         samples to keep.
        taxon_predicate: Called with the taxonomy table, returns a boolean mask of
                         taxa to keep.
        drop_empty_taxa: Also drop taxa with zero reads in the remaining samples.

    Returns:
        New filtered MergedDataset.

    Raises:
        EmptySampleGroupError: If no sample or no taxon remains.
    """
    n_samples, n_taxa = dataset.shape

    sample_mask = np.ones(n_samples, dtype=bool)
    if predicate is not None:
        sample_mask = _mask(predicate(dataset.metadata), dataset.metadata.index, "Sample")
    taxon_mask = np.ones(n_taxa, dtype=bool)
    if taxon_predicate is not None:
        taxon_mask = _mask(taxon_predicate(dataset.taxonomy), dataset.taxonomy.index, "Taxon")

    samples = dataset.abundance.index[sample_mask]
    if len(samples) == 0:
        raise EmptySampleGroupError("Filter removed all samples")

    taxa = dataset.abundance.columns[taxon_mask]
    if drop_empty_taxa and len(taxa):
        totals = dataset.abundance.loc[samples, taxa].sum(axis=0)
        taxa = totals.index[totals > 0]
    if len(taxa) == 0:
        raise EmptySampleGroupError("Filter removed all taxa")

    filtered = dataset.subset(samples=samples, taxa=taxa)
    logger.info(
        f"Filtered dataset: {n_samples} → {filtered.shape[0]} samples, "
        f"{n_taxa} → {filtered.shape[1]} taxa"
    )
    return filtered


def exclude_samples(dataset: MergedDataset, column: str, values) -> MergedDataset:
    """Drop samples whose metadata `column` matches any of `values`."""
    return filter_dataset(dataset, predicate=metadata_not_in(column, values))


def exclude_taxa(
    dataset: MergedDataset,
    rank: str,
    values,
    case_sensitive: bool = False
) -> MergedDataset:
    """Drop taxa whose label at `rank` matches any of `values`."""
    return filter_dataset(
        dataset, taxon_predicate=taxon_not_in(rank, values, case_sensitive)
    )


def exclude_contaminants(
    dataset: MergedDataset,
    contaminants: Optional[Dict[str, Iterable[str]]] = None
) -> MergedDataset:
    """Drop host-organelle taxa (by default Chloroplast orders and Mitochondria
    families). Ranks absent from the taxonomy are skipped."""
    contaminants = contaminants or constants.DEFAULT_CONTAMINANT_TAXA
    lowered = {r.lower() for r in dataset.ranks}
    for rank, values in contaminants.items():
        if rank.lower() not in lowered:
            logger.debug(f"Skipping contaminant filter on missing rank '{rank}'")
            continue
        dataset = exclude_taxa(dataset, rank, values)
    return dataset


def filter_min_depth(dataset: MergedDataset, min_counts: int) -> MergedDataset:
    """Drop samples with fewer than `min_counts` total reads."""
    depths = dataset.sample_depths
    return filter_dataset(
        dataset, predicate=lambda metadata: depths.reindex(metadata.index) >= min_counts
    )
