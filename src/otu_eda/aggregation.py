# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import List, Optional

# Third-Party Imports
import numpy as np
import pandas as pd

# Local Imports
from otu_eda import constants
from otu_eda.dataset import MergedDataset
from otu_eda.utils.table_conversion import biom_to_df, df_to_biom
from otu_eda.utils.taxonomy_utils import resolve_rank

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('otu_eda')

# ==================================== FUNCTIONS ===================================== #

def collapse_taxa(dataset: MergedDataset, rank: str) -> pd.DataFrame:
    """Collapse the abundance table to a taxonomic rank.

    Taxa sharing the same label at `rank` are summed per sample.

    Args:
        dataset: Input dataset.
        rank:    Rank label (case-insensitive), e.g. 'Phylum'.

    Returns:
        Integer counts, samples × taxon groups (groups in order of first
        appearance in the taxonomy table).

    Raises:
        UnknownRankError: If `rank` is not a rank of the taxonomy table.
    """
    rank = resolve_rank(rank, dataset.ranks)
    labels = dataset.taxonomy[rank].astype(str)
    id_map = labels.to_dict()

    table = df_to_biom(dataset.abundance)
    collapsed = table.collapse(
        lambda id_, _: id_map[id_],
        norm=False,
        axis='observation',
        include_collapsed_metadata=False
    )
    groups = pd.unique(labels.to_numpy()).tolist()
    df = biom_to_df(collapsed).reindex(index=dataset.sample_ids, columns=groups)
    df = df.fillna(0).round().astype(np.int64)
    df.index.name = 'sample_id'
    df.columns.name = rank
    logger.debug(f"Collapsed {dataset.shape[1]} taxa to {df.shape[1]} {rank} groups")
    return df


def relative_abundance(counts: pd.DataFrame) -> pd.DataFrame:
    """Divide each sample's counts by its total. Samples without reads stay 0."""
    totals = counts.sum(axis=1)
    rel = counts.div(totals.replace(0, np.nan), axis=0).fillna(0.0)
    return rel.astype(float)


def melt_abundance(
    rel: pd.DataFrame,
    counts: Optional[pd.DataFrame] = None,
    metadata: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Reshape a wide samples × taxa table into long (sample_id, taxon,
    relative_abundance[, count], metadata...) rows."""
    wide = rel.copy()
    wide.index = wide.index.rename('sample_id')
    wide.columns.name = None
    long = wide.reset_index().melt(
        id_vars='sample_id', var_name='taxon', value_name='relative_abundance'
    )
    if counts is not None:
        wide_counts = counts.reindex(index=rel.index, columns=rel.columns)
        wide_counts.index = wide_counts.index.rename('sample_id')
        wide_counts.columns.name = None
        long['count'] = wide_counts.reset_index().melt(
            id_vars='sample_id', value_name='count'
        )['count'].to_numpy()
    if metadata is not None:
        long = join_metadata(long, metadata)
    return long


def join_metadata(long: pd.DataFrame, metadata: pd.DataFrame) -> pd.DataFrame:
    """Left-join metadata columns onto a long table by sample id."""
    return long.merge(
        metadata, left_on='sample_id', right_index=True, how='left', suffixes=('', '_meta')
    )


def _check_threshold(threshold: float) -> float:
    threshold = float(threshold)
    if not 0.0 <= threshold < 1.0:
        raise ValueError(f"Prune threshold must be in [0, 1), got {threshold}")
    return threshold


def prune_long_table(long: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Drop rows whose relative abundance is below `threshold`.

    Each (sample, taxon) row is judged on its own, so a taxon pruned in one
    sample is kept in samples where it is abundant enough.
    """
    threshold = _check_threshold(threshold)
    return long.loc[long['relative_abundance'] >= threshold].copy()


def aggregate(
    dataset: MergedDataset,
    rank: str = constants.DEFAULT_RANK,
    prune_threshold: float = constants.DEFAULT_PRUNE_THRESHOLD,
    other_label: Optional[str] = None
) -> pd.DataFrame:
    """Collapse to `rank`, convert to relative abundance, melt to long format
    and prune low-abundance rows.

    Args:
        dataset:         Input dataset.
        rank:            Taxonomic rank to collapse to.
        prune_threshold: Rows with relative abundance below this value are
                         dropped (0 keeps every non-zero row).
        other_label:     When set, pruned abundance is summed per sample into
                         one row with this label instead of being discarded.

    Returns:
        Long table with columns sample_id, taxon, relative_abundance, count and
        the metadata columns, sorted by sample then descending abundance.

    Raises:
        UnknownRankError: If `rank` is unknown.
        ValueError:       If `prune_threshold` is outside [0, 1).
    """
    prune_threshold = _check_threshold(prune_threshold)
    counts = collapse_taxa(dataset, rank)
    rel = relative_abundance(counts)
    long = melt_abundance(rel, counts)
    long = long.loc[long['count'] > 0]

    kept = prune_long_table(long, prune_threshold)
    n_pruned = len(long) - len(kept)
    if other_label is not None and n_pruned:
        dropped = long.loc[long['relative_abundance'] < prune_threshold]
        other = (
            dropped.groupby('sample_id', sort=False)[['relative_abundance', 'count']]
            .sum()
            .reset_index()
        )
        other.insert(1, 'taxon', other_label)
        kept = pd.concat([kept, other[constants.LONG_TABLE_COLUMNS]], ignore_index=True)

    order = {sid: i for i, sid in enumerate(dataset.sample_ids)}
    kept = (
        kept.assign(_order=kept['sample_id'].map(order))
        .sort_values(['_order', 'relative_abundance'], ascending=[True, False], kind='mergesort')
        .drop(columns='_order')
        .reset_index(drop=True)
    )
    kept['count'] = kept['count'].astype(np.int64)
    logger.info(
        f"Aggregated to {counts.columns.name}: {counts.shape[1]} groups, "
        f"{len(kept)} rows ({n_pruned} pruned below {prune_threshold})"
    )
    return join_metadata(kept[constants.LONG_TABLE_COLUMNS], dataset.metadata)


def top_taxa(long: pd.DataFrame, n: int = constants.DEFAULT_TOP_N) -> List[str]:
    """Labels of the `n` taxa with the highest mean relative abundance across
    the samples of a long table (absent rows count as zero)."""
    n_samples = long['sample_id'].nunique()
    if n_samples == 0:
        return []
    means = long.groupby('taxon')['relative_abundance'].sum() / n_samples
    return means.sort_values(ascending=False).head(n).index.tolist()
