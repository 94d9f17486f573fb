# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Any, Dict, Optional, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from skbio.diversity import beta_diversity
from skbio.stats.distance import DistanceMatrix, permanova as skbio_permanova
from skbio.stats.ordination import OrdinationResults, pcoa as PCoA
from sklearn.manifold import MDS

# Local Imports
from otu_eda import constants
from otu_eda.dataset import MergedDataset
from otu_eda.errors import MalformedInputError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('otu_eda')

TableLike = Union[MergedDataset, pd.DataFrame]

# Metrics undefined for samples without reads
ABUNDANCE_METRICS = {'braycurtis', 'jaccard', 'canberra', 'chebyshev', 'cosine'}

# =============================== HELPER FUNCTIONS ==================================== #

def _counts_frame(table: TableLike) -> pd.DataFrame:
    if isinstance(table, MergedDataset):
        return table.abundance
    if isinstance(table, pd.DataFrame):
        return table
    raise TypeError("Input must be a MergedDataset or a samples × taxa DataFrame.")


def validate_min_samples(df: pd.DataFrame, min_samples: int = 2) -> None:
    """Raise ValueError if `df` has fewer than `min_samples` rows."""
    if len(df) < min_samples:
        raise ValueError(f"At least {min_samples} samples required, got {len(df)}")

# =============================== CORE FUNCTIONALITY ================================== #

def distance_matrix(
    table: TableLike,
    metric: str = constants.DEFAULT_METRIC
) -> DistanceMatrix:
    """Pairwise dissimilarity between samples.

    Args:
        table:  MergedDataset or samples × taxa DataFrame.
        metric: Any metric accepted by `skbio.diversity.beta_diversity`
                (e.g. 'braycurtis', 'jaccard', 'euclidean').

    Returns:
        Symmetric, non-negative skbio DistanceMatrix with a zero diagonal.

    Raises:
        ValueError:          Fewer than two samples, or NaN/infinite values.
        MalformedInputError: Samples without reads for an abundance metric.
    """
    df = _counts_frame(table)
    validate_min_samples(df, min_samples=2)
    data = df.to_numpy(dtype=float)
    if not np.isfinite(data).all():
        raise ValueError("Input data contains NaN or infinite values")

    empty = df.index[data.sum(axis=1) == 0].tolist()
    if empty and metric in ABUNDANCE_METRICS:
        raise MalformedInputError(
            f"'{metric}' is undefined for samples without reads: {empty[:10]}"
        )

    if np.allclose(data, np.round(data)):
        data = np.round(data).astype(np.int64)
    dm = beta_diversity(metric, data, ids=df.index.astype(str).tolist())
    logger.debug(f"Computed {metric} distance matrix for {dm.shape[0]} samples")
    return dm


def pcoa(
    dm: DistanceMatrix,
    n_dimensions: Optional[int] = None
) -> OrdinationResults:
    """Principal Coordinate Analysis of a distance matrix.

    Args:
        dm:           Distance matrix.
        n_dimensions: Number of axes to keep (all when None).

    Returns:
        OrdinationResults with sample coordinates in columns PCo1, PCo2, ...
    """
    if dm.shape[0] < 2:
        raise ValueError("At least 2 samples required for PCoA")
    max_dims = dm.shape[0] - 1
    n_dimensions = min(n_dimensions, max_dims) if n_dimensions else 0

    result = PCoA(dm, 'eigh', n_dimensions)
    def axis_names(n):
        return [f"PCo{i+1}" for i in range(n)]

    result.samples.columns = axis_names(result.samples.shape[1])
    result.eigvals.index = axis_names(len(result.eigvals))
    result.proportion_explained.index = axis_names(len(result.proportion_explained))
    return result


def nmds(
    dm: DistanceMatrix,
    n_components: int = constants.DEFAULT_N_COMPONENTS,
    seed: Optional[int] = None,
    n_init: int = constants.DEFAULT_NMDS_N_INIT,
    max_iter: int = constants.DEFAULT_NMDS_MAX_ITER
) -> Dict[str, Any]:
    """Non-metric multidimensional scaling of a distance matrix.

    Args:
        dm:           Distance matrix.
        n_components: Embedding dimensions.
        seed:         Random state; a fixed seed gives identical embeddings.
        n_init:       SMACOF restarts (best stress is kept).
        max_iter:     SMACOF iterations per restart.

    Returns:
        Dictionary with:
        - 'components': DataFrame (samples × NMDS1..NMDSk)
        - 'stress':     Final stress value
    """
    if dm.shape[0] < 3:
        raise ValueError("At least 3 samples required for NMDS")
    if n_components < 1:
        raise ValueError("n_components must be ≥ 1")
    n_components = min(n_components, dm.shape[0] - 1)

    model = MDS(
        n_components=n_components,
        metric=False,
        dissimilarity='precomputed',
        normalized_stress='auto',
        n_init=n_init,
        max_iter=max_iter,
        random_state=seed
    )
    embedding = model.fit_transform(dm.data)
    components = pd.DataFrame(
        embedding,
        index=pd.Index(list(dm.ids), name='sample_id'),
        columns=[f"NMDS{i+1}" for i in range(n_components)]
    )
    stress = float(model.stress_)
    logger.debug(f"NMDS converged with stress {stress:.4f}")
    return {'components': components, 'stress': stress}


def ordinate(
    dm: DistanceMatrix,
    method: str = constants.DEFAULT_ORDINATION_METHOD,
    n_components: int = constants.DEFAULT_N_COMPONENTS,
    seed: Optional[int] = None
) -> Dict[str, Any]:
    """Run PCoA or NMDS and return sample coordinates in a common shape.

    Returns:
        Dictionary with 'components' (samples × axes DataFrame) and either
        'proportion_explained' (PCoA) or 'stress' (NMDS).
    """
    method = method.lower()
    if method == 'pcoa':
        result = pcoa(dm, n_dimensions=n_components)
        components = result.samples.iloc[:, :n_components].copy()
        components.index.name = 'sample_id'
        return {
            'components': components,
            'proportion_explained': result.proportion_explained.iloc[:n_components]
        }
    if method == 'nmds':
        return nmds(dm, n_components=n_components, seed=seed)
    raise ValueError(f"Unknown ordination method: {method}. Expected 'pcoa' or 'nmds'")


def permanova(
    dm: DistanceMatrix,
    metadata: pd.DataFrame,
    group_column: str,
    permutations: int = constants.DEFAULT_PERMUTATIONS,
    seed: Optional[int] = None
) -> pd.Series:
    """PERMANOVA (adonis) test for group differences in a distance matrix.

    Samples without a group label are left out. R² is derived from the
    pseudo-F statistic: F(k-1) / (F(k-1) + (n-k)).

    Args:
        dm:           Distance matrix.
        metadata:     Sample metadata indexed by sample id.
        group_column: Categorical metadata column defining the groups.
        permutations: Number of label permutations.
        seed:         Seed for the permutations.

    Returns:
        Series with test_statistic, p_value, r_squared, sample_size,
        number_of_groups and permutations.

    Raises:
        KeyError:   If `group_column` is not a metadata column or a sample has
                    no metadata.
        ValueError: If fewer than two groups remain.
    """
    if group_column not in metadata.columns:
        raise KeyError(f"Metadata column '{group_column}' not found")
    ids = list(dm.ids)
    missing = [i for i in ids if i not in metadata.index]
    if missing:
        raise KeyError(f"Samples missing from metadata: {missing[:10]}")

    grouping = metadata.loc[ids, group_column]
    labelled = grouping.dropna()
    if len(labelled) < len(grouping):
        logger.warning(
            f"Skipping {len(grouping) - len(labelled)} samples without '{group_column}'"
        )
        dm = dm.filter(labelled.index.tolist())
    n_groups = labelled.nunique()
    if n_groups < 2:
        raise ValueError(f"PERMANOVA needs at least 2 groups in '{group_column}'")

    result = skbio_permanova(
        dm,
        labelled.astype(str).to_frame(),
        column=group_column,
        permutations=permutations,
        seed=seed
    )
    f_stat = float(result['test statistic'])
    n = int(result['sample size'])
    k = int(result['number of groups'])
    r_squared = f_stat * (k - 1) / (f_stat * (k - 1) + (n - k)) if n > k else np.nan

    summary = pd.Series({
        'test_statistic': f_stat,
        'p_value': float(result['p-value']) if permutations > 0 else np.nan,
        'r_squared': r_squared,
        'sample_size': n,
        'number_of_groups': k,
        'permutations': int(result['number of permutations']),
    }, name=group_column)
    logger.info(
        f"PERMANOVA on '{group_column}': F={f_stat:.3f}, R²={r_squared:.3f}, "
        f"p={summary['p_value']:.4f} ({permutations} permutations)"
    )
    return summary
