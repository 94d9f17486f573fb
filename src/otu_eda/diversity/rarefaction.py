# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Optional, Sequence, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from skbio.diversity import alpha

# Local Imports
from otu_eda import constants
from otu_eda.dataset import MergedDataset
from otu_eda.errors import EmptySampleGroupError, InsufficientDepthError
from otu_eda.utils.progress import _format_task_desc, get_progress_bar

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("otu_eda")

TableLike = Union[MergedDataset, pd.DataFrame]

# =============================== HELPER FUNCTIONS =================================== #

def _counts_frame(table: TableLike) -> pd.DataFrame:
    if isinstance(table, MergedDataset):
        return table.abundance
    if isinstance(table, pd.DataFrame):
        return table
    raise TypeError("Input must be a MergedDataset or a samples × taxa DataFrame.")


def _get_rng(
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None
) -> np.random.Generator:
    """Return `rng` if given, else a fresh PCG64 generator seeded with `seed`.

    The two are mutually exclusive so the stream a result was drawn from is
    always explicit.
    """
    if rng is not None:
        if seed is not None:
            raise ValueError("Pass either `seed` or `rng`, not both")
        if not isinstance(rng, np.random.Generator):
            raise TypeError("`rng` must be a numpy.random.Generator")
        return rng
    return np.random.default_rng(seed)


def _check_positive_int(value, name: str) -> int:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return int(value)


def _validated_counts(table: TableLike) -> pd.DataFrame:
    counts = _counts_frame(table)
    if counts.shape[0] == 0:
        raise EmptySampleGroupError("Cannot rarefy an empty sample group")
    if counts.shape[1] == 0:
        raise EmptySampleGroupError("Cannot rarefy a table without taxa")
    return counts

# ================================ DIVERSITY INDICES ================================= #

def richness(counts: np.ndarray) -> int:
    """Number of taxa with a non-zero count."""
    return int(np.count_nonzero(counts))


def inverse_simpson(counts: np.ndarray) -> float:
    """Inverse Simpson index 1 / Σ p_i² of a count vector (NaN without reads)."""
    counts = np.asarray(counts, dtype=np.int64)
    if counts.sum() <= 0:
        return np.nan
    return float(alpha.inv_simpson(counts))


def rarefy_counts(
    counts: np.ndarray,
    depth: int,
    rng: np.random.Generator,
    sample_id: Optional[str] = None
) -> np.ndarray:
    """Draw `depth` reads with replacement from a sample's count distribution.

    Independent per-read draws with replacement are a single multinomial draw
    with probabilities counts / total, so the returned vector always sums to
    `depth`.

    Raises:
        InsufficientDepthError: If the sample holds fewer than `depth` reads.
    """
    counts = np.asarray(counts, dtype=np.int64)
    total = int(counts.sum())
    if total < depth:
        raise InsufficientDepthError(depth, [sample_id] if sample_id is not None else [])
    return rng.multinomial(depth, counts / total)

# ================================ CORE FUNCTIONALITY ================================ #

def estimate_diversity(
    table: TableLike,
    target_depth: Optional[int] = None,
    trials: int = constants.DEFAULT_TRIALS,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    return_trials: bool = False,
    show_progress: bool = False
) -> pd.DataFrame:
    """Estimate per-sample richness and inverse-Simpson evenness by repeated
    rarefaction to a common depth.

    In every trial each sample is resampled, in table order, to
    `target_depth` reads drawn with replacement (one multinomial draw per
    sample). Richness and inverse Simpson are computed on each rarefied vector
    and summarised over trials as mean and sample standard deviation
    (ddof=1, NaN for a single trial).

    Args:
        table:         MergedDataset or samples × taxa count DataFrame
                       (already restricted to one sample group).
        target_depth:  Reads per rarefied sample. Defaults to the minimum sample
                       depth.
        trials:        Number of rarefaction trials.
        seed:          Seed for `numpy.random.default_rng` (PCG64).
        rng:           Generator to draw from instead of `seed`.
        return_trials: Return the per-trial long table (sample_id, trial,
                       richness, evenness) instead of the summary.
        show_progress: Show a progress bar over trials.

    Returns:
        DataFrame indexed by sample_id with richness_mean, richness_sd,
        evenness_mean and evenness_sd.

    Raises:
        EmptySampleGroupError:  If the table has no samples (or no taxa).
        InsufficientDepthError: If a sample has fewer reads than `target_depth`, or
                                no reads at all when `target_depth` is None.
        ValueError:             For a non-positive depth or trial count.
    """
    counts = _validated_counts(table)
    trials = _check_positive_int(trials, "trials")

    values = counts.to_numpy(dtype=np.int64)
    depths = values.sum(axis=1)
    if target_depth is None:
        empty = counts.index[depths == 0].tolist()
        if empty:
            raise InsufficientDepthError(1, empty)
        target_depth = int(depths.min())
        logger.info(f"Rarefying to the minimum sample depth ({target_depth} reads)")
    target_depth = _check_positive_int(target_depth, "target_depth")

    shallow = counts.index[depths < target_depth].tolist()
    if shallow:
        raise InsufficientDepthError(target_depth, shallow)

    rng = _get_rng(seed, rng)
    n_samples = values.shape[0]

    rich = np.empty((trials, n_samples), dtype=np.int64)
    even = np.empty((trials, n_samples), dtype=float)

    with get_progress_bar(transient=True, disable=not show_progress) as progress:
        task = progress.add_task(
            _format_task_desc(f"Rarefying {n_samples} samples to {target_depth} reads"),
            total=trials
        )
        for t in range(trials):
            for i in range(n_samples):
                rarefied = rarefy_counts(values[i], target_depth, rng)
                rich[t, i] = richness(rarefied)
                even[t, i] = inverse_simpson(rarefied)
            progress.update(task, advance=1)

    sample_ids = counts.index.astype(str)
    if return_trials:
        per_trial = pd.DataFrame({
            'sample_id': np.tile(sample_ids.to_numpy(), trials),
            'trial': np.repeat(np.arange(1, trials + 1), n_samples),
            'richness': rich.ravel(),
            'evenness': even.ravel(),
        })
        return per_trial

    summary = pd.DataFrame(
        {
            'richness_mean': rich.mean(axis=0),
            'richness_sd': rich.std(axis=0, ddof=1) if trials > 1 else np.nan,
            'evenness_mean': even.mean(axis=0),
            'evenness_sd': even.std(axis=0, ddof=1) if trials > 1 else np.nan,
        },
        index=pd.Index(sample_ids, name='sample_id'),
    )
    logger.info(
        f"Estimated diversity for {n_samples} samples over {trials} trials "
        f"at depth {target_depth}"
    )
    return summary[constants.DIVERSITY_SUMMARY_COLUMNS]


def estimate_diversity_by_group(
    dataset: MergedDataset,
    group_column: str,
    target_depth: Optional[int] = None,
    trials: int = constants.DEFAULT_TRIALS,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    show_progress: bool = False
) -> pd.DataFrame:
    """Run `estimate_diversity` separately for each value of a metadata column.

    Each group draws from its own generator spawned from the parent, so adding
    or removing a group does not change the other groups' results. Samples
    with a missing group label are skipped.

    Returns:
        Concatenated summaries with a leading 'group' column.
    """
    if group_column not in dataset.metadata.columns:
        raise KeyError(f"Metadata column '{group_column}' not found")
    groups = dataset.metadata[group_column].dropna()
    if groups.empty:
        raise EmptySampleGroupError(f"No samples have a value for '{group_column}'")

    parent = _get_rng(seed, rng)
    labels = sorted(groups.unique().tolist(), key=str)
    children = parent.spawn(len(labels))

    results = []
    for label, child in zip(labels, children):
        members = groups.index[groups == label]
        summary = estimate_diversity(
            dataset.abundance.loc[members],
            target_depth=target_depth,
            trials=trials,
            rng=child,
            show_progress=show_progress
        )
        results.append(summary.assign(group=label))
    out = pd.concat(results)
    return out[['group'] + constants.DIVERSITY_SUMMARY_COLUMNS]


def rarefaction_curve(
    table: TableLike,
    depths: Sequence[int],
    trials: int = constants.DEFAULT_CURVE_TRIALS,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None
) -> pd.DataFrame:
    """Mean rarefied richness per sample over a sequence of depths.

    Samples shallower than a depth get NaN at that depth instead of raising.

    Returns:
        Long table with sample_id, depth, richness_mean, richness_sd.
    """
    counts = _validated_counts(table)
    trials = _check_positive_int(trials, "trials")
    depths = [_check_positive_int(d, "depth") for d in depths]
    if not depths:
        raise ValueError("At least one depth is required")

    rng = _get_rng(seed, rng)
    values = counts.to_numpy(dtype=np.int64)
    totals = values.sum(axis=1)

    rows = []
    for depth in depths:
        for sample_id, row, total in zip(counts.index.astype(str), values, totals):
            if total < depth:
                rows.append((sample_id, depth, np.nan, np.nan))
                continue
            draws = np.array([
                richness(rarefy_counts(row, depth, rng, sample_id)) for _ in range(trials)
            ])
            sd = draws.std(ddof=1) if trials > 1 else np.nan
            rows.append((sample_id, depth, draws.mean(), sd))

    return pd.DataFrame(rows, columns=['sample_id', 'depth', 'richness_mean', 'richness_sd'])
