import numpy as np
import pandas as pd
import pytest

from otu_eda.diversity.rarefaction import (
    estimate_diversity, estimate_diversity_by_group, inverse_simpson, rarefaction_curve,
    rarefy_counts, richness
)
from otu_eda.errors import EmptySampleGroupError, InsufficientDepthError
from otu_eda.filtering import exclude_samples


@pytest.fixture
def small_table() -> pd.DataFrame:
    return pd.DataFrame(
        [[10, 0, 5], [3, 3, 3]],
        index=pd.Index(["sample1", "sample2"], name="sample_id"),
        columns=["t1", "t2", "t3"],
    )


@pytest.fixture
def sampled(dataset):
    return exclude_samples(dataset, "sample_type", ["blank"])


def test_indices():
    assert richness(np.array([3, 0, 1])) == 2
    assert inverse_simpson(np.array([5, 5])) == pytest.approx(2.0)
    assert inverse_simpson(np.array([0, 7, 0])) == pytest.approx(1.0)
    assert np.isnan(inverse_simpson(np.array([0, 0])))


def test_rarefied_vector_sums_to_depth(small_table):
    rng = np.random.default_rng(0)
    for row in small_table.to_numpy():
        for _ in range(200):
            draw = rarefy_counts(row, 5, rng)
            assert draw.sum() == 5
            # reads are only drawn from taxa present in the sample
            assert (draw[row == 0] == 0).all()


def test_rarefy_counts_rejects_shallow_sample():
    with pytest.raises(InsufficientDepthError) as excinfo:
        rarefy_counts(np.array([1, 1]), 5, np.random.default_rng(0), sample_id="S9")
    assert excinfo.value.samples == ["S9"]
    assert excinfo.value.target_depth == 5


def test_single_trial(small_table):
    summary = estimate_diversity(small_table, target_depth=5, trials=1, seed=7)
    assert summary.columns.tolist() == [
        "richness_mean", "richness_sd", "evenness_mean", "evenness_sd"
    ]
    assert summary.index.tolist() == ["sample1", "sample2"]
    assert summary.loc["sample1", "richness_mean"] in {1, 2}
    assert summary.loc["sample2", "richness_mean"] in {1, 2, 3}
    assert summary["richness_sd"].isna().all()
    assert summary["evenness_sd"].isna().all()
    assert (summary["evenness_mean"] >= 1).all()


def test_expected_richness_with_replacement(small_table):
    # P(taxon unseen in 5 draws) = (2/3)^5 for each of three equal taxa
    summary = estimate_diversity(small_table, target_depth=5, trials=4000, seed=11)
    expected = 3 * (1 - (2 / 3) ** 5)
    assert summary.loc["sample2", "richness_mean"] == pytest.approx(expected, abs=0.05)
    assert summary.loc["sample1", "richness_mean"] <= 2


def test_same_seed_same_result(sampled):
    first = estimate_diversity(sampled, target_depth=50, trials=25, seed=42)
    second = estimate_diversity(sampled, target_depth=50, trials=25, seed=42)
    pd.testing.assert_frame_equal(first, second, check_exact=True)


def test_different_seed_different_result(sampled):
    first = estimate_diversity(sampled, target_depth=20, trials=25, return_trials=True, seed=1)
    second = estimate_diversity(sampled, target_depth=20, trials=25, return_trials=True, seed=2)
    assert not first["evenness"].equals(second["evenness"])


def test_rng_and_seed_are_equivalent(sampled):
    by_seed = estimate_diversity(sampled, target_depth=30, trials=5, seed=3)
    by_rng = estimate_diversity(
        sampled, target_depth=30, trials=5, rng=np.random.default_rng(3)
    )
    pd.testing.assert_frame_equal(by_seed, by_rng)
    with pytest.raises(ValueError):
        estimate_diversity(sampled, trials=5, seed=3, rng=np.random.default_rng(3))


def test_default_depth_is_minimum(sampled):
    trials = estimate_diversity(sampled, trials=3, seed=0, return_trials=True)
    assert trials.columns.tolist() == ["sample_id", "trial", "richness", "evenness"]
    assert len(trials) == 3 * len(sampled.sample_ids)
    assert (trials["richness"] <= len(sampled.taxon_ids)).all()


def test_richness_bounded_by_observed(sampled):
    summary = estimate_diversity(sampled, target_depth=50, trials=20, seed=5)
    observed = (sampled.abundance > 0).sum(axis=1)
    assert (summary["richness_mean"] <= observed).all()


def test_insufficient_depth(dataset):
    with pytest.raises(InsufficientDepthError) as excinfo:
        estimate_diversity(dataset, target_depth=50, trials=2, seed=0)
    assert excinfo.value.samples == ["S6"]
    assert isinstance(excinfo.value, ValueError)


def test_empty_group():
    empty = pd.DataFrame(columns=["t1", "t2"], dtype=np.int64)
    with pytest.raises(EmptySampleGroupError):
        estimate_diversity(empty, trials=2, seed=0)


@pytest.mark.parametrize("kwargs", [{"trials": 0}, {"target_depth": 0}, {"trials": 2.5}])
def test_invalid_parameters(small_table, kwargs):
    with pytest.raises(ValueError):
        estimate_diversity(small_table, seed=0, **kwargs)


def test_input_not_modified(small_table):
    before = small_table.copy()
    estimate_diversity(small_table, target_depth=5, trials=10, seed=0)
    pd.testing.assert_frame_equal(small_table, before)


def test_by_group(sampled):
    result = estimate_diversity_by_group(
        sampled, "station", target_depth=40, trials=10, seed=9
    )
    assert result.columns[0] == "group"
    assert result.loc["S1", "group"] == "A"
    assert result.loc["S5", "group"] == "B"
    assert sorted(result.index) == sampled.sample_ids

    again = estimate_diversity_by_group(
        sampled, "station", target_depth=40, trials=10, seed=9
    )
    pd.testing.assert_frame_equal(result, again)


def test_by_group_unknown_column(sampled):
    with pytest.raises(KeyError):
        estimate_diversity_by_group(sampled, "depth_m", trials=2, seed=0)


def test_rarefaction_curve_mean_increases():
    table = pd.DataFrame([[10] * 20], index=["even"], columns=[f"t{i}" for i in range(20)])
    curve = rarefaction_curve(table, depths=[5, 20, 80], trials=200, seed=0)
    means = curve.sort_values("depth")["richness_mean"].to_numpy()
    assert np.all(np.diff(means) > 0)
    assert means[-1] <= 20


def test_rarefaction_curve_skips_shallow_samples(small_table):
    curve = rarefaction_curve(small_table, depths=[5, 12], trials=5, seed=0)
    row = curve.set_index(["sample_id", "depth"])
    assert np.isnan(row.loc[("sample2", 12), "richness_mean"])
    assert not np.isnan(row.loc[("sample1", 12), "richness_mean"])


def test_progress_bar_does_not_change_result(small_table):
    quiet = estimate_diversity(small_table, target_depth=5, trials=20, seed=4)
    shown = estimate_diversity(
        small_table, target_depth=5, trials=20, seed=4, show_progress=True
    )
    pd.testing.assert_frame_equal(quiet, shown)


def test_inverse_simpson_of_uneven_counts():
    counts = np.array([12, 3, 0, 5, 1])
    p = counts / counts.sum()
    assert inverse_simpson(counts) == pytest.approx(1 / np.sum(p ** 2))


def test_sample_without_reads_at_default_depth():
    table = pd.DataFrame([[5, 5], [0, 0]], index=["S1", "S2"], columns=["t1", "t2"])
    with pytest.raises(InsufficientDepthError) as excinfo:
        estimate_diversity(table, trials=2, seed=0)
    assert excinfo.value.samples == ["S2"]
