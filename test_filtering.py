import numpy as np
import pandas as pd
import pytest

from otu_eda.dataset import MergedDataset
from otu_eda.errors import EmptySampleGroupError, UnknownRankError
from otu_eda.filtering import (
    exclude_contaminants, exclude_samples, exclude_taxa, filter_dataset,
    filter_min_depth, metadata_equals
)


def test_exclude_blank_samples(dataset):
    filtered = exclude_samples(dataset, "sample_type", ["blank"])
    assert filtered.sample_ids == ["S1", "S2", "S3", "S4", "S5"]
    assert filtered.metadata.index.tolist() == filtered.sample_ids
    # every remaining taxon still has reads
    assert filtered.taxon_ids == dataset.taxon_ids


def test_exclude_taxa_case_insensitive(dataset):
    filtered = exclude_taxa(dataset, "order", ["chloroplast"])
    assert "Otu4" not in filtered.taxon_ids
    assert filtered.taxonomy.index.tolist() == filtered.taxon_ids
    assert filtered.sample_ids == dataset.sample_ids


def test_exclude_taxa_case_sensitive(dataset):
    filtered = exclude_taxa(dataset, "Order", ["chloroplast"], case_sensitive=True)
    assert "Otu4" in filtered.taxon_ids


def test_exclude_contaminants(dataset):
    filtered = exclude_contaminants(dataset)
    assert filtered.taxon_ids == ["Otu1", "Otu2", "Otu3"]


def test_exclude_contaminants_skips_missing_ranks(dataset):
    reduced = MergedDataset(
        abundance=dataset.abundance,
        taxonomy=dataset.taxonomy[["Kingdom", "Phylum", "Class", "Order"]],
        metadata=dataset.metadata,
    )
    filtered = exclude_contaminants(reduced)
    assert filtered.taxon_ids == ["Otu1", "Otu2", "Otu3", "Otu5"]


def test_unknown_rank(dataset):
    with pytest.raises(UnknownRankError) as excinfo:
        exclude_taxa(dataset, "Superkingdom", ["Bacteria"])
    assert excinfo.value.rank == "Superkingdom"
    assert "Phylum" in excinfo.value.available
    assert isinstance(excinfo.value, KeyError)


def test_filter_min_depth_drops_shallow_sample(dataset):
    filtered = filter_min_depth(dataset, 10)
    assert "S6" not in filtered.sample_ids
    assert (filtered.sample_depths >= 10).all()


def test_removing_every_sample_raises(dataset):
    with pytest.raises(EmptySampleGroupError):
        filter_dataset(dataset, predicate=lambda meta: meta["station"] == "Z")


def test_removing_every_taxon_raises(dataset):
    with pytest.raises(EmptySampleGroupError):
        exclude_taxa(dataset, "Kingdom", ["Bacteria"])


def test_empty_taxa_dropped_after_sample_filter(dataset):
    filtered = filter_dataset(dataset, predicate=metadata_equals("sample_type", "blank"))
    assert filtered.sample_ids == ["S6"]
    assert filtered.taxon_ids == ["Otu4", "Otu5"]

    kept = filter_dataset(
        dataset, predicate=metadata_equals("sample_type", "blank"), drop_empty_taxa=False
    )
    assert kept.taxon_ids == dataset.taxon_ids


def test_predicate_may_return_array(dataset):
    mask = np.array([True, False, True, False, True, False])
    filtered = filter_dataset(dataset, predicate=lambda meta: mask)
    assert filtered.sample_ids == ["S1", "S3", "S5"]


def test_predicate_with_wrong_shape(dataset):
    with pytest.raises(ValueError):
        filter_dataset(dataset, predicate=lambda meta: np.array([True, False]))


def test_missing_metadata_column(dataset):
    with pytest.raises(KeyError):
        exclude_samples(dataset, "depth_m", [0])


def test_filter_does_not_modify_input(dataset):
    before = dataset.copy()
    exclude_samples(dataset, "sample_type", ["blank"])
    exclude_contaminants(dataset)
    pd.testing.assert_frame_equal(dataset.abundance, before.abundance)
    pd.testing.assert_frame_equal(dataset.taxonomy, before.taxonomy)
    pd.testing.assert_frame_equal(dataset.metadata, before.metadata)
