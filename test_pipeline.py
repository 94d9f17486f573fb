import logging

import pandas as pd
import pytest
import yaml

from otu_eda.config import get_config, get_section, is_enabled
from otu_eda.pipeline import main, run_pipeline, write_results


@pytest.fixture
def config_path(tmp_path, input_files):
    config = {
        "abundance": "./data/otu_table.tsv",
        "taxonomy": "./data/taxonomy.tsv",
        "metadata": "./data/metadata.csv",
        "output_dir": "./results",
        "log_dir": "./logs",
        "filter": {
            "exclude_samples": {"sample_type": ["blank"]},
            "exclude_taxa": {"Order": ["Chloroplast"]},
        },
        "aggregation": {"rank": "Phylum", "prune_threshold": 0.02},
        "rarefaction": {"trials": 10, "seed": 1, "show_progress": False},
        "ordination": {"method": "pcoa", "n_components": 2},
        "permanova": {"group_column": "station", "permutations": 99, "seed": 3},
    }
    path = tmp_path / "config.yaml"
    with open(path, "w") as fh:
        yaml.safe_dump(config, fh)
    return path


@pytest.fixture(autouse=True)
def _release_log_handlers():
    yield
    logger = logging.getLogger("otu_eda")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_relative_paths_resolved(config_path, tmp_path):
    config = get_config(config_path)
    assert config["abundance"] == (tmp_path / "data" / "otu_table.tsv").resolve()
    assert config["output_dir"] == (tmp_path / "results").resolve()
    assert get_section(config, "missing") == {}
    assert is_enabled(get_section(config, "aggregation"))


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_config(tmp_path / "absent.yaml")


def test_run_pipeline(config_path):
    results = run_pipeline(get_config(config_path))
    dataset = results["dataset"]
    assert dataset.sample_ids == ["S1", "S2", "S3", "S4", "S5"]
    assert "Otu4" not in dataset.taxon_ids

    assert set(results["long_table"]["sample_id"]) == set(dataset.sample_ids)
    assert results["diversity"].index.tolist() == dataset.sample_ids
    assert results["distance_matrix"].shape == (5, 5)
    assert results["ordination"]["components"].shape == (5, 2)
    assert results["permanova"]["number_of_groups"] == 2


def test_disabled_stages_are_skipped(config_path):
    config = get_config(config_path)
    config["rarefaction"]["enabled"] = False
    config["ordination"]["enabled"] = False
    config["permanova"]["enabled"] = False
    results = run_pipeline(config)
    assert "diversity" not in results
    assert "distance_matrix" not in results
    assert "long_table" in results


def test_run_pipeline_is_reproducible(config_path):
    first = run_pipeline(get_config(config_path))
    second = run_pipeline(get_config(config_path))
    pd.testing.assert_frame_equal(first["diversity"], second["diversity"])
    pd.testing.assert_series_equal(first["permanova"], second["permanova"])


def test_write_results(config_path, tmp_path):
    results = run_pipeline(get_config(config_path))
    written = write_results(results, tmp_path / "out")
    names = {p.name for p in written}
    assert {
        "filtered_abundance.tsv", "composition_long.tsv", "alpha_diversity_rarefied.tsv",
        "distance_matrix.tsv", "ordination.tsv", "permanova.tsv",
    } <= names
    long = pd.read_csv(tmp_path / "out" / "composition_long.tsv", sep="\t")
    assert long.columns[:4].tolist() == ["sample_id", "taxon", "relative_abundance", "count"]


def test_main(config_path, tmp_path):
    assert main(["--config", str(config_path), "--seed", "5"]) == 0
    assert (tmp_path / "results" / "permanova.tsv").exists()
    assert any((tmp_path / "logs").iterdir())


def test_main_reports_bad_input(config_path, tmp_path):
    (tmp_path / "data" / "metadata.csv").write_text("sample_id,station\nX1,A\n")
    assert main(["--config", str(config_path), "--output-dir", str(tmp_path / "o")]) == 1
    assert not (tmp_path / "o").exists()
