"""
Shared fixtures: a small six-sample, five-OTU study with one blank, one
chloroplast OTU and one mitochondrial OTU.
"""

from pathlib import Path

import pandas as pd
import pytest

from otu_eda.dataset import merge_tables

SAMPLES = ["S1", "S2", "S3", "S4", "S5", "S6"]
OTUS = ["Otu1", "Otu2", "Otu3", "Otu4", "Otu5"]

COUNTS = [
    [50, 30, 10, 5, 5],
    [40, 40, 10, 10, 0],
    [60, 20, 15, 0, 5],
    [5, 5, 80, 5, 5],
    [10, 0, 85, 5, 0],
    [0, 0, 0, 2, 1],
]

LINEAGES = {
    "Otu1": ["Bacteria", "Firmicutes", "Bacilli", "Lactobacillales", "Lactobacillaceae", "Lactobacillus"],
    "Otu2": ["Bacteria", "Firmicutes", "Clostridia", "Clostridiales", "Lachnospiraceae", "Roseburia"],
    "Otu3": ["Bacteria", "Bacteroidetes", "Bacteroidia", "Bacteroidales", "Bacteroidaceae", "Bacteroides"],
    "Otu4": ["Bacteria", "Cyanobacteria", "Oxyphotobacteria", "Chloroplast", "Unclassified", "Unclassified"],
    "Otu5": ["Bacteria", "Proteobacteria", "Alphaproteobacteria", "Rickettsiales", "Mitochondria", "Unclassified"],
}
RANKS = ["Kingdom", "Phylum", "Class", "Order", "Family", "Genus"]


@pytest.fixture
def abundance() -> pd.DataFrame:
    return pd.DataFrame(
        COUNTS,
        index=pd.Index(SAMPLES, name="sample_id"),
        columns=pd.Index(OTUS, name="taxon_id"),
    )


@pytest.fixture
def taxonomy() -> pd.DataFrame:
    return pd.DataFrame.from_dict(LINEAGES, orient="index", columns=RANKS)


@pytest.fixture
def metadata() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "station": ["A", "A", "A", "B", "B", "B"],
            "sample_type": ["sample"] * 5 + ["blank"],
            "temperature": [12.1, 12.4, 11.9, 18.2, 18.9, None],
        },
        index=pd.Index(SAMPLES, name="sample_id"),
    )


@pytest.fixture
def dataset(abundance, taxonomy, metadata):
    return merge_tables(abundance, taxonomy, metadata)


@pytest.fixture
def input_files(tmp_path, abundance, metadata) -> dict:
    """Write the study as a tab-delimited abundance table, a QIIME-style
    taxonomy and a comma-delimited metadata file."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()

    abundance_path = data_dir / "otu_table.tsv"
    abundance.to_csv(abundance_path, sep="\t")

    taxonomy_path = data_dir / "taxonomy.tsv"
    prefixes = ["k__", "p__", "c__", "o__", "f__", "g__"]
    with open(taxonomy_path, "w") as fh:
        fh.write("Feature ID\tTaxon\tConfidence\n")
        for otu, labels in LINEAGES.items():
            lineage = "; ".join(p + l for p, l in zip(prefixes, labels))
            fh.write(f"{otu}\t{lineage}\t0.95\n")

    metadata_path = data_dir / "metadata.csv"
    metadata.to_csv(metadata_path)

    return {
        "abundance": abundance_path,
        "taxonomy": taxonomy_path,
        "metadata": metadata_path,
    }


def write_text(path: Path, text: str) -> Path:
    path.write_text(text)
    return path
