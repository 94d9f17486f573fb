"""
OTU Exploratory Data Analysis Pipeline
----------------------------------------------------------------------------------------
Imports OTU abundance tables, taxonomy assignments and sample metadata, then runs
filtering, taxonomic aggregation, rarefaction-based diversity estimation,
ordination and PERMANOVA in a fixed order. Every stage is configured in a YAML
file (see references/config.yaml).
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Third-Party Imports
import pandas as pd

# Local Imports
from otu_eda import constants
from otu_eda.aggregation import aggregate
from otu_eda.config import get_config, get_section, is_enabled
from otu_eda.dataset import MergedDataset, import_dataset
from otu_eda.diversity.beta_diversity import distance_matrix, ordinate, permanova
from otu_eda.diversity.rarefaction import estimate_diversity, estimate_diversity_by_group
from otu_eda.errors import OtuEdaError
from otu_eda.filtering import exclude_samples, exclude_taxa, filter_min_depth
from otu_eda.logger import setup_logging
from otu_eda.utils.io import write_tsv

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("otu_eda")

REQUIRED_INPUTS = ("abundance", "taxonomy", "metadata")

# =================================== MAIN WORKFLOW ================================== #

class EdaWorkflow:
    """Runs the configured analysis stages on one dataset.

    Stage results are collected in `self.results`:
    'dataset', 'long_table', 'diversity', 'distance_matrix', 'ordination',
    'permanova'. Disabled stages are absent.
    """

    def __init__(self, config: Dict) -> None:
        self.config = config
        self.results: Dict[str, Any] = {}

    def run(self) -> Dict[str, Any]:
        dataset = self._load()
        dataset = self._filter(dataset)
        self.results['dataset'] = dataset
        self._aggregate(dataset)
        self._rarefaction(dataset)
        self._beta_diversity(dataset)
        return self.results

    def _load(self) -> MergedDataset:
        missing = [key for key in REQUIRED_INPUTS if not self.config.get(key)]
        if missing:
            raise ValueError(f"Config is missing input paths: {missing}")
        logger.info("Importing abundance, taxonomy and metadata tables")
        return import_dataset(
            self.config["abundance"],
            self.config["taxonomy"],
            self.config["metadata"],
            sample_id_column=self.config.get("sample_id_column"),
            strict=self.config.get("strict_merge", constants.DEFAULT_STRICT_MERGE),
            transpose=self.config.get("transpose_abundance", False),
            ranks=self.config.get("ranks"),
        )

    def _filter(self, dataset: MergedDataset) -> MergedDataset:
        filter_config = get_section(self.config, "filter")
        for column, values in (filter_config.get("exclude_samples") or {}).items():
            dataset = exclude_samples(dataset, column, values)
        for rank, values in (filter_config.get("exclude_taxa") or {}).items():
            dataset = exclude_taxa(dataset, rank, values)
        min_counts = filter_config.get("min_counts", constants.DEFAULT_MIN_COUNTS)
        if min_counts:
            dataset = filter_min_depth(dataset, int(min_counts))
        return dataset

    def _aggregate(self, dataset: MergedDataset) -> None:
        agg_config = get_section(self.config, "aggregation")
        if not is_enabled(agg_config):
            return
        self.results['long_table'] = aggregate(
            dataset,
            rank=agg_config.get("rank", constants.DEFAULT_RANK),
            prune_threshold=agg_config.get("prune_threshold", constants.DEFAULT_PRUNE_THRESHOLD),
            other_label=agg_config.get("other_label"),
        )

    def _rarefaction(self, dataset: MergedDataset) -> None:
        rare_config = get_section(self.config, "rarefaction")
        if not is_enabled(rare_config):
            return
        kwargs = dict(
            target_depth=rare_config.get("depth"),
            trials=rare_config.get("trials", constants.DEFAULT_TRIALS),
            seed=rare_config.get("seed", constants.DEFAULT_RANDOM_STATE),
            show_progress=rare_config.get("show_progress", True),
        )
        group_column = rare_config.get("group_column")
        if group_column:
            self.results['diversity'] = estimate_diversity_by_group(
                dataset, group_column, **kwargs
            )
        else:
            self.results['diversity'] = estimate_diversity(dataset, **kwargs)

    def _beta_diversity(self, dataset: MergedDataset) -> None:
        ord_config = get_section(self.config, "ordination")
        perm_config = get_section(self.config, "permanova")
        if not (is_enabled(ord_config) or is_enabled(perm_config)):
            return

        dm = distance_matrix(dataset, metric=ord_config.get("metric", constants.DEFAULT_METRIC))
        self.results['distance_matrix'] = dm

        if is_enabled(ord_config):
            self.results['ordination'] = ordinate(
                dm,
                method=ord_config.get("method", constants.DEFAULT_ORDINATION_METHOD),
                n_components=ord_config.get("n_components", constants.DEFAULT_N_COMPONENTS),
                seed=ord_config.get("seed", constants.DEFAULT_RANDOM_STATE),
            )

        group_column = perm_config.get("group_column")
        if is_enabled(perm_config) and group_column:
            self.results['permanova'] = permanova(
                dm,
                dataset.metadata,
                group_column,
                permutations=perm_config.get("permutations", constants.DEFAULT_PERMUTATIONS),
                seed=perm_config.get("seed", constants.DEFAULT_RANDOM_STATE),
            )
        elif is_enabled(perm_config):
            logger.info("PERMANOVA skipped: no 'group_column' configured")


def run_pipeline(config: Dict) -> Dict[str, Any]:
    """Run every enabled stage and return the in-memory results."""
    return EdaWorkflow(config).run()


def write_results(results: Dict[str, Any], output_dir: Path) -> List[Path]:
    """Write pipeline results as TSV files under `output_dir`."""
    output_dir = Path(output_dir)
    written = []
    dataset: Optional[MergedDataset] = results.get('dataset')
    if dataset is not None:
        written.append(write_tsv(dataset.abundance, output_dir / "filtered_abundance.tsv"))
        written.append(write_tsv(dataset.taxonomy, output_dir / "filtered_taxonomy.tsv"))
    if 'long_table' in results:
        written.append(write_tsv(results['long_table'], output_dir / "composition_long.tsv", index=False))
    if 'diversity' in results:
        written.append(write_tsv(results['diversity'], output_dir / "alpha_diversity_rarefied.tsv"))
    if 'distance_matrix' in results:
        written.append(write_tsv(
            results['distance_matrix'].to_data_frame(), output_dir / "distance_matrix.tsv"
        ))
    if 'ordination' in results:
        ordination = results['ordination']
        written.append(write_tsv(ordination['components'], output_dir / "ordination.tsv"))
    if 'permanova' in results:
        written.append(write_tsv(
            results['permanova'].to_frame().T, output_dir / "permanova.tsv", index=False
        ))
    for path in written:
        logger.info(f"Wrote {path}")
    return written


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="otu-eda",
        description="Exploratory analysis of OTU abundance tables."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help="Path to the configuration file.",
    )
    parser.add_argument("--output-dir", type=Path, help="Override the output directory.")
    parser.add_argument("--log-dir", type=Path, help="Override the log directory.")
    parser.add_argument(
        "--seed", type=int,
        help="Override the seed of every stochastic stage.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the entire workflow from the command line."""
    args = parse_args(argv)
    config = get_config(args.config)

    log_dir = args.log_dir or config.get("log_dir") or constants.DEFAULT_LOG_DIR
    output_dir = args.output_dir or config.get("output_dir") or constants.DEFAULT_OUTPUT_DIR
    setup_logging(log_dir)

    if args.seed is not None:
        for section in ("rarefaction", "ordination", "permanova"):
            config.setdefault(section, {})
            if config[section] is None:
                config[section] = {}
            config[section]["seed"] = args.seed

    try:
        results = run_pipeline(config)
    except (OtuEdaError, FileNotFoundError, KeyError, ValueError) as e:
        logger.error(f"Pipeline aborted: {e}")
        return 1
    write_results(results, Path(output_dir))
    logger.info("Analysis completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
