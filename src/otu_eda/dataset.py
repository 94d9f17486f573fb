# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

# Third-Party Imports
import numpy as np
import pandas as pd

# Local Imports
from otu_eda import constants
from otu_eda.errors import EmptySampleGroupError, MalformedInputError
from otu_eda.utils.io import (
    import_abundance_table, import_metadata_table, import_taxonomy_table
)

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('otu_eda')

# ===================================== TYPES ======================================== #

@dataclass(frozen=True)
class MergedDataset:
    """Abundance, taxonomy and metadata tables sharing one sample axis and one
    taxon axis.

    Attributes:
        abundance: Integer read counts, samples × taxa.
        taxonomy:  Rank labels, taxa × ranks (same taxa and order as the
                   abundance columns).
        metadata:  Sample attributes indexed by sample id (same samples and
                   order as the abundance index).

    Stages never modify a dataset in place; they return a new one.
    """
    abundance: pd.DataFrame
    taxonomy: pd.DataFrame
    metadata: pd.DataFrame

    @property
    def sample_ids(self) -> List[str]:
        return self.abundance.index.tolist()

    @property
    def taxon_ids(self) -> List[str]:
        return self.abundance.columns.tolist()

    @property
    def ranks(self) -> List[str]:
        return self.taxonomy.columns.tolist()

    @property
    def sample_depths(self) -> pd.Series:
        """Total read count per sample."""
        return self.abundance.sum(axis=1)

    @property
    def shape(self):
        return self.abundance.shape

    def copy(self) -> "MergedDataset":
        return MergedDataset(
            abundance=self.abundance.copy(),
            taxonomy=self.taxonomy.copy(),
            metadata=self.metadata.copy(),
        )

    def subset(
        self,
        samples: Optional[Sequence[str]] = None,
        taxa: Optional[Sequence[str]] = None
    ) -> "MergedDataset":
        """Return a new dataset restricted to `samples` and/or `taxa`, keeping
        the current order."""
        if samples is not None:
            keep = set(samples)
            samples = [s for s in self.sample_ids if s in keep]
        else:
            samples = self.sample_ids
        if taxa is not None:
            keep = set(taxa)
            taxa = [t for t in self.taxon_ids if t in keep]
        else:
            taxa = self.taxon_ids
        return MergedDataset(
            abundance=self.abundance.loc[samples, taxa].copy(),
            taxonomy=self.taxonomy.loc[taxa].copy(),
            metadata=self.metadata.loc[samples].copy(),
        )

    def __repr__(self) -> str:
        return (
            f"MergedDataset(samples={self.abundance.shape[0]}, "
            f"taxa={self.abundance.shape[1]}, ranks={self.ranks})"
        )

# =================================== VALIDATION ===================================== #

def _check_unique(index: pd.Index, what: str) -> None:
    dups = index[index.duplicated()].unique().tolist()
    if dups:
        raise MalformedInputError(f"Duplicate {what} identifiers: {dups}")


def validate_abundance(abundance: pd.DataFrame) -> pd.DataFrame:
    """Check that an abundance table holds non-negative integer counts and
    return it as an int64 copy with string identifiers.

    Raises:
        MalformedInputError: For duplicate ids or missing, non-numeric, negative
                             or non-integer values.
    """
    df = abundance.copy()
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    _check_unique(df.index, "sample")
    _check_unique(df.columns, "taxon")

    values = df.apply(pd.to_numeric, errors='coerce')
    if values.isna().to_numpy().any():
        bad = values.columns[values.isna().any(axis=0)].tolist()
        raise MalformedInputError(f"Missing or non-numeric counts for taxa: {bad[:10]}")
    arr = values.to_numpy(dtype=float)
    if (arr < 0).any():
        raise MalformedInputError("Abundance table contains negative counts")
    if (arr != np.round(arr)).any():
        raise MalformedInputError("Abundance table contains non-integer counts")

    out = pd.DataFrame(
        np.round(arr).astype(np.int64), index=df.index, columns=df.columns
    )
    out.index.name = 'sample_id'
    out.columns.name = 'taxon_id'
    return out

# ===================================== MERGE ======================================== #

def merge_tables(
    abundance: pd.DataFrame,
    taxonomy: pd.DataFrame,
    metadata: pd.DataFrame,
    strict: bool = constants.DEFAULT_STRICT_MERGE
) -> MergedDataset:
    """Join abundance, taxonomy and metadata tables into one dataset.

    Sample identifiers are matched explicitly. With `strict=True` the abundance
    and metadata sample sets must be equal. With `strict=False` the merge is an
    inner join on sample id and the dropped samples are logged.

    Args:
        abundance: Samples × taxa counts.
        taxonomy:  Taxa × ranks labels.
        metadata:  Sample attributes indexed by sample id.
        strict:    Require identical sample sets.

    Returns:
        MergedDataset ordered like the abundance table.

    Raises:
        MalformedInputError:   Invalid counts, duplicate ids, abundance taxa
                               missing from the taxonomy, or (strict) a sample
                               set mismatch.
        EmptySampleGroupError: When the inner join leaves no samples.
    """
    abundance = validate_abundance(abundance)

    taxonomy = taxonomy.copy()
    taxonomy.index = taxonomy.index.astype(str)
    _check_unique(taxonomy.index, "taxon")
    metadata = metadata.copy()
    metadata.index = metadata.index.astype(str)
    _check_unique(metadata.index, "sample")

    missing_taxa = [t for t in abundance.columns if t not in taxonomy.index]
    if missing_taxa:
        raise MalformedInputError(
            f"{len(missing_taxa)} taxa have no taxonomy assignment: {missing_taxa[:10]}"
        )
    extra_taxa = taxonomy.index.difference(abundance.columns)
    if len(extra_taxa):
        logger.debug(f"Dropping {len(extra_taxa)} taxonomy rows without abundance data")

    abundance_samples = set(abundance.index)
    metadata_samples = set(metadata.index)
    only_abundance = sorted(abundance_samples - metadata_samples)
    only_metadata = sorted(metadata_samples - abundance_samples)
    if only_abundance or only_metadata:
        msg = (
            f"Sample sets differ: {len(only_abundance)} only in abundance "
            f"{only_abundance[:10]}, {len(only_metadata)} only in metadata "
            f"{only_metadata[:10]}"
        )
        if strict:
            raise MalformedInputError(msg)
        logger.warning(msg + ". Keeping the intersection.")

    samples = [s for s in abundance.index if s in metadata_samples]
    if not samples:
        raise EmptySampleGroupError("No sample identifiers shared by abundance and metadata")

    taxa = abundance.columns.tolist()
    dataset = MergedDataset(
        abundance=abundance.loc[samples, taxa],
        taxonomy=taxonomy.loc[taxa],
        metadata=metadata.loc[samples],
    )
    dataset.metadata.index.name = 'sample_id'
    dataset.taxonomy.index.name = 'taxon_id'
    logger.info(
        f"Merged dataset: {len(samples)} samples × {len(taxa)} taxa, "
        f"{dataset.metadata.shape[1]} metadata columns"
    )
    return dataset


def import_dataset(
    abundance_path: Union[str, Path],
    taxonomy_path: Union[str, Path],
    metadata_path: Union[str, Path],
    sample_id_column: Optional[str] = None,
    strict: bool = constants.DEFAULT_STRICT_MERGE,
    transpose: bool = False,
    ranks: Optional[Sequence[str]] = None
) -> MergedDataset:
    """Read the three input files and merge them into a MergedDataset.

    See `import_abundance_table`, `import_taxonomy_table` and
    `import_metadata_table` for the accepted layouts and `merge_tables` for the
    validation rules.
    """
    abundance = import_abundance_table(abundance_path, transpose=transpose)
    taxonomy = import_taxonomy_table(taxonomy_path, ranks=ranks)
    metadata = import_metadata_table(metadata_path, sample_id_column=sample_id_column)
    return merge_tables(abundance, taxonomy, metadata, strict=strict)
