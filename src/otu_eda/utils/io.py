# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

# Third-Party Imports
import h5py
import numpy as np
import pandas as pd
from biom import load_table
from biom.table import Table

# Local Imports
from otu_eda import constants
from otu_eda.errors import MalformedInputError
from otu_eda.utils.table_conversion import biom_to_df
from otu_eda.utils.taxonomy_utils import clean_label, lineages_to_frame

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('otu_eda')

# ================================== HELPERS ========================================= #

def _check_exists(path: Union[str, Path], kind: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    return path


def _delimiter(path: Path, default: str = '\t') -> str:
    suffix = path.suffix.lower()
    if suffix == '.csv':
        return ','
    if suffix in {'.tsv', '.txt', '.tab', '.shared', '.taxonomy'}:
        return '\t'
    return default


def _duplicates(values: Sequence) -> List[str]:
    index = pd.Index([str(v) for v in values])
    return index[index.duplicated()].unique().tolist()


def _read_raw(path: Path, sep: str) -> pd.DataFrame:
    """Read a delimited file as strings without interpreting the header, so
    duplicate column names survive for validation."""
    skiprows = 0
    with open(path, 'r') as fh:
        first = fh.readline()
    # QIIME 2 / biom convert exports start with a comment line
    if first.startswith('# Constructed from biom file'):
        skiprows = 1
    try:
        raw = pd.read_csv(
            path, sep=sep, header=None, dtype=str, skiprows=skiprows,
            keep_default_na=False, skip_blank_lines=True
        )
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"File is empty: {path}") from e
    if raw.shape[1] < 2:
        raise MalformedInputError(
            f"Expected an identifier column and at least one data column: {path}"
        )
    return raw

# ================================ ABUNDANCE TABLE =================================== #

def import_biom(biom_path: Union[str, Path]) -> Table:
    """Load a BIOM table (HDF5 or JSON) from file."""
    biom_path = _check_exists(biom_path, "BIOM")
    if h5py.is_hdf5(biom_path):
        with h5py.File(biom_path, 'r') as f:
            return Table.from_hdf5(f)
    return load_table(str(biom_path))


def import_abundance_table(
    path: Union[str, Path],
    transpose: bool = False
) -> pd.DataFrame:
    """
    Load an OTU abundance table as a samples × taxa DataFrame.

    Supported layouts:
    - Delimited text with sample ids as row headers and taxon ids as column
      headers ('.csv' is comma-delimited, everything else tab-delimited).
    - mothur '.shared' files ('label', 'Group', 'numOtus', Otu... columns).
    - BIOM files ('.biom'), stored taxa × samples.
    - Taxa-as-rows exports (e.g. QIIME 2 'feature-table.tsv') with
      `transpose=True`.

    Args:
        path:      Path to the abundance table.
        transpose: Set when taxa are rows and samples are columns.

    Returns:
        DataFrame (samples × taxa) of numeric values. Non-numeric cells are NaN
        and are rejected by `otu_eda.dataset.validate_abundance`.

    Raises:
        FileNotFoundError:   If the file does not exist.
        MalformedInputError: For duplicate sample or taxon identifiers.
    """
    path = _check_exists(path, "Abundance table")

    if path.suffix.lower() == '.biom':
        df = biom_to_df(import_biom(path))
        df.index = df.index.astype(str)
        df.columns = df.columns.astype(str)
        df.index.name = 'sample_id'
        logger.debug(f"Loaded BIOM table {path.name}: {df.shape[0]} samples × {df.shape[1]} taxa")
        return df

    raw = _read_raw(path, _delimiter(path))
    header = [str(h).strip() for h in raw.iloc[0]]
    body = raw.iloc[1:].reset_index(drop=True)
    body.columns = range(len(header))
    if body.empty:
        raise MalformedInputError(f"Abundance table has no data rows: {path}")

    if constants.SHARED_SAMPLE_COLUMN in header and not transpose:
        id_pos = header.index(constants.SHARED_SAMPLE_COLUMN)
        drop = {id_pos} | {
            i for i, h in enumerate(header) if h in constants.SHARED_DROP_COLUMNS
        }
    else:
        id_pos = 0
        drop = {0}

    value_pos = [i for i in range(len(header)) if i not in drop]
    row_ids = body[id_pos].str.strip().tolist()
    col_ids = [header[i] for i in value_pos]

    df = body[value_pos].apply(lambda col: pd.to_numeric(col.str.strip(), errors='coerce'))
    df.index = pd.Index(row_ids)
    df.columns = pd.Index(col_ids)
    if transpose:
        df = df.T

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    df.index.name = 'sample_id'
    df.columns.name = 'taxon_id'

    dup_samples = _duplicates(df.index)
    if dup_samples:
        raise MalformedInputError(f"Duplicate sample identifiers in {path.name}: {dup_samples}")
    dup_taxa = _duplicates(df.columns)
    if dup_taxa:
        raise MalformedInputError(f"Duplicate taxon identifiers in {path.name}: {dup_taxa}")

    logger.debug(f"Loaded abundance table {path.name}: {df.shape[0]} samples × {df.shape[1]} taxa")
    return df

# ================================= TAXONOMY TABLE =================================== #

_TAXONOMY_HEADER_TOKENS = (
    set(constants.TAXONOMY_STRING_COLUMNS)
    | set(constants.TAXONOMY_IGNORED_COLUMNS)
    | {r.lower() for r in constants.FULL_RANKS}
    | {'domain', 'otu', 'otu id', '#otu id', 'feature id', 'id', 'taxon_id'}
)


def import_taxonomy_table(
    path: Union[str, Path],
    ranks: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Load taxonomy assignments as a taxon × rank DataFrame.

    Accepts one row per taxon in one of three shapes:
    - taxon id and a lineage string ('k__Bacteria; p__Firmicutes; ...' or mothur
      'Bacteria(100);Firmicutes(100);'), with or without a header row;
    - a mothur 'cons.taxonomy' ('OTU', 'Size', 'Taxonomy');
    - a header row naming one column per rank, or a headerless row of
      tab-separated rank labels.

    Args:
        path:  Path to the taxonomy table.
        ranks: Rank labels for lineage strings. Inferred when None.

    Returns:
        DataFrame indexed by taxon id with one column per rank.

    Raises:
        FileNotFoundError:   If the file does not exist.
        MalformedInputError: For duplicate taxon ids or over-long lineages.
    """
    path = _check_exists(path, "Taxonomy")
    raw = _read_raw(path, _delimiter(path))

    first = [str(v).strip().lower() for v in raw.iloc[0]]
    has_header = any(v in _TAXONOMY_HEADER_TOKENS for v in first[1:])

    if has_header:
        header = [str(v).strip() for v in raw.iloc[0]]
        body = raw.iloc[1:].reset_index(drop=True)
        lowered = [h.lower() for h in header]
        string_pos = next(
            (lowered.index(c) for c in constants.TAXONOMY_STRING_COLUMNS if c in lowered),
            None
        )
        ids = body[0].str.strip()
        if string_pos is not None:
            lineages = pd.Series(body[string_pos].values, index=ids.values)
            taxonomy = lineages_to_frame(lineages, ranks)
        else:
            rank_pos = [
                i for i, h in enumerate(lowered[1:], start=1)
                if h not in constants.TAXONOMY_IGNORED_COLUMNS
            ]
            taxonomy = body[rank_pos].apply(lambda col: col.map(clean_label))
            taxonomy.columns = [header[i] for i in rank_pos]
            taxonomy.index = ids.values
            if ranks is not None:
                taxonomy.columns = list(ranks)[:len(rank_pos)]
    else:
        ids = raw[0].str.strip()
        if raw.shape[1] == 2:
            lineages = pd.Series(raw[1].values, index=ids.values)
        else:
            # tab-separated rank labels
            lineages = pd.Series(
                [';'.join(v for v in row if v) for row in raw.iloc[:, 1:].values.tolist()],
                index=ids.values
            )
        taxonomy = lineages_to_frame(lineages, ranks)

    taxonomy.index = taxonomy.index.astype(str)
    taxonomy.index.name = 'taxon_id'

    dup_taxa = _duplicates(taxonomy.index)
    if dup_taxa:
        raise MalformedInputError(f"Duplicate taxon identifiers in {path.name}: {dup_taxa}")

    logger.debug(
        f"Loaded taxonomy {path.name}: {len(taxonomy)} taxa, ranks {list(taxonomy.columns)}"
    )
    return taxonomy

# ================================= METADATA TABLE =================================== #

def import_metadata_table(
    path: Union[str, Path],
    sample_id_column: Optional[str] = None
) -> pd.DataFrame:
    """
    Load a sample metadata table indexed by sample id.

    Args:
        path:             Path to the metadata file ('.tsv'/'.txt' are
                          tab-delimited, everything else comma-delimited).
        sample_id_column: Column holding sample ids. When None, the first column
                          matching a known id name is used, else the first column.

    Returns:
        Metadata DataFrame indexed by 'sample_id'.

    Raises:
        FileNotFoundError:   If the file does not exist.
        KeyError:            If `sample_id_column` is not a column.
        MalformedInputError: For duplicate sample ids.
    """
    path = _check_exists(path, "Metadata")
    try:
        df = pd.read_csv(path, sep=_delimiter(path, default=','))
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"File is empty: {path}") from e

    if sample_id_column is None:
        lowered = {str(c).strip().lower(): c for c in df.columns}
        sample_id_column = next(
            (lowered[c] for c in constants.DEFAULT_META_ID_COLUMNS if c in lowered),
            df.columns[0]
        )
    elif sample_id_column not in df.columns:
        raise KeyError(f"Sample id column '{sample_id_column}' not in {path.name}")

    ids = df[sample_id_column].astype(str).str.strip()
    # QIIME 2 metadata may carry a column-type directive row. It is skipped on a
    # second read so column types are inferred from the values alone.
    directives = np.flatnonzero(ids.str.startswith('#q2:').to_numpy())
    if len(directives):
        df = pd.read_csv(
            path, sep=_delimiter(path, default=','),
            skiprows=[int(i) + 1 for i in directives]
        )
        ids = df[sample_id_column].astype(str).str.strip()
    df = df.drop(columns=[sample_id_column])
    df.index = pd.Index(ids.values, name='sample_id')

    dup_samples = _duplicates(df.index)
    if dup_samples:
        raise MalformedInputError(f"Duplicate sample identifiers in {path.name}: {dup_samples}")

    logger.debug(f"Loaded metadata {path.name}: {len(df)} samples, {df.shape[1]} columns")
    return df

# ===================================== OUTPUT ======================================= #

def write_tsv(
    df: pd.DataFrame,
    output_path: Union[str, Path],
    index: bool = True
) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, sep='\t', index=index)
    logger.debug(f"Wrote {output_path}")
    return output_path
