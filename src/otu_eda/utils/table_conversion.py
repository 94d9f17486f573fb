# ===================================== IMPORTS ====================================== #

# Third-Party Imports
import pandas as pd
from biom import Table

# ================================ TABLE CONVERSION ================================== #

def biom_to_df(table: Table) -> pd.DataFrame:
    """Dense samples × taxa DataFrame from a taxa × samples BIOM table."""
    if not isinstance(table, Table):
        raise TypeError(f"Expected a biom Table, got {type(table).__name__}")
    return table.to_dataframe(dense=True).T


def df_to_biom(counts: pd.DataFrame) -> Table:
    """BIOM table (taxa × samples) from a samples × taxa count DataFrame.

    Identifiers are converted to strings, as BIOM requires.
    """
    if not isinstance(counts, pd.DataFrame):
        raise TypeError(f"Expected a DataFrame, got {type(counts).__name__}")
    return Table(
        counts.to_numpy().T,
        observation_ids=counts.columns.astype(str).tolist(),
        sample_ids=counts.index.astype(str).tolist(),
        type="OTU table"
    )
