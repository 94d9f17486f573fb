"""
OTU Exploratory Data Analysis
----------------------------------------------------------------------------------------
Script entry point: `python src/run.py --config references/config.yaml`.
Equivalent to the installed `otu-eda` command.
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import sys
from pathlib import Path

# Local Imports
parent_dir = Path(__file__).resolve().parent
sys.path.append(str(parent_dir))

from otu_eda.pipeline import main

# =================================== MAIN WORKFLOW ================================== #

if __name__ == "__main__":
    sys.exit(main())
