from pathlib import Path

# ==================================================================================== #
# PROGRESS BAR
# ==================================================================================== #
# See supported colors at: https://www.w3schools.com/colors/colors_x11.asp

# Total character width of the progress bar text
DEFAULT_N: int = 45
# Color of the progress bar description text
DEFAULT_DESCRIPTION_STYLE: str = "white"
# Width of the progress bar
DEFAULT_BAR_WIDTH: int = 40
# Color of the filled/complete portion of the progress bar
DEFAULT_BAR_COLUMN_COMPLETE_STYLE: str = "honeydew2"
# Color used when the progress bar is finished
DEFAULT_FINISHED_STYLE: str = "dark_cyan"
# Color of the percentage complete text (e.g., "85%")
DEFAULT_PROGRESS_PERCENTAGE_STYLE: str = "honeydew2"
# Color of the "X of Y complete" text (e.g., "42 of 100")
DEFAULT_M_OF_N_COMPLETE_STYLE: str = "honeydew2"
# Color of the time elapsed display (e.g., "E: 00:01:25")
DEFAULT_TIME_ELAPSED_STYLE: str = "light_sky_blue1"
# Color of the estimated time remaining display (e.g., "R: 00:00:34")
DEFAULT_TIME_REMAINING_STYLE: str = "thistle1"

# ==================================================================================== #
# SETTINGS
# ==================================================================================== #
# Go up two levels
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "references" / "config.yaml"
DEFAULT_OUTPUT_DIR = Path("results")
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_STRICT_MERGE = True

# ==================================================================================== #
# INPUT TABLES
# ==================================================================================== #
# Metadata columns tried (case-insensitively) for the sample identifier
DEFAULT_META_ID_COLUMNS = [
    'sample_id', 'sampleid', '#sampleid', 'sample-id', 'group', 'sample'
]
# mothur .shared bookkeeping columns
SHARED_SAMPLE_COLUMN = 'Group'
SHARED_DROP_COLUMNS = ['label', 'numOtus']
# Taxonomy columns holding a full lineage string
TAXONOMY_STRING_COLUMNS = ['taxonomy', 'taxon', 'lineage']
TAXONOMY_IGNORED_COLUMNS = ['size', 'confidence', 'consensus']

# ==================================================================================== #
# TAXONOMY
# ==================================================================================== #
DEFAULT_RANKS = ['Kingdom', 'Phylum', 'Class', 'Order', 'Family', 'Genus']
FULL_RANKS = DEFAULT_RANKS + ['Species']
UNCLASSIFIED_LABEL = 'Unclassified'
# QIIME-style rank prefixes, e.g. "p__Firmicutes"
RANK_PREFIX_PATTERN = r'^[kdpcofgs]__'
# mothur bootstrap suffixes, e.g. "Firmicutes(100)"
BOOTSTRAP_SUFFIX_PATTERN = r'\(\d+(\.\d+)?\)$'
EMPTY_LABELS = {'', 'nan', 'none', 'na', 'unassigned'}

# ==================================================================================== #
# FILTERING
# ==================================================================================== #
DEFAULT_MIN_COUNTS: int = 0
DEFAULT_CONTAMINANT_TAXA = {
    'Order': ['Chloroplast'],
    'Family': ['Mitochondria'],
}

# ==================================================================================== #
# AGGREGATION
# ==================================================================================== #
DEFAULT_RANK = 'Phylum'
DEFAULT_PRUNE_THRESHOLD: float = 0.0
LONG_TABLE_COLUMNS = ['sample_id', 'taxon', 'relative_abundance', 'count']
DEFAULT_TOP_N: int = 10

# ==================================================================================== #
# ALPHA DIVERSITY (RAREFACTION)
# ==================================================================================== #
DEFAULT_TRIALS: int = 100
DEFAULT_CURVE_TRIALS: int = 10
DEFAULT_RANDOM_STATE: int = 42
DIVERSITY_SUMMARY_COLUMNS = [
    'richness_mean', 'richness_sd', 'evenness_mean', 'evenness_sd'
]

# ==================================================================================== #
# BETA DIVERSITY
# ==================================================================================== #
DEFAULT_METRIC = 'braycurtis'
DEFAULT_ORDINATION_METHOD = 'pcoa'
DEFAULT_N_COMPONENTS: int = 2
DEFAULT_NMDS_N_INIT: int = 4
DEFAULT_NMDS_MAX_ITER: int = 300
DEFAULT_PERMUTATIONS: int = 999
