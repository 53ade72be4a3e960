"""Static data tables used by the classification layer."""
