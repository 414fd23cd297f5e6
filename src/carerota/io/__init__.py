# carerota/io - Input/output handling
from .config_loader import find_rules_config, load_rules_config, save_rules_config
from .csv_loader import build_backend, load_carers, load_entries, load_packages, save_entries
from .results_export import export_scan, export_violations_csv, violations_to_dataframe

__all__ = [
    "load_carers",
    "load_packages",
    "load_entries",
    "save_entries",
    "build_backend",
    "load_rules_config",
    "save_rules_config",
    "find_rules_config",
    "export_scan",
    "export_violations_csv",
    "violations_to_dataframe",
]
