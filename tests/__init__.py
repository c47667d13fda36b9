import os
from pathlib import Path

import cpuscope

CONFIG_PATH = Path(__file__).parent / "test_cpuscope_config.toml"
cpuscope.set_error_mode("developer")

os.environ["CPUSCOPE_CONFIG_PATH"] = str(CONFIG_PATH)
