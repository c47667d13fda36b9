import os
from pathlib import Path
from typing import Any, ClassVar, Self, Unpack

import toml
from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import TypedDict, override

from cpuscope import LoggingSetup
from cpuscope.errors.base import ErrorMode

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.toml"

if not DEFAULT_CONFIG_PATH.exists():
    raise FileNotFoundError(f"Config file not found: {DEFAULT_CONFIG_PATH}")


class CpuscopeConfigDict(TypedDict, total=False):
    # [log]
    logging_mode: ErrorMode

    # [profile]
    default_sample_interval: int
    top_functions_limit: int
    report_functions_limit: int

    # [sourcemap]
    fetch_timeout_s: float
    max_concurrent_fetches: int
    nearest_name_line_radius: int
    nearest_name_column_radius: int

    # [misc]
    enable_profiling: bool


class TomlConfig(BaseModel):
    @classmethod
    def from_toml(cls, **data: Unpack[CpuscopeConfigDict]) -> Self:
        """Load settings from a TOML file."""

        # load default config
        with DEFAULT_CONFIG_PATH.open("r") as f:
            toml_data = toml.load(f)

        path = os.getenv("CPUSCOPE_CONFIG_PATH")

        if path is not None:
            path = Path(path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")

            # load external config
            with path.open("r") as f:
                external_toml_data = toml.load(f)

            # merge configs
            toml_data = {**toml_data, **external_toml_data}
        toml_data = {**toml_data, **data}

        return cls.model_validate(toml_data)


class CpuscopeConfig(TomlConfig):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    # [log]
    logging_mode: ErrorMode

    # [profile]
    default_sample_interval: int = Field(gt=0)
    top_functions_limit: int = Field(gt=0)
    report_functions_limit: int = Field(gt=0)

    # [sourcemap]
    fetch_timeout_s: float = Field(gt=0)
    max_concurrent_fetches: int = Field(gt=0)
    nearest_name_line_radius: int = Field(ge=0)
    nearest_name_column_radius: int = Field(ge=0)

    # [misc]
    enable_profiling: bool

    @override
    def model_post_init(self, context: Any, /) -> None:
        LoggingSetup.set_logger_mode(self.logging_mode)


# 1. flat config structure with comments like # [sourcemap] to structure the file
# 2. users override defaults with their own toml file (CPUSCOPE_CONFIG_PATH) or keyword arguments,
#    the rule is that the new params override the default ones

config = CpuscopeConfig.from_toml()
