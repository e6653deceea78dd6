"""Configuration helpers shared across specfleet packages."""

from sf_common.config.env import (
    parse_bool_env,
    parse_float_env,
    parse_int_env,
    parse_list_env,
)

__all__ = ["parse_bool_env", "parse_float_env", "parse_int_env", "parse_list_env"]
