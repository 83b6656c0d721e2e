"""Option Discovery — cascading filter resolution across marketplace sites."""

from src.options.cascade import (
    CascadingOptionResolver,
    clean_options,
    gather_options,
    merge_option_sets,
    next_level,
    normalize_options,
)
from src.options.models import (
    FILTER_CHAIN,
    LEVELS,
    DiscoveredOption,
    FilterState,
    OptionSet,
    OptionValue,
)

__all__ = [
    "FILTER_CHAIN",
    "LEVELS",
    "CascadingOptionResolver",
    "DiscoveredOption",
    "FilterState",
    "OptionSet",
    "OptionValue",
    "clean_options",
    "gather_options",
    "merge_option_sets",
    "next_level",
    "normalize_options",
]
