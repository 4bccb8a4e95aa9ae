"""Normalization and matching of code facts against documentation."""

from __future__ import annotations

from .compare import COMPARATORS, DocCorpus, compare_facts
from .globs import GlobCache, find_files
from .params import choose_best_match, normalize_param_list, normalize_param_name, split_params
from .paths import normalize_path, parse_endpoint_name

__all__ = [
    "COMPARATORS",
    "DocCorpus",
    "GlobCache",
    "choose_best_match",
    "compare_facts",
    "find_files",
    "normalize_param_list",
    "normalize_param_name",
    "normalize_path",
    "parse_endpoint_name",
    "split_params",
]
