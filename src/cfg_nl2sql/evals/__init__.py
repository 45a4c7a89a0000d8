"""Verification harness for the generation pipeline."""

from cfg_nl2sql.evals.cases import (
    FIXED_REFERENCE_TIME,
    EvalCase,
    EvalCaseFileError,
    default_eval_cases,
    load_eval_cases,
)
from cfg_nl2sql.evals.compare import data_equal, rows_equal, values_equal
from cfg_nl2sql.evals.harness import (
    EvalCaseError,
    EvalResult,
    EvalRun,
    EvalSummary,
    log_eval_results,
    run_evals,
    summarize,
)

__all__ = [
    "FIXED_REFERENCE_TIME",
    "EvalCase",
    "EvalCaseError",
    "EvalCaseFileError",
    "EvalResult",
    "EvalRun",
    "EvalSummary",
    "data_equal",
    "default_eval_cases",
    "load_eval_cases",
    "log_eval_results",
    "rows_equal",
    "run_evals",
    "summarize",
    "values_equal",
]
