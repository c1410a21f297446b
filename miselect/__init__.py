__version__ = "0.1.0"

from miselect._config import SolverConfig
from miselect._errors import (
    DimensionError,
    InsufficientFoldsError,
    InvalidParameterError,
    MISelectError,
    NonConvergenceWarning,
    NotFoundError,
)
from miselect.api import cv_galasso, cv_saenet, fit_galasso, fit_saenet
from miselect.cv import CVResult, assign_folds
from miselect.families import Family
from miselect.path import SolutionPath
from miselect.penalty import PenaltyContext, adaptive_weights
from miselect.select import predict, select_coefficients
from miselect.selector import MISelector
from miselect.stacking import StackedDataset, stack_imputations

__all__ = [
    "__version__",
    "fit_saenet",
    "cv_saenet",
    "fit_galasso",
    "cv_galasso",
    "select_coefficients",
    "predict",
    "adaptive_weights",
    "assign_folds",
    "stack_imputations",
    "MISelector",
    "SolutionPath",
    "CVResult",
    "StackedDataset",
    "PenaltyContext",
    "SolverConfig",
    "Family",
    "MISelectError",
    "DimensionError",
    "InvalidParameterError",
    "InsufficientFoldsError",
    "NotFoundError",
    "NonConvergenceWarning",
]
