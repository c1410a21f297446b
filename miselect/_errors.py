"""Exception and warning types raised by miselect."""

from sklearn.exceptions import ConvergenceWarning


class MISelectError(ValueError):
    """Base class for invalid inputs to a fit."""


class DimensionError(MISelectError):
    """Shapes disagree across imputations, weights or penalty vectors."""


class InvalidParameterError(MISelectError):
    """A tuning parameter is outside its valid range."""


class InsufficientFoldsError(MISelectError):
    """Fewer than two folds, or a fold without observations."""


class NotFoundError(LookupError):
    """Requested (lambda, alpha) is not a point of the fitted grid."""


class NonConvergenceWarning(ConvergenceWarning):
    """Coordinate descent or IRLS hit its iteration cap."""
