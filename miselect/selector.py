import numpy as np
import pandas as pd
from typing import Optional, List, Sequence, Union

from sklearn.base import BaseEstimator, TransformerMixin

from miselect._errors import InvalidParameterError
from miselect.api import cv_galasso, cv_saenet
from miselect.cv import CVResult
from miselect.select import predict, select_coefficients


# =============================================================================
# Multiple-Imputation Selector
# =============================================================================

class MISelector(BaseEstimator, TransformerMixin):
    """
    Variable selection that is consistent across multiply-imputed datasets.

    Runs cross-validated SAENET or GALASSO on the M imputations and keeps the
    variables with nonzero coefficients at the chosen CV setting. Because the
    selection is shared by every imputation, `transform` applies to any one
    completed dataset.

    Parameters
    ----------
    method : str, default='saenet'
        Either 'saenet' (stacked adaptive elastic net) or 'galasso'
        (grouped adaptive lasso).
    family : str, default='gaussian'
        Either 'gaussian' or 'binomial'.
    alpha : float or list of float, default=1.0
        Elastic net mixing values (SAENET only).
    pf : array-like, optional
        Penalty factors, one per feature.
    adw : array-like, optional
        Adaptive weights, one per feature.
    nfolds : int, default=5
        Number of CV folds.
    rule : str, default='min'
        'min' for lambda.min, '1se' for lambda.1se.
    nlambda : int, default=100
        Length of the generated lambda grid.
    n_jobs : int, default=-1
        Number of parallel jobs (-1 = all cores).
    parallel_backend : str, default='threads'
        Joblib backend preference.
    random_state : int, optional
        Seed of the fold assignment.
    verbose : bool, default=True
        Print progress information.

    Attributes
    ----------
    cv_result_ : CVResult
    coef_ : ndarray of shape (n_features,)
        Slopes at the chosen setting (averaged over imputations for GALASSO).
    intercept_ : float
    selected_features_ : ndarray
        Indices of selected features.
    selected_feature_names_ : list of str
    n_features_selected_ : int
    """

    def __init__(
        self,
        method: str = 'saenet',
        family: str = 'gaussian',
        alpha: Union[float, List[float]] = 1.0,
        pf: Optional[np.ndarray] = None,
        adw: Optional[np.ndarray] = None,
        nfolds: int = 5,
        rule: str = 'min',
        nlambda: int = 100,
        n_jobs: int = -1,
        parallel_backend: str = 'threads',
        random_state: Optional[int] = None,
        verbose: bool = True
    ):
        self.method = method
        self.family = family
        self.alpha = alpha
        self.pf = pf
        self.adw = adw
        self.nfolds = nfolds
        self.rule = rule
        self.nlambda = nlambda
        self.n_jobs = n_jobs
        self.parallel_backend = parallel_backend
        self.random_state = random_state
        self.verbose = verbose

    def fit(
        self,
        X: Sequence,
        y: Sequence,
        sample_weight: Optional[np.ndarray] = None
    ) -> 'MISelector':
        """
        Cross-validate and select.

        Parameters
        ----------
        X : list of array-like or DataFrame of shape (n_samples, n_features)
            One completed design matrix per imputation.
        y : list of array-like of shape (n_samples,)
            One response per imputation.
        sample_weight : array-like of shape (n_samples,), optional
            Observation weights (SAENET only).

        Returns
        -------
        self
        """
        if self.method not in ('saenet', 'galasso'):
            raise InvalidParameterError(f"method must be 'saenet' or 'galasso', got '{self.method}'")
        if self.rule not in ('min', '1se'):
            raise InvalidParameterError(f"rule must be 'min' or '1se', got '{self.rule}'")

        common = dict(
            pf=self.pf,
            adw=self.adw,
            family=self.family,
            nfolds=self.nfolds,
            seed=self.random_state,
            n_jobs=self.n_jobs,
            parallel_backend=self.parallel_backend,
            verbose=self.verbose,
            nlambda=self.nlambda,
        )
        if self.method == 'saenet':
            result = cv_saenet(X, y, weights=sample_weight, alpha=self.alpha, **common)
        else:
            if sample_weight is not None:
                raise InvalidParameterError("galasso does not take observation weights")
            result = cv_galasso(X, y, **common)

        self.cv_result_: CVResult = result
        coef = select_coefficients(result, rule=self.rule)
        self.intercept_ = float(coef[0])
        self.coef_ = coef[1:]
        self.feature_names_in_ = list(result.path.feature_names)
        self.n_features_in_ = len(self.feature_names_in_)

        a_idx, l_idx = result.index_min if self.rule == 'min' else result.index_1se
        self.alpha_ = float(result.path.alphas[a_idx])
        self.lambda_ = float(result.path.lambdas[a_idx, l_idx])

        self.selected_features_ = np.where(self.coef_ != 0)[0]
        self.selected_feature_names_ = [self.feature_names_in_[i] for i in self.selected_features_]
        self.n_features_selected_ = len(self.selected_features_)

        if self.verbose:
            print(f"Selected {self.n_features_selected_} / {self.n_features_in_} features")

        return self

    def transform(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """Reduce one completed dataset to the selected features."""
        if isinstance(X, pd.DataFrame):
            return X[self.selected_feature_names_].values
        return np.asarray(X)[:, self.selected_features_]

    def fit_transform(self, X, y, **fit_params) -> List[np.ndarray]:
        """Fit, then reduce every imputation."""
        self.fit(X, y, **fit_params)
        return [self.transform(Xm) for Xm in X]

    def predict(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """Fitted mean (probability for binomial) for one completed dataset."""
        return predict(self.cv_result_, X, rule=self.rule, type='response')

    def get_support(self, indices: bool = False) -> np.ndarray:
        """Get mask or indices of selected features."""
        if indices:
            return self.selected_features_
        mask = np.zeros(self.n_features_in_, dtype=bool)
        mask[self.selected_features_] = True
        return mask

    def get_feature_info(self) -> pd.DataFrame:
        """
        Get DataFrame with feature selection details.

        Returns
        -------
        DataFrame with columns:
            feature: name
            coef: coefficient at the chosen setting
            abs_coef: its magnitude
            selected: whether it is nonzero
        """
        return pd.DataFrame({
            'feature': self.feature_names_in_,
            'coef': self.coef_,
            'abs_coef': np.abs(self.coef_),
            'selected': self.coef_ != 0
        }).sort_values('abs_coef', ascending=False).reset_index(drop=True)
