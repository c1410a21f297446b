import numpy as np
import pandas as pd
import pytest

from conftest import make_imputations
from miselect import InvalidParameterError, MISelector


@pytest.fixture
def sparse_data():
    return make_imputations(n=200, p=10, M=4, seed=3)


class TestMISelector:
    """Tests for the sklearn-style selector."""

    def test_saenet_selects_informative_features(self, sparse_data):
        X_list, y_list, w = sparse_data
        selector = MISelector(method='saenet', alpha=[0.5, 1.0], random_state=0, nlambda=30, verbose=False)
        selector.fit(X_list, y_list, sample_weight=w)

        assert {0, 1, 2} <= set(selector.selected_features_.tolist())
        assert selector.coef_.shape == (10,)
        assert selector.alpha_ in (0.5, 1.0)
        assert selector.lambda_ == selector.cv_result_.lambda_min
        assert selector.n_features_selected_ == len(selector.selected_features_)

    def test_galasso_selects_informative_features(self, sparse_data):
        X_list, y_list, _ = sparse_data
        selector = MISelector(method='galasso', random_state=0, nlambda=30, verbose=False)
        selector.fit(X_list, y_list)

        assert {0, 1, 2} <= set(selector.selected_features_.tolist())
        assert selector.alpha_ == 1.0

    def test_transform_and_support(self, sparse_data):
        X_list, y_list, w = sparse_data
        selector = MISelector(rule='1se', random_state=1, nlambda=20, verbose=False)
        reduced = selector.fit_transform(X_list, y_list, sample_weight=w)

        k = selector.n_features_selected_
        assert len(reduced) == len(X_list)
        assert all(r.shape == (200, k) for r in reduced)
        mask = selector.get_support()
        assert mask.dtype == bool and mask.sum() == k
        np.testing.assert_array_equal(selector.get_support(indices=True), np.where(mask)[0])
        assert selector.lambda_ == selector.cv_result_.lambda_1se

    def test_dataframe_names(self, sparse_data):
        X_list, y_list, w = sparse_data
        cols = [f"x{i}" for i in range(10)]
        frames = [pd.DataFrame(Xm, columns=cols) for Xm in X_list]

        selector = MISelector(random_state=0, nlambda=20, verbose=False).fit(frames, y_list, sample_weight=w)
        assert selector.feature_names_in_ == cols
        assert {'x0', 'x1', 'x2'} <= set(selector.selected_feature_names_)

        out = selector.transform(frames[0])
        assert out.shape == (200, selector.n_features_selected_)

        info = selector.get_feature_info()
        assert list(info.columns) == ['feature', 'coef', 'abs_coef', 'selected']
        assert info['abs_coef'].is_monotonic_decreasing
        assert info.loc[0, 'feature'] in ('x0', 'x1')

    def test_predict_binomial_probabilities(self):
        X_list, y_list, w = make_imputations(n=200, p=6, M=3, binomial=True, seed=2)
        selector = MISelector(family='binomial', random_state=0, nlambda=20, verbose=False)
        selector.fit(X_list, y_list, sample_weight=w)

        prob = selector.predict(X_list[0])
        assert prob.shape == (200,)
        assert np.all((prob > 0) & (prob < 1))

    def test_invalid_settings(self, sparse_data):
        X_list, y_list, w = sparse_data
        with pytest.raises(InvalidParameterError):
            MISelector(method='lasso', verbose=False).fit(X_list, y_list)
        with pytest.raises(InvalidParameterError):
            MISelector(rule='best', verbose=False).fit(X_list, y_list)
        with pytest.raises(InvalidParameterError):
            MISelector(method='galasso', verbose=False).fit(X_list, y_list, sample_weight=w)

    def test_get_params_roundtrip(self):
        selector = MISelector(method='galasso', nfolds=3, random_state=7)
        params = selector.get_params()
        assert params['method'] == 'galasso'
        assert params['nfolds'] == 3
        clone = MISelector(**params)
        assert clone.get_params() == params

    def test_verbose_summary(self, sparse_data, capsys):
        X_list, y_list, w = sparse_data
        MISelector(random_state=0, nlambda=10, verbose=True).fit(X_list, y_list, sample_weight=w)
        out = capsys.readouterr().out
        assert "SAENET CV (gaussian)" in out
        assert "features" in out
