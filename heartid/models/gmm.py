"""
对角协方差高斯混合模型
======================

在z-score归一化的特征空间上通过EM算法拟合K个对角高斯分量

EM流程:
1. k-means++ 初始化中心 (样本数少于分量数时有放回抽取)
2. E步: 对数空间计算 权重 × 对角高斯密度, 按分量归一化得到责任度
3. M步: 更新权重 (下限1e-9后重新归一化), 均值, 对角协方差 (下限1e-6)
4. 平均对数似然的提升小于 tol 时提前停止, max_iter 为兜底
"""

import numpy as np
from scipy.special import logsumexp
from sklearn.cluster import kmeans_plusplus
from typing import Any, Dict, Optional
from dataclasses import dataclass
from loguru import logger

LOG_2PI = np.log(2 * np.pi)

# 单样本密度下限, 防止 log(0)
DENSITY_FLOOR = 1e-30


@dataclass(eq=False)
class GMMParameters:
    """
    GMM参数

    Attributes:
        weights: 分量权重 (K,)
        means: 分量均值 (K, D)
        covariances: 对角协方差 (K, D)
    """

    weights: np.ndarray
    means: np.ndarray
    covariances: np.ndarray

    def __post_init__(self):
        self.weights = np.asarray(self.weights, dtype=np.float64).ravel()
        self.means = np.atleast_2d(np.asarray(self.means, dtype=np.float64))
        self.covariances = np.atleast_2d(np.asarray(self.covariances, dtype=np.float64))

        k = len(self.weights)
        if self.means.shape[0] != k or self.covariances.shape != self.means.shape:
            raise ValueError(f"GMM参数形状不一致: weights={self.weights.shape}, "
                             f"means={self.means.shape}, covariances={self.covariances.shape}")

    @property
    def n_components(self) -> int:
        return len(self.weights)

    @property
    def dimension(self) -> int:
        return self.means.shape[1]

    def __eq__(self, other) -> bool:
        if not isinstance(other, GMMParameters):
            return NotImplemented
        return (np.array_equal(self.weights, other.weights)
                and np.array_equal(self.means, other.means)
                and np.array_equal(self.covariances, other.covariances))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weights': self.weights.tolist(),
            'means': self.means.tolist(),
            'covariances': self.covariances.tolist()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GMMParameters':
        return cls(
            weights=np.array(data['weights'], dtype=np.float64),
            means=np.array(data['means'], dtype=np.float64),
            covariances=np.array(data['covariances'], dtype=np.float64)
        )


def weighted_log_prob(X: np.ndarray, params: GMMParameters) -> np.ndarray:
    """
    log(w_k) + log N(x | mu_k, diag(var_k))

    Returns:
        (n_samples, n_components)
    """
    X = np.atleast_2d(X)
    var = params.covariances
    log_det = np.sum(np.log(var), axis=1)  # (K,)
    sq = np.sum((X[:, None, :] - params.means[None, :, :]) ** 2 / var[None, :, :], axis=2)
    log_gauss = -0.5 * (X.shape[1] * LOG_2PI + log_det[None, :] + sq)
    return log_gauss + np.log(params.weights)[None, :]


def score_samples(
    X: np.ndarray,
    params: GMMParameters,
    density_floor: float = DENSITY_FLOOR
) -> np.ndarray:
    """
    逐样本对数似然 (密度取下限后再取对数)

    Returns:
        (n_samples,)
    """
    log_density = logsumexp(weighted_log_prob(X, params), axis=1)
    return np.maximum(log_density, np.log(density_floor))


class DiagonalGMM:
    """
    对角协方差GMM

    Usage:
        gmm = DiagonalGMM(n_components=3).fit(Z)
        ll = gmm.score(Z_live)
    """

    def __init__(
        self,
        n_components: int = 3,
        max_iter: int = 50,
        tol: float = 1e-4,
        reg_covar: float = 1e-6,
        min_weight: float = 1e-9,
        random_state: Optional[int] = 42
    ):
        if n_components < 1:
            raise ValueError(f"n_components 必须 ≥ 1: {n_components}")

        self.n_components = n_components
        self.max_iter = max_iter
        self.tol = tol
        self.reg_covar = reg_covar
        self.min_weight = min_weight
        self.random_state = random_state

        self.params_: Optional[GMMParameters] = None
        self.converged_ = False
        self.n_iter_ = 0
        self.lower_bound_ = -np.inf

    def fit(self, X: np.ndarray) -> 'DiagonalGMM':
        """
        EM拟合

        Args:
            X: 训练数据 (n_samples, n_features)

        Returns:
            self
        """
        X = np.atleast_2d(np.asarray(X, dtype=np.float64))
        n_samples = X.shape[0]
        if n_samples == 0:
            raise ValueError("GMM训练数据为空")

        params = self._initialize(X)
        self.converged_ = False
        prev_ll = -np.inf

        for n_iter in range(1, self.max_iter + 1):
            # E步
            log_prob = weighted_log_prob(X, params)
            log_norm = logsumexp(log_prob, axis=1)
            resp = np.exp(log_prob - log_norm[:, None])

            # M步
            params = self._m_step(X, resp)

            ll = float(np.mean(log_norm))
            self.n_iter_ = n_iter
            if abs(ll - prev_ll) < self.tol:
                self.converged_ = True
                break
            prev_ll = ll

        self.params_ = params
        self.lower_bound_ = self.score(X)

        if not self.converged_:
            logger.warning(f"GMM在 {self.max_iter} 次迭代内未收敛")
        logger.debug(f"GMM拟合完成: K={self.n_components}, 迭代 {self.n_iter_} 次, "
                     f"平均对数似然 {self.lower_bound_:.3f}")

        return self

    def _initialize(self, X: np.ndarray) -> GMMParameters:
        n_samples, n_features = X.shape
        k = self.n_components

        if n_samples >= k:
            centers, _ = kmeans_plusplus(X, k, random_state=self.random_state, n_local_trials=1)
        else:
            rng = np.random.default_rng(self.random_state)
            centers = X[rng.integers(0, n_samples, size=k)]

        variance = np.maximum(np.var(X, axis=0), self.reg_covar)

        return GMMParameters(
            weights=np.full(k, 1.0 / k),
            means=np.array(centers, dtype=np.float64),
            covariances=np.tile(variance, (k, 1))
        )

    def _m_step(self, X: np.ndarray, resp: np.ndarray) -> GMMParameters:
        nk = resp.sum(axis=0) + 10 * np.finfo(np.float64).eps

        weights = np.maximum(nk / X.shape[0], self.min_weight)
        weights = np.maximum(weights / weights.sum(), self.min_weight)

        means = resp.T @ X / nk[:, None]

        diff_sq = (X[:, None, :] - means[None, :, :]) ** 2
        covariances = np.einsum('nk,nkd->kd', resp, diff_sq) / nk[:, None]
        covariances = np.maximum(covariances, self.reg_covar)

        return GMMParameters(weights=weights, means=means, covariances=covariances)

    def _check_fitted(self) -> GMMParameters:
        if self.params_ is None:
            raise RuntimeError("GMM尚未训练")
        return self.params_

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        return score_samples(X, self._check_fitted())

    def score(self, X: np.ndarray) -> float:
        """平均对数似然"""
        return float(np.mean(self.score_samples(X)))

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        log_prob = weighted_log_prob(X, self._check_fitted())
        return np.exp(log_prob - logsumexp(log_prob, axis=1)[:, None])
