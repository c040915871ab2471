"""
匹配与判决引擎
==============

LIGHTWEIGHT 距离得分 (越小越相似):
    score = 0.02·|Δmean| + 0.03·|Δstdev| + 1.0·|ΔslopeEnergy| + 0.4·L1(histogram)
    通过条件: score ≤ 0.42 / factor

RICH 投票 + 似然:
    z = (x - μ) / σ, 每个(心拍, 维度)在 |z| ≤ range/σ 时投票
    通过条件: vote_ratio ≥ min(1, 0.7 × factor) 且 mean_ll ≥ -20

处于重试带内且未用尽重试次数时返回 RETRY_ELIGIBLE
任何异常都转换为 ERROR 判决
"""

import numpy as np
from typing import Optional, Union
from dataclasses import dataclass
from loguru import logger

from ..features import FeatureBatch, LightweightFeatures, RichFeatures, policy_of
from ..models import EnrolledModel, LightweightModel, StatisticalModel, score_samples
from ..security import SecurityLevel, SecurityPolicy, SecurityPolicyTable
from ..utils.exceptions import HeartIDError
from .decision import MatchDecision, MatchOutcome, ErrorKind

_ERROR_KINDS = {
    'INSUFFICIENT_DATA': ErrorKind.INSUFFICIENT_DATA,
    'POLICY_MISMATCH': ErrorKind.POLICY_MISMATCH,
    'CONFIGURATION_ERROR': ErrorKind.INVALID_INPUT
}


@dataclass
class MatcherConfig:
    """匹配配置"""

    # LIGHTWEIGHT 距离得分
    distance_threshold: float = 0.42
    mean_weight: float = 0.02
    stdev_weight: float = 0.03
    slope_energy_weight: float = 1.0
    histogram_weight: float = 0.4
    retry_band: float = 1.5  # 阈值的倍数

    # RICH 投票 + 似然
    pass_ratio: float = 0.7
    ll_threshold: float = -20.0
    density_floor: float = 1e-30
    confidence_ll_scale: float = 40.0
    retry_vote_margin: float = 0.1
    retry_ll_margin: float = 5.0

    # 按安全等级检查最少样本/心拍数
    enforce_min_samples: bool = True


class HeartMatcher:
    """
    匹配器

    Usage:
        matcher = HeartMatcher()
        decision = matcher.match(live_features, model, SecurityLevel.HIGH)
    """

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        policies: Optional[SecurityPolicyTable] = None
    ):
        self.config = config if config else MatcherConfig()
        self.policies = policies if policies else SecurityPolicyTable()

    def match(
        self,
        live: Optional[FeatureBatch],
        model: Optional[EnrolledModel],
        level: Union[SecurityLevel, str] = SecurityLevel.MEDIUM,
        attempt: int = 0
    ) -> MatchDecision:
        """
        比较实时特征与注册模型

        Args:
            live: 实时特征 (None 表示数据不足)
            model: 注册模型 (None 表示未注册)
            level: 安全等级
            attempt: 调用方已使用的重试次数

        Returns:
            MatchDecision
        """
        try:
            level = SecurityLevel.parse(level)
            policy = self.policies.policy_for(level)
            context = {'security_level': level.label}

            if model is None:
                return MatchDecision.error(ErrorKind.NO_ENROLLMENT, "没有注册模型", **context)
            context['policy'] = model.policy.value

            if live is None:
                return MatchDecision.error(ErrorKind.INSUFFICIENT_DATA, "实时样本不足", **context)

            if policy_of(live) != model.policy:
                return MatchDecision.error(
                    ErrorKind.POLICY_MISMATCH,
                    f"特征策略不一致: 注册={model.policy.value}, 实时={policy_of(live).value}",
                    **context
                )

            if isinstance(model, LightweightModel):
                return self._match_lightweight(live, model, policy, attempt, context)
            return self._match_rich(live, model, policy, attempt, context)

        except HeartIDError as e:
            logger.error(f"匹配失败: {e.message}")
            return MatchDecision.error(_ERROR_KINDS.get(e.code, ErrorKind.INTERNAL), e.message)
        except Exception as e:
            logger.exception(f"匹配过程中出现未预期的错误: {e}")
            return MatchDecision.error(ErrorKind.INTERNAL, f"{type(e).__name__}: {e}")

    # ========== LIGHTWEIGHT ==========

    def lightweight_score(self, live: LightweightFeatures, enrolled: LightweightFeatures) -> float:
        """加权距离得分; 非有限项按0计"""
        cfg = self.config
        hist_l1 = float(np.sum(np.abs(np.asarray(live.histogram) - np.asarray(enrolled.histogram))))
        terms = np.array([
            cfg.mean_weight * abs(live.mean - enrolled.mean),
            cfg.stdev_weight * abs(live.stdev - enrolled.stdev),
            cfg.slope_energy_weight * abs(live.slope_energy - enrolled.slope_energy),
            cfg.histogram_weight * hist_l1
        ], dtype=np.float64)
        return float(np.sum(np.where(np.isfinite(terms), terms, 0.0)))

    def _match_lightweight(
        self,
        live: LightweightFeatures,
        model: LightweightModel,
        policy: SecurityPolicy,
        attempt: int,
        context: dict
    ) -> MatchDecision:
        enrolled = model.features
        if live.version != enrolled.version or len(live.histogram) != len(enrolled.histogram):
            return MatchDecision.error(
                ErrorKind.DIMENSION_MISMATCH,
                f"轻量级特征版本/维度不一致: 注册=v{enrolled.version}, 实时=v{live.version}",
                **context
            )

        if self.config.enforce_min_samples and live.sample_count < policy.min_samples:
            return MatchDecision.error(
                ErrorKind.INSUFFICIENT_DATA,
                f"样本不足: {live.sample_count} < {policy.min_samples}",
                **context
            )

        score = self.lightweight_score(live, enrolled)
        return self.decide_lightweight(score, policy, attempt, **context)

    def decide_lightweight(
        self,
        score: float,
        security_policy: SecurityPolicy,
        attempt: int = 0,
        **context
    ) -> MatchDecision:
        """
        距离得分判决

        Args:
            score: 距离得分
            security_policy: 安全策略
            attempt: 已使用的重试次数

        Returns:
            MatchDecision
        """
        threshold = security_policy.effective_distance_threshold(self.config.distance_threshold)
        confidence = float(np.clip(1.0 - 0.5 * score / threshold, 0.0, 1.0))
        common = dict(score=score, confidence=confidence, threshold=threshold, **context)

        logger.debug(f"轻量级判决: score={score:.4f}, threshold={threshold:.4f}")

        if score <= threshold:
            return MatchDecision(outcome=MatchOutcome.ACCEPTED, **common)

        if score <= threshold * self.config.retry_band and attempt < security_policy.max_retry_attempts:
            return MatchDecision(
                outcome=MatchOutcome.RETRY_ELIGIBLE,
                attempts_remaining=security_policy.max_retry_attempts - attempt,
                reason="得分接近阈值, 可重试",
                **common
            )

        return MatchDecision(
            outcome=MatchOutcome.DENIED,
            reason=f"距离得分 {score:.3f} 超过阈值 {threshold:.3f}",
            **common
        )

    # ========== RICH ==========

    def rich_statistics(self, live: RichFeatures, model: StatisticalModel):
        """
        计算投票率和平均对数似然

        Returns:
            (vote_ratio, mean_log_likelihood)
        """
        Z = (live.vectors - model.feature_mean) / model.feature_std
        tolerance = model.feature_range / model.feature_std

        votes = np.abs(Z) <= tolerance[None, :]
        vote_ratio = float(np.mean(votes))
        mean_ll = float(np.mean(score_samples(Z, model.gmm, self.config.density_floor)))

        return vote_ratio, mean_ll

    def _match_rich(
        self,
        live: RichFeatures,
        model: StatisticalModel,
        policy: SecurityPolicy,
        attempt: int,
        context: dict
    ) -> MatchDecision:
        if live.feature_version != model.feature_version or live.dimension != model.dimension:
            return MatchDecision.error(
                ErrorKind.DIMENSION_MISMATCH,
                f"特征维度不一致: 注册={model.dimension} (v{model.feature_version}), "
                f"实时={live.dimension} (v{live.feature_version})",
                **context
            )

        if live.n_beats == 0:
            return MatchDecision.error(ErrorKind.INSUFFICIENT_DATA, "没有实时心拍", **context)

        if self.config.enforce_min_samples and live.n_beats < policy.min_samples:
            return MatchDecision.error(
                ErrorKind.INSUFFICIENT_DATA,
                f"心拍不足: {live.n_beats} < {policy.min_samples}",
                **context
            )

        if not np.all(np.isfinite(live.vectors)):
            return MatchDecision.error(ErrorKind.INVALID_INPUT, "实时特征包含NaN或Inf", **context)

        vote_ratio, mean_ll = self.rich_statistics(live, model)
        return self.decide_rich(vote_ratio, mean_ll, policy, attempt, **context)

    def decide_rich(
        self,
        vote_ratio: float,
        mean_ll: float,
        security_policy: SecurityPolicy,
        attempt: int = 0,
        **context
    ) -> MatchDecision:
        """
        投票率 + 似然判决

        似然阈值不随安全等级调整

        Args:
            vote_ratio: 投票通过率
            mean_ll: 平均对数似然
            security_policy: 安全策略
            attempt: 已使用的重试次数

        Returns:
            MatchDecision
        """
        cfg = self.config
        pass_ratio = min(1.0, security_policy.effective_threshold(cfg.pass_ratio))
        confidence = float(np.clip(
            (vote_ratio + (mean_ll - cfg.ll_threshold) / cfg.confidence_ll_scale) / 2, 0.0, 1.0
        ))
        common = dict(
            score=vote_ratio,
            confidence=confidence,
            vote_ratio=vote_ratio,
            mean_log_likelihood=mean_ll,
            threshold=pass_ratio,
            **context
        )

        logger.debug(f"统计判决: vote_ratio={vote_ratio:.3f} (≥{pass_ratio:.3f}), "
                     f"mean_ll={mean_ll:.2f} (≥{cfg.ll_threshold:.1f})")

        if vote_ratio >= pass_ratio and mean_ll >= cfg.ll_threshold:
            return MatchDecision(outcome=MatchOutcome.ACCEPTED, **common)

        near_miss = (vote_ratio >= pass_ratio - cfg.retry_vote_margin
                     and mean_ll >= cfg.ll_threshold - cfg.retry_ll_margin)
        if near_miss and attempt < security_policy.max_retry_attempts:
            return MatchDecision(
                outcome=MatchOutcome.RETRY_ELIGIBLE,
                attempts_remaining=security_policy.max_retry_attempts - attempt,
                reason="接近通过阈值, 可重试",
                **common
            )

        reasons = []
        if vote_ratio < pass_ratio:
            reasons.append(f"投票率 {vote_ratio:.2f} < {pass_ratio:.2f}")
        if mean_ll < cfg.ll_threshold:
            reasons.append(f"对数似然 {mean_ll:.1f} < {cfg.ll_threshold:.1f}")

        return MatchDecision(outcome=MatchOutcome.DENIED, reason="; ".join(reasons), **common)
