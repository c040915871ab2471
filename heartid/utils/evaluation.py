"""
认证性能评估
============

基于真实用户 (genuine) 与冒名者 (impostor) 得分计算:
- FAR: 错误接受率
- FRR: 错误拒绝率
- EER: 等错误率 (FAR = FRR)

得分方向: higher_is_better=True 表示得分越高越相似 (投票率),
距离得分 (越小越相似) 传 False
"""

import numpy as np
import pandas as pd
from typing import Dict, Sequence
from dataclasses import dataclass
from sklearn.metrics import roc_curve


@dataclass
class EvaluationResult:
    """评估结果"""

    eer: float
    eer_threshold: float
    far: np.ndarray
    frr: np.ndarray
    thresholds: np.ndarray
    n_genuine: int
    n_impostor: int

    def summary(self) -> Dict[str, float]:
        return {
            'eer': self.eer,
            'eer_threshold': self.eer_threshold,
            'n_genuine': self.n_genuine,
            'n_impostor': self.n_impostor
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({'threshold': self.thresholds, 'far': self.far, 'frr': self.frr})


def far_frr_at(
    genuine: Sequence[float],
    impostor: Sequence[float],
    threshold: float,
    higher_is_better: bool = True
) -> Dict[str, float]:
    """
    给定阈值下的FAR/FRR

    Returns:
        {'far': ..., 'frr': ...}
    """
    genuine = np.asarray(genuine, dtype=np.float64)
    impostor = np.asarray(impostor, dtype=np.float64)

    if higher_is_better:
        far = np.mean(impostor >= threshold) if len(impostor) else 0.0
        frr = np.mean(genuine < threshold) if len(genuine) else 0.0
    else:
        far = np.mean(impostor <= threshold) if len(impostor) else 0.0
        frr = np.mean(genuine > threshold) if len(genuine) else 0.0

    return {'far': float(far), 'frr': float(frr)}


def evaluate_scores(
    genuine: Sequence[float],
    impostor: Sequence[float],
    higher_is_better: bool = True
) -> EvaluationResult:
    """
    计算ROC曲线上的FAR/FRR与EER

    Args:
        genuine: 真实用户得分
        impostor: 冒名者得分
        higher_is_better: 得分方向

    Returns:
        EvaluationResult
    """
    genuine = np.asarray(genuine, dtype=np.float64)
    impostor = np.asarray(impostor, dtype=np.float64)
    if len(genuine) == 0 or len(impostor) == 0:
        raise ValueError("genuine 和 impostor 得分都不能为空")

    y_true = np.concatenate([np.ones(len(genuine)), np.zeros(len(impostor))])
    scores = np.concatenate([genuine, impostor])
    if not higher_is_better:
        scores = -scores

    fpr, tpr, thresholds = roc_curve(y_true, scores)
    fnr = 1.0 - tpr

    idx = int(np.nanargmin(np.abs(fnr - fpr)))
    eer = float((fpr[idx] + fnr[idx]) / 2)
    eer_threshold = float(thresholds[idx] if higher_is_better else -thresholds[idx])

    if not higher_is_better:
        thresholds = -thresholds

    return EvaluationResult(
        eer=eer,
        eer_threshold=eer_threshold,
        far=fpr,
        frr=fnr,
        thresholds=thresholds,
        n_genuine=len(genuine),
        n_impostor=len(impostor)
    )
