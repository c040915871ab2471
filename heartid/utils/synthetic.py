"""
合成数据生成
============

确定性地生成合成心电波形与BPM序列, 用于测试和演示

波形由每个心拍的 P/Q/R/S/T 五个高斯波叠加而成,
不同被试通过 SubjectProfile 的幅度/宽度/偏移区分
"""

import numpy as np
from typing import Optional
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SubjectProfile:
    """
    被试形态参数

    偏移量相对R峰 (秒), 宽度为高斯标准差 (秒)
    """

    heart_rate: float = 72.0
    rr_jitter: float = 0.03  # RR间期相对抖动

    p_amplitude: float = 0.12
    p_offset: float = -0.16
    p_width: float = 0.025

    q_amplitude: float = -0.12
    q_offset: float = -0.03
    q_width: float = 0.010

    r_amplitude: float = 1.0
    r_width: float = 0.012

    s_amplitude: float = -0.20
    s_offset: float = 0.03
    s_width: float = 0.012

    t_amplitude: float = 0.30
    t_offset: float = 0.28
    t_width: float = 0.050


def subject_profile(subject_id: int) -> SubjectProfile:
    """由被试编号确定性地生成形态参数"""
    rng = np.random.default_rng(1000 + subject_id)
    base = SubjectProfile()

    def jitter(value: float, scale: float) -> float:
        return float(value * (1.0 + scale * rng.uniform(-1.0, 1.0)))

    return replace(
        base,
        heart_rate=float(rng.uniform(60.0, 85.0)),
        p_amplitude=jitter(base.p_amplitude, 0.4),
        q_amplitude=jitter(base.q_amplitude, 0.5),
        r_width=jitter(base.r_width, 0.25),
        s_amplitude=jitter(base.s_amplitude, 0.5),
        t_amplitude=jitter(base.t_amplitude, 0.5),
        t_offset=jitter(base.t_offset, 0.15),
        t_width=jitter(base.t_width, 0.3)
    )


def synthetic_ecg(
    duration: float = 20.0,
    sampling_rate: float = 250.0,
    profile: Optional[SubjectProfile] = None,
    noise_std: float = 0.01,
    baseline_wander: float = 0.05,
    seed: int = 0
) -> np.ndarray:
    """
    生成合成心电波形

    Args:
        duration: 时长 (秒)
        sampling_rate: 采样率 (Hz)
        profile: 被试形态参数
        noise_std: 高斯白噪声标准差
        baseline_wander: 0.25Hz基线漂移幅度
        seed: 随机种子

    Returns:
        波形数组
    """
    profile = profile if profile else SubjectProfile()
    rng = np.random.default_rng(seed)

    n = int(duration * sampling_rate)
    t = np.arange(n) / sampling_rate
    ecg = np.zeros(n)

    waves = [
        (profile.p_amplitude, profile.p_offset, profile.p_width),
        (profile.q_amplitude, profile.q_offset, profile.q_width),
        (profile.r_amplitude, 0.0, profile.r_width),
        (profile.s_amplitude, profile.s_offset, profile.s_width),
        (profile.t_amplitude, profile.t_offset, profile.t_width),
    ]

    mean_rr = 60.0 / profile.heart_rate
    r_time = 0.5
    while r_time < duration:
        for amplitude, offset, width in waves:
            ecg += amplitude * np.exp(-0.5 * ((t - r_time - offset) / width) ** 2)
        r_time += mean_rr * (1.0 + profile.rr_jitter * rng.standard_normal())

    ecg += baseline_wander * np.sin(2 * np.pi * 0.25 * t + rng.uniform(0, 2 * np.pi))
    ecg += noise_std * rng.standard_normal(n)

    return ecg


def synthetic_bpm(
    n_samples: int = 12,
    mean: float = 72.0,
    stdev: float = 2.0,
    seed: int = 0
) -> np.ndarray:
    """
    生成合成BPM序列 (保留一位小数)

    Args:
        n_samples: 样本数
        mean: 平均心率
        stdev: 标准差
        seed: 随机种子
    """
    rng = np.random.default_rng(seed)
    return np.round(mean + stdev * rng.standard_normal(n_samples), 1)
