"""
心拍分割模块
============

基于R峰位置进行心拍分割
提取单个心拍周期用于形态学特征提取

心拍结构:
---------
P波 -> QRS波群 -> T波
- P波: R峰前约120-200ms
- QRS: R峰±50ms
- T波: R峰后约150-400ms

默认心拍窗口: R峰前200ms到R峰后400ms，
z-score归一化后线性重采样到256点
"""

import numpy as np
from typing import Tuple, List
from loguru import logger


class BeatSegmenter:
    """
    心拍分割器

    将连续信号分割为固定长度、z-score归一化的单个心拍

    Attributes:
        sampling_rate: 采样率 (Hz)
        pre_r: R峰前时间窗口 (秒)
        post_r: R峰后时间窗口 (秒)
        target_length: 重采样目标长度
    """

    def __init__(
        self,
        sampling_rate: float = 250.0,
        pre_r: float = 0.2,
        post_r: float = 0.4,
        target_length: int = 256
    ):
        """
        初始化心拍分割器

        Args:
            sampling_rate: 采样率
            pre_r: R峰前时间窗口 (秒)
            post_r: R峰后时间窗口 (秒)
            target_length: 归一化后的心拍长度 (采样点)
        """
        if target_length < 2:
            raise ValueError(f"target_length 至少为2: {target_length}")

        self.sampling_rate = sampling_rate
        self.pre_r = pre_r
        self.post_r = post_r

        self.pre_samples = int(pre_r * sampling_rate)
        self.post_samples = int(post_r * sampling_rate)
        self.beat_length = self.pre_samples + self.post_samples

        self.target_length = target_length

        logger.debug(f"初始化心拍分割器: pre={pre_r}s, post={post_r}s, "
                    f"beat_length={self.beat_length} -> {target_length} samples")

    @property
    def beat_duration(self) -> float:
        """单个心拍窗口的时长 (秒)"""
        return self.pre_r + self.post_r

    def segment(
        self,
        ecg_signal: np.ndarray,
        r_peaks: np.ndarray
    ) -> Tuple[np.ndarray, List[dict]]:
        """
        分割心拍

        超出信号边界的窗口直接丢弃，不做填充

        Args:
            ecg_signal: 信号
            r_peaks: R峰位置索引

        Returns:
            beats: 心拍数组 (n_beats, target_length)
            beat_info: 每个心拍的信息列表
        """
        ecg_signal = np.asarray(ecg_signal, dtype=np.float64)
        r_peaks = np.asarray(r_peaks, dtype=np.int64)

        beats = []
        beat_info = []

        for i, r_peak in enumerate(r_peaks):
            start = r_peak - self.pre_samples
            end = r_peak + self.post_samples

            if start < 0 or end > len(ecg_signal) or end - start < 2:
                logger.debug(f"心拍 {i} 超出边界，跳过")
                continue

            beat = self.zscore(ecg_signal[start:end])
            beat = self.resample(beat, self.target_length)
            beats.append(beat)

            beat_info.append({
                'index': i,
                'r_peak': int(r_peak),
                'start': int(start),
                'end': int(end),
                'rr_prev': int(r_peaks[i] - r_peaks[i-1]) if i > 0 else None,
                'rr_next': int(r_peaks[i+1] - r_peaks[i]) if i < len(r_peaks)-1 else None
            })

        beats_array = np.array(beats) if beats else np.empty((0, self.target_length))

        logger.debug(f"分割得到 {len(beats)} 个心拍")

        return beats_array, beat_info

    @staticmethod
    def zscore(beat: np.ndarray, eps: float = 1e-6) -> np.ndarray:
        """z-score归一化，标准差下限为eps"""
        mean = np.mean(beat)
        std = max(float(np.std(beat)), eps)
        return (beat - mean) / std

    @staticmethod
    def resample(beat: np.ndarray, target_length: int) -> np.ndarray:
        """
        线性插值重采样到目标长度

        Args:
            beat: 原始心拍
            target_length: 目标长度

        Returns:
            重采样后的心拍
        """
        n = len(beat)
        if n == 0:
            return np.zeros(target_length)
        if n == 1:
            return np.full(target_length, beat[0], dtype=np.float64)

        x_target = np.arange(target_length) * ((n - 1) / (target_length - 1))
        return np.interp(x_target, np.arange(n), beat)

    def filter_abnormal_beats(
        self,
        beats: np.ndarray,
        beat_info: List[dict],
        threshold: float = 2.0
    ) -> Tuple[np.ndarray, List[dict]]:
        """
        过滤异常心拍

        基于与平均心拍的相关系数去除异常心拍 (如早搏、运动伪迹)

        Args:
            beats: 心拍数组
            beat_info: 心拍信息
            threshold: 异常阈值 (标准差倍数)

        Returns:
            filtered_beats: 过滤后的心拍
            filtered_info: 过滤后的信息
        """
        if len(beats) < 10:
            return beats, beat_info

        mean_beat = np.mean(beats, axis=0)
        if np.std(mean_beat) < 1e-12:
            return beats, beat_info

        correlations = np.array([
            np.corrcoef(beat, mean_beat)[0, 1] if np.std(beat) > 1e-12 else 0.0
            for beat in beats
        ])

        mean_corr = np.mean(correlations)
        std_corr = np.std(correlations)

        # 保留相关性高的心拍
        mask = correlations >= (mean_corr - threshold * std_corr)

        filtered_beats = beats[mask]
        filtered_info = [info for info, m in zip(beat_info, mask) if m]

        n_removed = len(beats) - len(filtered_beats)
        logger.info(f"过滤掉 {n_removed} 个异常心拍 ({n_removed/len(beats)*100:.1f}%)")

        return filtered_beats, filtered_info
