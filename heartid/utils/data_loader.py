"""
数据加载模块
============

从CSV文件加载BPM或波形记录

CSV格式:
- 数值列 (默认 'value', 或指定列名/第一个数值列)
- 可选时间戳列 (默认 'timestamp', 秒)
- 可选质量列 (默认 'quality', 0-1)
"""

import os
import pandas as pd
import numpy as np
from typing import List, Optional
from loguru import logger

from ..capture.samples import RawSample, SampleWindow


class RecordingLoader:
    """
    记录加载器

    Usage:
        loader = RecordingLoader('recordings')
        window = loader.load_samples('alice_bpm.csv')
        ecg = loader.load_waveform('alice_ecg.csv', column='Channel 1')
    """

    def __init__(self, data_dir: str = '.'):
        """
        Args:
            data_dir: 相对路径的基准目录
        """
        self.data_dir = data_dir

    def _resolve(self, filename: str) -> str:
        if os.path.isabs(filename) or os.path.exists(filename):
            return filename
        return os.path.join(self.data_dir, filename)

    def list_recordings(self) -> List[str]:
        """列出数据目录下的CSV文件"""
        if not os.path.isdir(self.data_dir):
            logger.error(f"数据目录不存在: {self.data_dir}")
            return []
        files = sorted(f for f in os.listdir(self.data_dir) if f.endswith('.csv'))
        logger.info(f"发现 {len(files)} 个数据文件")
        return files

    def read_frame(self, filename: str) -> pd.DataFrame:
        path = self._resolve(filename)
        df = pd.read_csv(path)
        logger.info(f"加载 {os.path.basename(path)}: {len(df)} 行")
        return df

    @staticmethod
    def _value_column(df: pd.DataFrame, column: Optional[str]) -> str:
        if column:
            if column not in df.columns:
                raise KeyError(f"列不存在: {column} (可用: {list(df.columns)})")
            return column
        if 'value' in df.columns:
            return 'value'
        numeric = [c for c in df.select_dtypes(include=[np.number]).columns
                   if c not in ('timestamp', 'quality')]
        if not numeric:
            raise KeyError("CSV中没有数值列")
        return numeric[0]

    def load_samples(
        self,
        filename: str,
        column: Optional[str] = None,
        sampling_interval: float = 1.0
    ) -> SampleWindow:
        """
        加载为采集窗口

        Args:
            filename: CSV文件
            column: 数值列名
            sampling_interval: 缺少时间戳列时的采样间隔 (秒)

        Returns:
            SampleWindow
        """
        df = self.read_frame(filename)
        col = self._value_column(df, column)
        values = df[col].astype(float).to_numpy()

        if 'timestamp' in df.columns:
            timestamps = df['timestamp'].astype(float).to_numpy()
        else:
            timestamps = np.arange(len(values)) * sampling_interval

        quality = df['quality'].astype(float).clip(0.0, 1.0).to_numpy() \
            if 'quality' in df.columns else np.ones(len(values))

        samples = [
            RawSample(value=float(v), timestamp=float(ts), quality=float(q))
            for v, ts, q in zip(values, timestamps, quality)
        ]
        duration = float(timestamps[-1] - timestamps[0]) if len(timestamps) > 1 else 0.0
        return SampleWindow(samples=samples, requested_duration=duration)

    def load_waveform(self, filename: str, column: Optional[str] = None) -> np.ndarray:
        """加载波形数值列"""
        df = self.read_frame(filename)
        return df[self._value_column(df, column)].astype(float).to_numpy()

    def estimate_sampling_rate(self, filename: str, default: float = 250.0) -> float:
        """
        由时间戳列估计采样率

        Returns:
            采样率 (Hz), 无时间戳时返回默认值
        """
        df = self.read_frame(filename)
        if 'timestamp' not in df.columns or len(df) < 2:
            return default

        timestamps = df['timestamp'].astype(float).to_numpy()
        time_span = timestamps.max() - timestamps.min()
        return float(len(df) / time_span) if time_span > 0 else default

    @staticmethod
    def save_samples(window: SampleWindow, path: str) -> None:
        """将采集窗口保存为CSV"""
        df = pd.DataFrame({
            'timestamp': [s.timestamp for s in window.samples],
            'value': [s.value for s in window.samples],
            'quality': [s.quality for s in window.samples]
        })
        df.to_csv(path, index=False)
        logger.info(f"已保存 {len(df)} 个样本: {path}")
