"""
Pytest配置与共享fixture

合成波形、BPM序列与内存模板存储
"""
import os
import sys
from pathlib import Path

import numpy as np
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from heartid.storage import InMemoryTemplateStore
from heartid.utils.synthetic import SubjectProfile, subject_profile, synthetic_ecg


SAMPLING_RATE = 250.0

SCENARIO_A = [72, 74, 73, 75, 71, 76, 74, 72, 73]
SCENARIO_B_ENROLLED = [70, 72, 74, 73, 71, 75, 72, 70]
SCENARIO_B_LIVE = [100, 105, 102, 108, 110, 106, 104, 103]


@pytest.fixture
def sampling_rate() -> float:
    return SAMPLING_RATE


@pytest.fixture
def ecg_signal() -> np.ndarray:
    """20秒, 72 BPM 的合成心电"""
    return synthetic_ecg(duration=20.0, sampling_rate=SAMPLING_RATE,
                         profile=SubjectProfile(), seed=7)


@pytest.fixture
def repeat_ecg() -> np.ndarray:
    """同一受试者的另一段记录 (噪声不同)"""
    return synthetic_ecg(duration=20.0, sampling_rate=SAMPLING_RATE,
                         profile=SubjectProfile(), seed=8)


@pytest.fixture
def other_subject_ecg() -> np.ndarray:
    return synthetic_ecg(duration=20.0, sampling_rate=SAMPLING_RATE,
                         profile=subject_profile(3), seed=11)


@pytest.fixture
def bpm_series() -> list:
    return list(SCENARIO_A)


@pytest.fixture
def memory_store() -> InMemoryTemplateStore:
    return InMemoryTemplateStore()


@pytest.fixture
def rich_vectors() -> np.ndarray:
    """30个18维特征向量"""
    rng = np.random.default_rng(42)
    return rng.normal(loc=1.0, scale=0.5, size=(30, 18))
