"""
可视化模块
==========

- 预处理流程图: 原始信号 / 基线校正 / QRS带通与包络 / 心拍叠加
- 得分分布图: 真实用户与冒名者得分直方图及判决阈值
"""

import os
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.gridspec as gridspec
from typing import Optional, Sequence
from loguru import logger

from ..preprocessing import PreprocessingResult


COLORS = {
    'primary': '#00ff9f',
    'secondary': '#00ffff',
    'accent': '#ff00ff',
    'warning': '#ffff00',
    'danger': '#ff6b6b'
}


def set_dark_style():
    """设置深色主题样式"""
    plt.style.use('dark_background')
    plt.rcParams.update({
        'figure.facecolor': '#0a0a0f',
        'axes.facecolor': '#0a0a0f',
        'axes.edgecolor': '#333333',
        'axes.labelcolor': COLORS['secondary'],
        'text.color': '#e0e0e0',
        'xtick.color': '#808080',
        'ytick.color': '#808080',
        'grid.color': '#1a1a2e',
        'grid.alpha': 0.5,
        'lines.linewidth': 1.0,
        'savefig.dpi': 150,
        'savefig.facecolor': '#0a0a0f'
    })


def _save(fig, save_path: Optional[str]):
    if save_path:
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(save_path, bbox_inches='tight')
        logger.info(f"图像已保存: {save_path}")
        plt.close(fig)


def plot_preprocessing(
    result: PreprocessingResult,
    sampling_rate: float,
    save_path: Optional[str] = None,
    title: str = 'Heartbeat Preprocessing'
):
    """
    绘制预处理各阶段

    Args:
        result: 预处理结果
        sampling_rate: 采样率
        save_path: 保存路径 (为空时不保存)
        title: 图标题

    Returns:
        matplotlib Figure
    """
    fig = plt.figure(figsize=(16, 12))
    gs = gridspec.GridSpec(4, 2, figure=fig)
    t = np.arange(len(result.raw_signal)) / sampling_rate

    ax1 = fig.add_subplot(gs[0, :])
    ax1.plot(t, result.raw_signal, color=COLORS['danger'], linewidth=0.6, label='Raw')
    if len(result.baseline_corrected):
        ax1.plot(t, result.baseline_corrected, color=COLORS['primary'], linewidth=0.6,
                 label='Baseline corrected')
    ax1.set_title(title, fontsize=14, color=COLORS['secondary'])
    ax1.set_ylabel('Amplitude')
    ax1.legend(loc='upper right')
    ax1.grid(True, alpha=0.3)

    ax2 = fig.add_subplot(gs[1, :], sharex=ax1)
    if len(result.filtered_signal):
        ax2.plot(t, result.filtered_signal, color=COLORS['primary'], linewidth=0.6)
        if len(result.r_peaks):
            ax2.scatter(t[result.r_peaks], result.filtered_signal[result.r_peaks],
                        color=COLORS['accent'], s=20, zorder=3, label='R peaks')
            ax2.legend(loc='upper right')
    ax2.set_title('QRS Band (5-15 Hz)', fontsize=12, color=COLORS['secondary'])
    ax2.grid(True, alpha=0.3)

    ax3 = fig.add_subplot(gs[2, :], sharex=ax1)
    if len(result.envelope):
        ax3.plot(t, result.envelope, color=COLORS['warning'], linewidth=0.8)
    ax3.set_title('Integrated Envelope', fontsize=12, color=COLORS['secondary'])
    ax3.set_xlabel('Time (s)')
    ax3.grid(True, alpha=0.3)

    ax4 = fig.add_subplot(gs[3, 0])
    for beat in result.beats:
        ax4.plot(beat, color=COLORS['primary'], linewidth=0.5, alpha=0.4)
    if len(result.beats):
        ax4.plot(np.mean(result.beats, axis=0), color=COLORS['accent'], linewidth=1.5,
                 label='Mean beat')
        ax4.legend(loc='upper right')
    ax4.set_title(f'Beats Overlay (n={result.n_beats})', fontsize=12, color=COLORS['secondary'])
    ax4.grid(True, alpha=0.3)

    ax5 = fig.add_subplot(gs[3, 1])
    if len(result.rr_intervals):
        ax5.plot(result.rr_intervals, marker='o', color=COLORS['secondary'], linewidth=0.8)
    ax5.set_title(f'RR Intervals (HR {result.heart_rate:.1f} BPM, '
                  f'quality {result.signal_quality:.2f})', fontsize=12, color=COLORS['secondary'])
    ax5.set_ylabel('ms')
    ax5.grid(True, alpha=0.3)

    fig.tight_layout()
    _save(fig, save_path)
    return fig


def plot_score_distribution(
    genuine: Sequence[float],
    impostor: Sequence[float],
    threshold: Optional[float] = None,
    save_path: Optional[str] = None,
    xlabel: str = 'Score'
):
    """
    绘制真实用户/冒名者得分分布

    Returns:
        matplotlib Figure
    """
    fig, ax = plt.subplots(figsize=(10, 6))
    all_scores = np.concatenate([np.asarray(genuine, float), np.asarray(impostor, float)])
    bins = np.linspace(np.min(all_scores), np.max(all_scores), 30) if len(all_scores) else 10

    ax.hist(genuine, bins=bins, color=COLORS['primary'], alpha=0.6, label='Genuine')
    ax.hist(impostor, bins=bins, color=COLORS['danger'], alpha=0.6, label='Impostor')
    if threshold is not None:
        ax.axvline(threshold, color=COLORS['warning'], linestyle='--', label=f'Threshold {threshold:.3f}')

    ax.set_title('Score Distribution', fontsize=14, color=COLORS['secondary'])
    ax.set_xlabel(xlabel)
    ax.set_ylabel('Count')
    ax.legend(loc='upper right')
    ax.grid(True, alpha=0.3)

    fig.tight_layout()
    _save(fig, save_path)
    return fig
