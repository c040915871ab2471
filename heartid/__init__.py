"""
HeartID - 心跳模式身份认证引擎
==============================

基于心率/心电波形的本地身份认证系统
采用Pan-Tompkins预处理、形态学特征提取、GMM统计建模与安全等级决策

Author: HeartID Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "HeartID Team"
