#!/usr/bin/env python3
"""
HeartID心跳身份认证 - 命令行入口
================================

使用方法:
---------
1. 注册:     python main.py enroll --input rec1.csv rec2.csv --key alice
2. 认证:     python main.py authenticate --input live.csv --key alice --level high
3. 撤销:     python main.py revoke --key alice
4. 策略表:   python main.py policy
5. 评估:     python main.py evaluate --subjects 6
6. 演示:     python main.py demo
7. 可视化:   python main.py plot --input rec1.csv --output figures/preprocessing.png
"""

import os
import sys
import json
import asyncio
import argparse
from datetime import datetime
from loguru import logger

from heartid.config import EngineConfig, load_config
from heartid.engine import HeartIDEngine
from heartid.features import FeaturePolicy
from heartid.capture import CaptureSession, SimulatedSensor
from heartid.matching import MatchOutcome
from heartid.security import SecurityLevel
from heartid.storage import FileTemplateStore
from heartid.utils.exceptions import HeartIDError
from heartid.utils.data_loader import RecordingLoader
from heartid.utils.evaluation import evaluate_scores
from heartid.utils.synthetic import subject_profile, synthetic_bpm, synthetic_ecg


def setup_logging(verbose: bool = False, log_dir: str = "logs"):
    """配置日志: 彩色终端输出 + 按天轮转的文件日志"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level="DEBUG" if verbose else "INFO"
    )
    os.makedirs(log_dir, exist_ok=True)
    logger.add(
        os.path.join(log_dir, "heartid_{time:YYYY-MM-DD}.log"),
        rotation="1 day",
        retention="7 days",
        level="DEBUG"
    )


def build_engine(args) -> HeartIDEngine:
    config = load_config(args.config) if args.config else EngineConfig()
    if args.policy_name:
        config.features.policy = FeaturePolicy.parse(args.policy_name)
    if args.fs:
        config.preprocessing.sampling_rate = args.fs
    return HeartIDEngine(config, store=FileTemplateStore(args.store))


def load_input(engine: HeartIDEngine, loader: RecordingLoader, filename: str, column=None):
    """RICH 读取波形, LIGHTWEIGHT 读取BPM采样窗口"""
    if engine.feature_policy == FeaturePolicy.RICH:
        return loader.load_waveform(filename, column=column)
    return loader.load_samples(filename, column=column)


def print_json(data: dict):
    print(json.dumps(data, ensure_ascii=False, indent=2))


def cmd_enroll(args) -> int:
    engine = build_engine(args)
    loader = RecordingLoader(args.data_dir)
    batches = [load_input(engine, loader, f, args.column) for f in args.input]

    model = engine.enroll(batches, key=args.key)
    print_json({'key': args.key, 'policy': model.policy.value, 'enrolled': True})
    return 0


def cmd_authenticate(args) -> int:
    engine = build_engine(args)
    loader = RecordingLoader(args.data_dir)
    samples = load_input(engine, loader, args.input, args.column)

    decision = engine.authenticate(samples, level=args.level, key=args.key, attempt=args.attempt)
    print_json(decision.to_dict())

    if decision.outcome == MatchOutcome.ACCEPTED:
        return 0
    return 2 if decision.outcome == MatchOutcome.ERROR else 1


def cmd_revoke(args) -> int:
    engine = build_engine(args)
    removed = engine.revoke(args.key)
    print_json({'key': args.key, 'revoked': removed})
    return 0


def cmd_policy(args) -> int:
    config = load_config(args.config) if args.config else EngineConfig()
    table = config.policy_table()
    if args.level:
        level = SecurityLevel.parse(args.level)
        print_json({level.label: table.policy_for(level).to_dict()})
    else:
        print_json(table.to_dict())
    return 0


def _synthetic_recording(policy: FeaturePolicy, subject: int, seed: int, fs: float):
    profile = subject_profile(subject)
    if policy == FeaturePolicy.RICH:
        return synthetic_ecg(duration=20.0, sampling_rate=fs, profile=profile, seed=seed)
    return synthetic_bpm(n_samples=16, mean=profile.heart_rate, stdev=2.0, seed=seed)


def cmd_evaluate(args) -> int:
    """合成被试上的真实用户/冒名者评估"""
    config = load_config(args.config) if args.config else EngineConfig()
    if args.policy_name:
        config.features.policy = FeaturePolicy.parse(args.policy_name)
    engine = HeartIDEngine(config)
    policy = engine.feature_policy
    fs = config.preprocessing.sampling_rate

    logger.info("=" * 60)
    logger.info(f"合成数据评估: {args.subjects} 个被试, policy={policy.value}")
    logger.info(f"启动时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 60)

    models = {}
    for subject in range(args.subjects):
        n_batches = 1 if policy == FeaturePolicy.LIGHTWEIGHT else 2
        batches = [_synthetic_recording(policy, subject, seed=100 * subject + i, fs=fs)
                   for i in range(n_batches)]
        models[subject] = engine.train([engine.extract_features(b) for b in batches])

    genuine, impostor = [], []
    for subject, model in models.items():
        for attempt in range(args.attempts):
            for probe in range(args.subjects):
                live = engine.extract_features(
                    _synthetic_recording(policy, probe, seed=100 * probe + 50 + attempt, fs=fs))
                decision = engine.match(live, model, level=args.level)
                if decision.outcome == MatchOutcome.ERROR:
                    continue
                (genuine if probe == subject else impostor).append(decision.score)

    result = evaluate_scores(genuine, impostor, higher_is_better=(policy == FeaturePolicy.RICH))
    print_json(result.summary())

    if args.output:
        from heartid.utils.visualization import plot_score_distribution
        plot_score_distribution(genuine, impostor, threshold=result.eer_threshold,
                                save_path=args.output,
                                xlabel='Vote ratio' if policy == FeaturePolicy.RICH else 'Distance')
    return 0


def cmd_demo(args) -> int:
    """模拟传感器采集 -> 注册 -> 认证"""
    config = load_config(args.config) if args.config else EngineConfig()
    if args.policy_name:
        config.features.policy = FeaturePolicy.parse(args.policy_name)
    engine = HeartIDEngine(config)
    policy = engine.feature_policy
    fs = config.preprocessing.sampling_rate
    level = SecurityLevel.parse(args.level)

    async def capture(values, interval):
        session = CaptureSession(SimulatedSensor(values, sampling_interval=interval))
        return await session.capture(len(values) * interval + 1.0)

    interval = 1.0 if policy == FeaturePolicy.LIGHTWEIGHT else 1.0 / fs
    enroll_window = asyncio.run(capture(_synthetic_recording(policy, 0, 1, fs), interval))
    engine.enroll([enroll_window], key='demo')

    for name, subject, seed in (('genuine', 0, 2), ('impostor', 3, 2)):
        window = asyncio.run(capture(_synthetic_recording(policy, subject, seed, fs), interval))
        decision = engine.authenticate(window, level=level, key='demo')
        logger.info(f"{name}: {decision.outcome.value} (confidence {decision.confidence:.2f})")
        print_json({'probe': name, **decision.to_dict()})

    engine.revoke('demo')
    return 0


def cmd_plot(args) -> int:
    from heartid.preprocessing import SignalPreprocessor, PreprocessingConfig
    from heartid.utils.visualization import plot_preprocessing, set_dark_style

    fs = args.fs if args.fs else 250.0
    if args.input:
        signal = RecordingLoader(args.data_dir).load_waveform(args.input, column=args.column)
    else:
        signal = synthetic_ecg(duration=10.0, sampling_rate=fs, seed=0)

    result = SignalPreprocessor(PreprocessingConfig(sampling_rate=fs)).process(signal)
    set_dark_style()
    plot_preprocessing(result, fs, save_path=args.output)
    return 0


def main(argv=None) -> int:
    """
    主函数
    """
    parser = argparse.ArgumentParser(description='HeartID心跳身份认证')
    parser.add_argument('--config', help='JSON配置文件')
    parser.add_argument('--store', default=os.path.expanduser('~/.heartid'), help='模板存储目录')
    parser.add_argument('--data-dir', default='.', help='数据目录')
    parser.add_argument('--policy', dest='policy_name', choices=[p.value for p in FeaturePolicy],
                        help='特征策略')
    parser.add_argument('--fs', type=float, help='采样率 (Hz)')
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('enroll', help='注册')
    p.add_argument('--input', nargs='+', required=True, help='注册记录 (CSV)')
    p.add_argument('--key', default='default')
    p.add_argument('--column', help='数值列名')
    p.set_defaults(func=cmd_enroll)

    p = sub.add_parser('authenticate', help='认证')
    p.add_argument('--input', required=True, help='实时记录 (CSV)')
    p.add_argument('--key', default='default')
    p.add_argument('--column', help='数值列名')
    p.add_argument('--level', default='medium', choices=[lvl.label for lvl in SecurityLevel])
    p.add_argument('--attempt', type=int, default=0, help='已使用的重试次数')
    p.set_defaults(func=cmd_authenticate)

    p = sub.add_parser('revoke', help='撤销注册')
    p.add_argument('--key', default='default')
    p.set_defaults(func=cmd_revoke)

    p = sub.add_parser('policy', help='显示安全策略表')
    p.add_argument('--level', choices=[lvl.label for lvl in SecurityLevel])
    p.set_defaults(func=cmd_policy)

    p = sub.add_parser('evaluate', help='合成数据FAR/FRR/EER评估')
    p.add_argument('--subjects', type=int, default=5)
    p.add_argument('--attempts', type=int, default=2)
    p.add_argument('--level', default='low', choices=[lvl.label for lvl in SecurityLevel])
    p.add_argument('--output', help='得分分布图保存路径')
    p.set_defaults(func=cmd_evaluate)

    p = sub.add_parser('demo', help='模拟采集的端到端演示')
    p.add_argument('--level', default='low', choices=[lvl.label for lvl in SecurityLevel])
    p.set_defaults(func=cmd_demo)

    p = sub.add_parser('plot', help='预处理流程可视化')
    p.add_argument('--input', help='波形记录 (CSV, 为空时使用合成信号)')
    p.add_argument('--column', help='数值列名')
    p.add_argument('--output', default='figures/preprocessing.png')
    p.set_defaults(func=cmd_plot)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except HeartIDError as e:
        logger.error(f"{e.code}: {e.message}")
        print_json(e.to_dict())
        return 2


if __name__ == '__main__':
    sys.exit(main())
