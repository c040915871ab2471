"""
HeartID认证引擎
===============

上游编排入口:
    采样 -> 特征提取 -> 注册训练 / 匹配判决 -> 模板存储

存储通过构造参数注入, 引擎不持有全局单例
"""

from typing import Optional, Sequence, Union
from loguru import logger

from .config import EngineConfig
from .capture.samples import SampleInput
from .features import FeatureExtractor, FeatureBatch, FeaturePolicy
from .models import EnrollmentTrainer, EnrolledModel
from .matching import HeartMatcher, MatchDecision, ErrorKind
from .security import SecurityLevel, SecurityPolicy
from .storage import TemplateStore, InMemoryTemplateStore, serialize_model, deserialize_model
from .utils.exceptions import ConfigurationError, InsufficientDataError, StorageError


class HeartIDEngine:
    """
    心跳身份认证引擎

    Usage:
        engine = HeartIDEngine(config, store=FileTemplateStore('~/.heartid'))
        engine.enroll([waveform_1, waveform_2], key='alice')
        decision = engine.authenticate(live_waveform, level='high', key='alice')
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[TemplateStore] = None
    ):
        """
        初始化引擎

        Args:
            config: 引擎配置
            store: 模板存储 (默认进程内存储)
        """
        self.config = config if config else EngineConfig()
        self.store = store if store is not None else InMemoryTemplateStore()

        self.policies = self.config.policy_table()
        self.extractor = FeatureExtractor(self.config.features, self.config.preprocessing)
        self.trainer = EnrollmentTrainer(self.config.training)
        self.matcher = HeartMatcher(self.config.matcher, self.policies)

        logger.info(f"HeartID引擎初始化完成: policy={self.feature_policy.value}, "
                    f"默认安全等级={self.config.default_level}, "
                    f"存储={type(self.store).__name__}")

    @property
    def feature_policy(self) -> FeaturePolicy:
        return self.extractor.policy

    def _key(self, key: Optional[str]) -> str:
        return key if key else self.config.storage_key

    def _level(self, level: Union[SecurityLevel, str, None]) -> SecurityLevel:
        return SecurityLevel.parse(level if level is not None else self.config.default_level)

    # ========== 核心操作 ==========

    def extract_features(self, samples: SampleInput) -> Optional[FeatureBatch]:
        """按配置的特征策略提取特征; 数据不足返回None"""
        return self.extractor.extract_features(samples)

    def train(self, batches) -> EnrolledModel:
        """由特征批次训练注册模型"""
        return self.trainer.train(batches)

    def match(
        self,
        live: Optional[FeatureBatch],
        model: Optional[EnrolledModel],
        level: Union[SecurityLevel, str, None] = None,
        attempt: int = 0
    ) -> MatchDecision:
        """比较实时特征与注册模型"""
        return self.matcher.match(
            live, model, level if level is not None else self.config.default_level, attempt
        )

    def policy_for(self, level: Union[SecurityLevel, str, None] = None) -> SecurityPolicy:
        return self.policies.policy_for(self._level(level))

    # ========== 注册 / 认证 ==========

    def enroll(self, batches: Sequence[SampleInput], key: Optional[str] = None) -> EnrolledModel:
        """
        注册: 逐批次提取特征 -> 训练 -> 原子保存

        Args:
            batches: 采样批次列表 (LIGHTWEIGHT 只接受一个批次)
            key: 存储键

        Returns:
            注册模型

        Raises:
            InsufficientDataError: 所有批次数据都不足
            TrainingError / PolicyMismatchError: 训练失败
            StorageError: 保存失败
        """
        key = self._key(key)
        features = []
        for i, samples in enumerate(batches):
            feats = self.extract_features(samples)
            if feats is None:
                logger.warning(f"注册批次 {i} 数据不足, 已跳过")
                continue
            features.append(feats)

        if not features:
            raise InsufficientDataError("注册数据不足, 未保存任何模板",
                                        required=1, available=0,
                                        details={"key": key, "n_batches": len(batches)})

        model = self.train(features)
        self.store.save(serialize_model(model), key)

        logger.info(f"注册完成: key={key}, policy={model.policy.value}")
        return model

    def load_model(self, key: Optional[str] = None) -> Optional[EnrolledModel]:
        """
        读取注册模型

        Returns:
            模型; 未注册时返回None

        Raises:
            CorruptTemplateError / StorageIOError
        """
        key = self._key(key)
        data = self.store.load(key)
        if data is None:
            return None
        return deserialize_model(data, key=key)

    def authenticate(
        self,
        samples: SampleInput,
        level: Union[SecurityLevel, str, None] = None,
        key: Optional[str] = None,
        attempt: int = 0
    ) -> MatchDecision:
        """
        认证: 读取模型 -> 提取实时特征 -> 匹配

        从不抛出异常, 所有失败都以 ERROR 判决返回

        Args:
            samples: 实时采样
            level: 安全等级 (默认配置中的等级)
            key: 存储键
            attempt: 已使用的重试次数

        Returns:
            MatchDecision
        """
        key = self._key(key)
        try:
            model = self.load_model(key)
        except StorageError as e:
            logger.error(f"读取注册模板失败: {e.message}")
            return MatchDecision.error(ErrorKind.STORAGE_FAILURE, e.message)

        if model is None:
            return MatchDecision.error(ErrorKind.NO_ENROLLMENT, f"未注册: {key}")

        try:
            live = self.extract_features(samples)
        except Exception as e:
            logger.exception(f"实时特征提取失败: {e}")
            return MatchDecision.error(ErrorKind.INTERNAL, f"{type(e).__name__}: {e}")

        try:
            level = self._level(level)
        except ConfigurationError as e:
            return MatchDecision.error(ErrorKind.INVALID_INPUT, e.message)

        decision = self.match(live, model, level, attempt)
        logger.info(f"认证结果: key={key}, level={level.label}, "
                    f"outcome={decision.outcome.value}, confidence={decision.confidence:.2f}")
        return decision

    def revoke(self, key: Optional[str] = None) -> bool:
        """删除注册模板; 返回是否存在过"""
        key = self._key(key)
        removed = self.store.revoke(key)
        logger.info(f"撤销注册: key={key}, {'已删除' if removed else '不存在'}")
        return removed

    def is_enrolled(self, key: Optional[str] = None) -> bool:
        return self.store.exists(self._key(key))
