"""
Model persistence hooks.

The detector only needs load_model() and save_model(). The default store is
a no-op; the Redis store keeps the latest snapshot as JSON with a TTL.
"""

import json
from typing import Optional, Protocol

import redis
import structlog

from .models import RedisConfig
from .snapshot import TrainedModel

logger = structlog.get_logger(__name__)


class ModelStore(Protocol):
    """Persistence collaborator for trained models"""

    def load_model(self) -> Optional[TrainedModel]: ...

    def save_model(self, model: TrainedModel) -> bool: ...


class NullModelStore:
    """Store that never has a model and discards saves"""

    def load_model(self) -> Optional[TrainedModel]:
        logger.debug("No model store configured, skipping load")
        return None

    def save_model(self, model: TrainedModel) -> bool:
        logger.debug("No model store configured, skipping save")
        return False


class RedisModelStore:
    """Redis backend for trained models"""

    def __init__(self, config: RedisConfig):
        try:
            self.redis = redis.Redis(
                host=config.host,
                port=config.port,
                db=config.db,
                password=config.password,
                decode_responses=True,
            )
            self.ttl = config.ttl_seconds
            self.key = self._make_key(config.model_name)
            self.redis.ping()
            logger.info("Redis model store initialized", host=config.host, port=config.port)
        except Exception as e:
            logger.error("Failed to initialize Redis", error=str(e))
            raise

    def save_model(self, model: TrainedModel) -> bool:
        """Save model to Redis"""
        try:
            self.redis.setex(self.key, self.ttl, json.dumps(model.to_dict()))
            logger.debug("Model saved to Redis", key=self.key)
            return True
        except Exception as e:
            logger.error("Failed to save model to Redis", key=self.key, error=str(e))
            return False

    def load_model(self) -> Optional[TrainedModel]:
        """Load model from Redis"""
        try:
            data = self.redis.get(self.key)
            if data is None:
                return None

            return TrainedModel.from_dict(json.loads(data))

        except Exception as e:
            logger.error("Failed to load model from Redis", key=self.key, error=str(e))
            return None

    @staticmethod
    def _make_key(model_name: str) -> str:
        """Generate Redis key"""
        return f"threat:anomaly:model:{model_name}"
