"""单向发布通道：把指标快照、状态记录和提醒推送给下游订阅者"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

METRICS = "metrics"
STATE = "state"
ALERT = "alert"

TOPICS = (METRICS, STATE, ALERT)

Subscriber = Callable[[Any], None]


class EmissionChannel:
    """同步按订阅顺序调用回调；订阅者出错只记录日志，不影响管线"""

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {topic: [] for topic in TOPICS}

    def subscribe(self, topic: str, callback: Subscriber) -> Subscriber:
        if topic not in self._subscribers:
            raise ValueError(f"未知主题: {topic}")
        self._subscribers[topic].append(callback)
        return callback

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        try:
            self._subscribers[topic].remove(callback)
        except (KeyError, ValueError):
            logger.debug("取消订阅时未找到回调: %s", topic)

    def publish(self, topic: str, payload: Any) -> None:
        for callback in list(self._subscribers.get(topic, ())):
            try:
                callback(payload)
            except Exception:
                logger.exception("订阅者处理 %s 消息失败", topic)
