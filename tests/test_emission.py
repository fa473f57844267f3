"""EmissionChannel 单元测试"""

from unittest.mock import MagicMock

import pytest

from pipeline.emission import ALERT, METRICS, STATE, EmissionChannel


class TestEmissionChannel:

    def test_publish_in_subscription_order(self):
        channel = EmissionChannel()
        calls = []
        channel.subscribe(STATE, lambda p: calls.append(("a", p)))
        channel.subscribe(STATE, lambda p: calls.append(("b", p)))
        channel.publish(STATE, 1)
        assert calls == [("a", 1), ("b", 1)]

    def test_topics_are_separate(self):
        channel = EmissionChannel()
        metrics = MagicMock()
        channel.subscribe(METRICS, metrics)
        channel.publish(ALERT, "x")
        metrics.assert_not_called()

    def test_unknown_topic_rejected(self):
        with pytest.raises(ValueError):
            EmissionChannel().subscribe("video", print)

    def test_failing_subscriber_does_not_stop_others(self, caplog):
        """订阅者抛出异常时记录日志，后续订阅者照常收到消息"""
        channel = EmissionChannel()
        channel.subscribe(STATE, MagicMock(side_effect=RuntimeError("boom")))
        after = MagicMock()
        channel.subscribe(STATE, after)

        channel.publish(STATE, "payload")

        after.assert_called_once_with("payload")
        assert "订阅者处理 state 消息失败" in caplog.text

    def test_unsubscribe(self):
        channel = EmissionChannel()
        callback = MagicMock()
        channel.subscribe(METRICS, callback)
        channel.unsubscribe(METRICS, callback)
        channel.publish(METRICS, 1)
        callback.assert_not_called()

        # 重复取消不报错
        channel.unsubscribe(METRICS, callback)
