from __future__ import annotations

import csv
import io
import logging
from abc import ABC, abstractmethod

import paho.mqtt.client as mqtt

from tag_pipeline.tag_types import StampedTransform


class TransformBroadcaster(ABC):
    """Receives one camera -> tag/bundle transform per detection result."""

    @abstractmethod
    def send_transform(self, transform: StampedTransform) -> None: ...

    def close(self) -> None:
        return None


class NullBroadcaster(TransformBroadcaster):
    def send_transform(self, transform: StampedTransform) -> None:
        return None


class PublisherBroadcaster(TransformBroadcaster):
    """
    Serialize transforms as CSV lines and hand them to a publisher client
    (anything with ``publish(str)``, e.g. an MQTT client).

    Line layout: stamp, parent, child, px, py, pz, qx, qy, qz, qw
    """

    def __init__(self, publisher, logger: logging.Logger | None = None):
        self.publisher = publisher
        self.log = logger or logging.getLogger("tag_camera.broadcast")

    @staticmethod
    def to_line(transform: StampedTransform) -> str:
        buf = io.StringIO()
        csv.writer(buf).writerow([
            transform.stamp,
            transform.parent_frame,
            transform.child_frame,
            *(f"{v:.6f}" for v in transform.position),
            *(f"{v:.6f}" for v in transform.orientation),
        ])
        return buf.getvalue().strip()

    def send_transform(self, transform: StampedTransform) -> None:
        try:
            self.publisher.publish(self.to_line(transform))
        except Exception as e:
            self.log.warning("Transform publish failed for %s: %s", transform.child_frame, e)

    def close(self) -> None:
        close = getattr(self.publisher, "close", None)
        if close is not None:
            close()


class MqttPublisher:
    """Minimal ``publish(str)`` client on top of paho-mqtt, one fixed topic."""

    def __init__(self, broker_ip: str, topic: str, broker_port: int = 1883, keepalive: int = 60):
        self.topic = topic
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self.client.connect(broker_ip, broker_port, keepalive)
        self.client.loop_start()

    def publish(self, line: str) -> None:
        self.client.publish(self.topic, line)

    def close(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
