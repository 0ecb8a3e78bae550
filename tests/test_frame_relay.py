import logging
import threading
import time

import numpy as np
import pytest

from camera_bridge.services.frame_relay import FrameRelay

WIDTH = 8
HEIGHT = 6
FRAME_BYTES = WIDTH * HEIGHT * 3 // 2


def _raw(value: int) -> bytes:
    return bytes([value]) * FRAME_BYTES


def test_delivered_slots_alternate(waiter):
    delivered = []
    done = threading.Event()

    def deliver(frame):
        delivered.append(frame.slot)
        done.set()

    relay = FrameRelay(WIDTH, HEIGHT, deliver)
    relay.start()
    try:
        for value in range(8):
            done.clear()
            relay.on_frame_ready(_raw(value))
            assert done.wait(2.0)
    finally:
        relay.stop()
        assert relay.join(2.0)

    assert delivered == [0, 1, 0, 1, 0, 1, 0, 1]


def test_delivered_frame_carries_produced_bytes(waiter):
    seen = []
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: seen.append(frame.yuv.copy()))
    relay.start()
    try:
        relay.on_frame_ready(bytearray(_raw(42)))
        assert waiter(lambda: len(seen) == 1)
    finally:
        relay.stop()
        relay.join(2.0)

    assert seen[0].shape == (HEIGHT + HEIGHT // 2, WIDTH)
    assert np.all(seen[0] == 42)


def test_slow_consumer_sees_whole_frames_in_order(waiter):
    observed = []
    torn = []

    def deliver(frame):
        data = frame.yuv
        first = int(data.flat[0])
        if not np.all(data == first):
            torn.append(first)
        time.sleep(0.003)
        if not np.all(data == first):
            torn.append(first)
        observed.append(first)

    relay = FrameRelay(WIDTH, HEIGHT, deliver)
    relay.start()
    try:
        for value in range(200):
            relay.on_frame_ready(_raw(value))
            if value % 10 == 0:
                time.sleep(0.001)
        assert waiter(lambda: observed and observed[-1] == 199)
    finally:
        relay.stop()
        assert relay.join(2.0)

    assert torn == []
    assert observed == sorted(observed)
    assert len(observed) == len(set(observed))
    assert len(observed) < 200


def test_stop_without_frames_terminates():
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: None)
    relay.start()
    assert relay.running

    relay.stop()
    assert relay.join(1.0)
    assert not relay.running


def test_stop_racing_with_producer_terminates():
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: time.sleep(0.001))
    relay.start()
    stop_producing = threading.Event()

    def produce():
        value = 0
        while not stop_producing.is_set():
            relay.on_frame_ready(_raw(value % 256))
            value += 1

    producer = threading.Thread(target=produce)
    producer.start()
    try:
        time.sleep(0.02)
        relay.stop()
        assert relay.join(1.0)
    finally:
        stop_producing.set()
        producer.join(1.0)


def test_frames_after_stop_are_not_delivered():
    delivered = []
    relay = FrameRelay(WIDTH, HEIGHT, delivered.append)
    relay.start()
    relay.stop()
    assert relay.join(1.0)

    relay.on_frame_ready(_raw(1))
    time.sleep(0.02)
    assert delivered == []


def test_short_buffer_is_rejected():
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: None)
    with pytest.raises(ValueError):
        relay.on_frame_ready(b"\x00" * (FRAME_BYTES - 1))


def test_longer_buffer_is_truncated_to_frame(waiter):
    seen = []
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: seen.append(frame.yuv.copy()))
    relay.start()
    try:
        relay.on_frame_ready(_raw(9) + b"\xff" * 16)
        assert waiter(lambda: len(seen) == 1)
    finally:
        relay.stop()
        relay.join(1.0)
    assert np.all(seen[0] == 9)


def test_delivery_errors_are_logged_and_loop_continues(caplog, waiter):
    calls = []

    def deliver(frame):
        calls.append(frame.slot)
        if len(calls) == 1:
            raise RuntimeError("consumer blew up")

    relay = FrameRelay(WIDTH, HEIGHT, deliver)
    relay.start()
    try:
        with caplog.at_level(logging.ERROR, logger="camera-bridge.relay"):
            relay.on_frame_ready(_raw(1))
            assert waiter(lambda: len(calls) == 1)
            relay.on_frame_ready(_raw(2))
            assert waiter(lambda: len(calls) == 2)
    finally:
        relay.stop()
        relay.join(1.0)

    assert "Frame delivery failed" in caplog.text


def test_chain_index_starts_at_zero_and_flips_per_delivery(waiter):
    delivered = []
    relay = FrameRelay(WIDTH, HEIGHT, lambda frame: delivered.append(frame.slot))
    assert relay.chain_index == 0
    relay.start()
    try:
        relay.on_frame_ready(_raw(3))
        assert waiter(lambda: len(delivered) == 1)
        assert relay.chain_index == 1
    finally:
        relay.stop()
        relay.join(1.0)
