"""Thin conveniences over pyzmq sockets used across the server pieces."""

from __future__ import annotations

import random
from typing import Iterable, List, Sequence, Tuple, Union

import zmq

Data = Union[bytes, bytearray, memoryview, str]

PORT_RANGE = (49152, 65535)


def unlimited_socket(context: zmq.Context, socket_type: int) -> zmq.Socket:
    """Create a socket whose send and receive high-water marks are disabled."""
    sock = context.socket(socket_type)
    sock.setsockopt(zmq.SNDHWM, 0)
    sock.setsockopt(zmq.RCVHWM, 0)
    return sock


def recv_all(socket: zmq.Socket, flags: int = 0) -> List[bytes]:
    """Receive every part of the next message; empty when non-blocking and nothing waits."""
    try:
        return socket.recv_multipart(flags)
    except zmq.Again:
        return []


def _as_bytes(data: Data) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def send(socket: zmq.Socket, data: Data, flags: int = 0) -> bool:
    """Send one frame; False when a non-blocking send could not go out."""
    try:
        socket.send(_as_bytes(data), flags)
    except zmq.Again:
        return False
    return True


def send_all(socket: zmq.Socket, messages: Iterable[Data], flags: int = 0) -> int:
    """Send frames as one multipart message and return how many went out."""
    frames = list(messages)
    last = len(frames) - 1
    return sum(
        send(socket, frame, flags | (0 if position == last else zmq.SNDMORE))
        for position, frame in enumerate(frames)
    )


def poll(items: Sequence[Tuple[object, int]], timeout: int = -1) -> List[int]:
    """Poll sockets or file descriptors; return the signalled events for each item in order."""
    poller = zmq.Poller()
    for target, events in items:
        poller.register(target, events)
    ready = dict(poller.poll(None if timeout is None or timeout < 0 else timeout))
    return [ready.get(target, 0) & events for target, events in items]


def random_port() -> int:
    """Pick a random port in the dynamic range."""
    return random.randint(*PORT_RANGE)