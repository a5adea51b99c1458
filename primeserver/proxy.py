"""Load balancer that hands each request to a worker that has advertised it is idle."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, List, Optional, Sequence

import zmq

from .quiesce import shutting_down
from .zmqtools import poll, recv_all, send, send_all, unlimited_socket

logger = logging.getLogger(__name__)

_MAX_POLL_MS = 250

ChooseFunction = Callable[[List[bytes], List[bytes]], Optional[int]]


class Proxy:
    """Routes requests from an upstream socket to idle workers on a downstream socket.

    Workers advertise by sending a heart beat.  They are kept in the order in
    which they first advertised.  A request goes to the worker that
    ``choose_function(heart_beats, messages)`` picks by index.  When there is
    no chooser, or it returns nothing usable, the request goes to the worker
    that has waited longest.  A worker that gets a request is forgotten until
    it advertises again.
    """

    def __init__(
        self,
        context: zmq.Context,
        upstream_endpoint: str,
        downstream_endpoint: str,
        choose_function: Optional[ChooseFunction] = None,
    ) -> None:
        self.choose_function = choose_function
        self.workers: "OrderedDict[bytes, bytes]" = OrderedDict()
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._closed = False

        self.upstream = unlimited_socket(context, zmq.ROUTER)
        self.upstream.bind(upstream_endpoint)

        self.downstream = unlimited_socket(context, zmq.ROUTER)
        self.downstream.bind(downstream_endpoint)

    def expire(self) -> int:
        """Number of sockets worth polling: requests wait upstream while no worker is idle."""
        return int(bool(self.workers)) + 1

    def handle_worker(self, messages: Sequence[bytes]) -> None:
        """Record a worker's advertisement: ``[address, heart_beat]``."""
        if len(messages) < 2:
            raise ValueError("Worker advertisement needs an address and a heart beat")
        # assigning an existing key keeps its place in the queue
        self.workers[bytes(messages[0])] = bytes(messages[1])

    def handle_request(self, messages: Sequence[bytes]) -> bytes:
        """Forward ``[sender, info, *payload]`` to a chosen idle worker; return its address."""
        if len(messages) < 2:
            raise ValueError("Request needs a sender and a request info frame")
        if not self.workers:
            raise RuntimeError("No workers available")
        info = messages[1]
        payload = list(messages[2:])
        addresses = list(self.workers)

        chosen = None
        if self.choose_function is not None:
            chosen = self.choose_function(list(self.workers.values()), payload)
        if (
            not isinstance(chosen, int)
            or isinstance(chosen, bool)
            or not 0 <= chosen < len(addresses)
        ):
            chosen = 0
        address = addresses[chosen]

        if not (
            send(self.downstream, address, zmq.DONTWAIT | zmq.SNDMORE)
            and send_all(self.downstream, [info, *payload], zmq.DONTWAIT)
        ):
            logger.error("Failed to forward job to worker")
        # the worker is busy until it reports back
        del self.workers[address]
        return address

    def forward(self) -> None:
        """Keep forwarding requests to workers until closed or shutting down."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Proxy is closed")
            while not self._stop.is_set() and not shutting_down():
                items = [(self.downstream, zmq.POLLIN), (self.upstream, zmq.POLLIN)]
                events = poll(items[: self.expire()], _MAX_POLL_MS)

                if events[0]:
                    try:
                        self.handle_worker(recv_all(self.downstream, zmq.DONTWAIT))
                    except Exception as e:  # noqa: BLE001 - the loop must survive
                        logger.error("proxy: %s", e)

                if len(events) > 1 and events[1]:
                    try:
                        self.handle_request(recv_all(self.upstream, zmq.DONTWAIT))
                    except Exception as e:  # noqa: BLE001 - the loop must survive
                        logger.error("proxy: %s", e)

    def close(self) -> None:
        """Stop forwarding and close the sockets."""
        self._stop.set()
        with self._lock:
            if self._closed:
                return
            for sock in (self.upstream, self.downstream):
                sock.close(linger=0)
            self._closed = True

    def __enter__(self) -> "Proxy":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()