"""UDP service discovery using ZRE-style beacons."""

from __future__ import annotations

import logging
import random
import socket
import struct
import threading
import time
from collections import OrderedDict
from typing import Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)

UUID_CHARS = "abcdef0123456789"
ZRE_HEADER = b"ZRE\x01"
UUID_SIZE = 16
ZRE_SIZE = len(ZRE_HEADER) + UUID_SIZE + 2
DEFAULT_MAX_AGE = 60
MAX_DATAGRAM = 255

Services = Dict[str, str]


def rand_uuid(size: int) -> str:
    """Random identifier made of lower-case hex characters."""
    return "".join(random.choice(UUID_CHARS) for _ in range(size))


def encode_zre(uuid: Union[str, bytes], service_port: int) -> bytes:
    """Build the 22-byte beacon: header, 16-byte uuid, port in network order."""
    raw = uuid.encode("latin-1") if isinstance(uuid, str) else bytes(uuid)
    if len(raw) != UUID_SIZE:
        raise ValueError(f"uuid must be {UUID_SIZE} bytes, got {len(raw)}")
    return ZRE_HEADER + raw + struct.pack("!H", service_port)


def decode_zre(frame: bytes, ip: str) -> Optional[Tuple[str, str]]:
    """Return ``(endpoint, uuid)`` for a well-formed beacon, else None."""
    if len(frame) != ZRE_SIZE or not frame.startswith(ZRE_HEADER):
        return None
    uuid = frame[4:20].decode("latin-1")
    (port,) = struct.unpack("!H", frame[20:22])
    return f"tcp://{ip}:{port}", uuid


class Clique:
    """Services heard from recently, ordered by when they last checked in."""

    def __init__(self) -> None:
        self.services: Services = {}
        self._punch_card: "OrderedDict[str, float]" = OrderedDict()

    def join(self, endpoint: str, uuid: str, now: Optional[float] = None) -> bool:
        """Check a service in; True when it was not known before."""
        now = time.time() if now is None else now
        joined = endpoint not in self._punch_card
        self._punch_card.pop(endpoint, None)
        self.services[endpoint] = uuid
        self._punch_card[endpoint] = now
        return joined

    def purge(self, max_age: float = DEFAULT_MAX_AGE, now: Optional[float] = None) -> Services:
        """Drop services that have not checked in within ``max_age`` seconds."""
        now = time.time() if now is None else now
        dropped: Services = {}
        for endpoint, stamp in list(self._punch_card.items()):
            if now - stamp < max_age:
                break
            dropped[endpoint] = self.services.pop(endpoint)
            del self._punch_card[endpoint]
        return dropped


def _local_ip() -> str:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        try:
            probe.connect(("10.255.255.255", 1))
            return probe.getsockname()[0]
        except OSError:
            return "127.0.0.1"


class Beacon:
    """Broadcasts this node's service port and tracks services that others broadcast."""

    def __init__(self, discovery_port: int) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind(("", discovery_port))
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise RuntimeError("Beacon not supported") from e
        self._sock = sock
        self.port: int = sock.getsockname()[1]
        self.ip: str = _local_ip()
        self._clique = Clique()
        self._filter: Optional[bytes] = None
        self._stop: Optional[threading.Event] = None
        self._publisher: Optional[threading.Thread] = None

    @property
    def services(self) -> Services:
        return dict(self._clique.services)

    def broadcast(self, service_port: int, interval: int = 1000) -> None:
        """Start announcing ``service_port`` every ``interval`` milliseconds."""
        self.silence()
        payload = encode_zre(rand_uuid(UUID_SIZE), service_port)
        stop = threading.Event()

        def publish() -> None:
            while not stop.is_set():
                try:
                    self._sock.sendto(payload, ("255.255.255.255", self.port))
                except OSError as e:
                    logger.error("Beacon failed to broadcast: %s", e)
                stop.wait(interval / 1000.0)

        self._stop = stop
        self._publisher = threading.Thread(target=publish, daemon=True)
        self._publisher.start()

    def silence(self) -> None:
        """Stop announcing."""
        if self._stop is not None:
            self._stop.set()
        if self._publisher is not None:
            self._publisher.join()
        self._stop = None
        self._publisher = None

    def subscribe(self, filter: Union[str, bytes] = b"") -> None:
        """Start accepting beacons that begin with ``filter``."""
        self._filter = filter.encode("latin-1") if isinstance(filter, str) else bytes(filter)

    def unsubscribe(self) -> None:
        """Stop accepting beacons."""
        self._filter = None

    def update(self, activity: bool = True) -> Tuple[Services, Services]:
        """Take in a waiting beacon if any, then expire silent services; return (joined, dropped)."""
        joined: Services = {}
        if activity:
            try:
                data, address = self._sock.recvfrom(MAX_DATAGRAM)
            except (BlockingIOError, InterruptedError):
                data, address = None, None
            if data is not None and self._filter is not None and data.startswith(self._filter):
                decoded = decode_zre(data, address[0])
                if decoded is not None:
                    endpoint, uuid = decoded
                    if self._clique.join(endpoint, uuid):
                        joined[endpoint] = uuid
        dropped = self._clique.purge()
        return joined, dropped

    def fileno(self) -> int:
        """File descriptor for polling."""
        return self._sock.fileno()

    def close(self) -> None:
        self.silence()
        self._sock.close()

    def __enter__(self) -> "Beacon":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()