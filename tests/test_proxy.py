import itertools
import struct
import threading

import pytest
import zmq

from primeserver.proxy import Proxy

_counter = itertools.count()


def _endpoint(name):
    return f"inproc://proxy-test-{name}-{next(_counter)}"


@pytest.fixture
def context():
    ctx = zmq.Context()
    yield ctx
    ctx.destroy(linger=0)


@pytest.fixture
def endpoints():
    return _endpoint("up"), _endpoint("down")


def _recv(sock, timeout=3000):
    assert sock.poll(timeout) == zmq.POLLIN
    return sock.recv_multipart()


def test_expire_depends_on_idle_workers(context, endpoints):
    with Proxy(context, *endpoints) as proxy:
        assert proxy.expire() == 1
        proxy.handle_worker([b"worker-a", b"hb"])
        assert proxy.expire() == 2


def test_workers_kept_in_advertisement_order(context, endpoints):
    with Proxy(context, *endpoints) as proxy:
        proxy.handle_worker([b"worker-a", b"hb-a"])
        proxy.handle_worker([b"worker-b", b"hb-b"])
        proxy.handle_worker([b"worker-a", b"hb-a2"])
        assert list(proxy.workers) == [b"worker-a", b"worker-b"]
        assert proxy.workers[b"worker-a"] == b"hb-a2"


def test_request_goes_to_longest_waiting_worker(context, endpoints):
    with Proxy(context, *endpoints) as proxy:
        proxy.handle_worker([b"worker-a", b"hb-a"])
        proxy.handle_worker([b"worker-b", b"hb-b"])
        chosen = proxy.handle_request([b"sender", b"info", b"payload"])
        assert chosen == b"worker-a"
        assert list(proxy.workers) == [b"worker-b"]


def test_choose_function_picks_worker(context, endpoints):
    seen = []

    def choose(heart_beats, messages):
        seen.append((heart_beats, messages))
        return heart_beats.index(b"hb-b")

    with Proxy(context, *endpoints, choose_function=choose) as proxy:
        proxy.handle_worker([b"worker-a", b"hb-a"])
        proxy.handle_worker([b"worker-b", b"hb-b"])
        chosen = proxy.handle_request([b"sender", b"info", b"p1", b"p2"])
        assert chosen == b"worker-b"
        assert seen == [([b"hb-a", b"hb-b"], [b"p1", b"p2"])]
        assert list(proxy.workers) == [b"worker-a"]


@pytest.mark.parametrize("garbage", [None, 99, -1, "x", True])
def test_unusable_choice_falls_back_to_first(context, endpoints, garbage):
    with Proxy(context, *endpoints, choose_function=lambda hb, m: garbage) as proxy:
        proxy.handle_worker([b"worker-a", b"hb-a"])
        proxy.handle_worker([b"worker-b", b"hb-b"])
        assert proxy.handle_request([b"sender", b"info"]) == b"worker-a"


def test_request_without_workers_raises(context, endpoints):
    with Proxy(context, *endpoints) as proxy:
        with pytest.raises(RuntimeError):
            proxy.handle_request([b"sender", b"info", b"payload"])


def test_short_frames_raise(context, endpoints):
    with Proxy(context, *endpoints) as proxy:
        with pytest.raises(ValueError):
            proxy.handle_worker([b"worker-a"])
        with pytest.raises(ValueError):
            proxy.handle_request([b"sender"])


def test_forward_routes_request_to_worker(context, endpoints):
    upstream, downstream = endpoints
    proxy = Proxy(context, upstream, downstream)
    worker = context.socket(zmq.DEALER)
    worker.connect(downstream)
    server = context.socket(zmq.DEALER)
    server.connect(upstream)

    thread = threading.Thread(target=proxy.forward, daemon=True)
    thread.start()
    try:
        worker.send(b"heart")
        info = struct.pack("<II", 5, 1)
        server.send_multipart([info, b"the job"])
        assert _recv(worker) == [info, b"the job"]
    finally:
        proxy.close()
        thread.join(timeout=5)
    assert not thread.is_alive()


def test_forward_after_close_raises(context, endpoints):
    proxy = Proxy(context, *endpoints)
    proxy.close()
    with pytest.raises(RuntimeError):
        proxy.forward()