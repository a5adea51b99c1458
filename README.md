# primeserver

Building blocks for load-balanced work distribution over ZeroMQ.

- A load-balancing `Proxy` routes requests to workers that have said they are idle.
- SIGTERM handling lets a process drain and then shut down gracefully.
- UDP beacons let services find each other.
- Small helpers cover pyzmq sockets and configuration strings.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

### `primeserver.proxy`

`Proxy(context, upstream_endpoint, downstream_endpoint, choose_function=None)`
binds two ROUTER sockets, one upstream and one downstream. Their high-water
marks are disabled.

- **Workers.** A worker advertises by sending a heart beat on the downstream
  socket. The proxy records it with `handle_worker([address, heart_beat])`.
  Idle workers are kept in the order in which they first advertised.
- **Requests.** A request arrives upstream as `[sender, info, *payload]`.
  `handle_request` passes it on to the downstream socket as
  `[worker_address, info, *payload]` and returns the address of the worker
  it chose.
- **Choosing a worker.** If `choose_function(heart_beats, payload)` is given
  and returns a valid index into the idle workers, that worker gets the
  request. If there is no function, or it returns anything else, the request
  goes to the worker that has waited longest.
- **Busy workers.** A worker is forgotten once it has been handed a request,
  and stays forgotten until it advertises again.
- **`expire()`** returns how many sockets are worth polling. While no worker
  is idle, requests wait on the upstream socket.
- **`forward()`** runs the poll loop. It stops when `close()` is called or
  when the process is shutting down, as described under `primeserver.quiesce`.
  An error raised while handling one message is logged, and the loop carries
  on.
- **`close()`** stops the loop and closes both sockets. `Proxy` can also be
  used as a context manager.

```python
import threading
import zmq

from primeserver.proxy import Proxy

context = zmq.Context.instance()

def least_busy(heart_beats, payload):
    # pick the worker whose heart beat reports the smallest load
    return min(range(len(heart_beats)), key=lambda i: int(heart_beats[i] or b"0"))

proxy = Proxy(context, "ipc:///tmp/up", "ipc:///tmp/down", choose_function=least_busy)
threading.Thread(target=proxy.forward, daemon=True).start()
# ...
proxy.close()
```

### `primeserver.quiesce`

- `quiesce(drain_seconds, shutdown_seconds)` enables graceful shutdown.
  - It blocks SIGTERM and starts a daemon thread that waits for the signal.
  - When SIGTERM arrives, `draining()` becomes true.
  - After `drain_seconds`, `shutting_down()` becomes true.
  - After `shutdown_seconds` more, the process exits with status 0.
- Passing zeros for both periods leaves the feature off.
- The state is held by a single process-wide `Quiescable`. The first call to
  `quiesce`, `draining` or `shutting_down` fixes its settings.

### `primeserver.helpers`

- `split(s, delim, skip_empty=True, transform=None)` splits a string. It can
  drop empty parts and can apply `transform` to each part.
- `parse_quiesce_config("drain,shutdown", drain_seconds=28, shutdown_seconds=1)`
  returns a `(drain, shutdown)` pair. Any part that is missing takes its
  default. A negative or non-numeric part raises `ValueError`.

```python
from primeserver.helpers import parse_quiesce_config
from primeserver.quiesce import quiesce

quiesce(*parse_quiesce_config("10,2"))
```

### `primeserver.zmqtools`

- `unlimited_socket(context, socket_type)` creates a socket with its send
  and receive high-water marks disabled.
- `recv_all(socket, flags=0)` receives a whole multipart message. A
  non-blocking receive with nothing waiting gives `[]`.
- `send(socket, data, flags=0)` sends one frame. It returns `False` when a
  non-blocking send cannot go out.
- `send_all(socket, messages, flags=0)` sends the frames as one multipart
  message and returns how many were sent.
- `poll(items, timeout=-1)` takes `(socket_or_fd, events)` pairs and returns
  the signalled events for each pair, in the same order. The timeout is in
  milliseconds; a negative timeout waits forever.
- `random_port()` returns a port in the range 49152–65535.

### `primeserver.beacon`

`Beacon(discovery_port)` binds a broadcast-capable UDP socket. Binding
failures raise `RuntimeError`.

- `broadcast(service_port, interval=1000)` starts a thread that broadcasts
  a 22-byte beacon every `interval` milliseconds. The beacon is
  `ZRE\x01`, then a random 16-character id, then the port in network order.
- `silence()` stops the broadcast.
- `subscribe(filter=b"")` starts accepting received beacons that begin with
  `filter`. `unsubscribe()` stops accepting them.
- `update(activity=True)` reads one waiting beacon, if there is one. It then
  drops services that have been silent for 60 seconds or more, and returns
  `(joined, dropped)` dictionaries that map endpoint to id.
- `services` holds the current endpoints, in the form `tcp://ip:port`.
- `fileno()` allows the beacon to be polled, for example with
  `zmqtools.poll`.
- `close()` stops the broadcast and closes the socket. `Beacon` can also be
  used as a context manager.

Lower-level pieces are also available:

- `encode_zre` and `decode_zre` build and read beacons.
- `rand_uuid` makes the random ids.
- `Clique` tracks services in the order in which they checked in, with
  `join` and `purge`.

## What this package does not do

This package provides the proxy stage and the supporting pieces only. It has:

- no front-end server that accepts client connections, parses HTTP or
  netstring requests, and replies to clients;
- no client for batching requests;
- no worker loop that runs jobs.

Code that sends requests into a `Proxy`, and workers that advertise to it
and take its jobs, must be supplied by the user. It has no command-line
programs.