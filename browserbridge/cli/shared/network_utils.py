"""Network helpers for CLI commands."""

from __future__ import annotations

import errno
import socket
import sys

from browserbridge.utils.exceptions import PortBindError


def bind_listen_socket(host: str, port: int) -> socket.socket:
    """
    Bind the HTTP listening socket for ``host:port``.

    The caller owns the returned socket. Fails with PortBindError instead of
    trying another port, since the extension and clients expect this one.
    """
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
    except socket.gaierror as e:
        raise PortBindError(host, port, f"Cannot resolve host: {e}") from e
    family, socktype, proto, _, address = infos[0]
    sock = socket.socket(family, socktype, proto)
    try:
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(address)
    except OSError as e:
        sock.close()
        if e.errno == errno.EADDRINUSE:
            raise PortBindError(host, port, "The port is already in use by another process.") from e
        raise PortBindError(host, port, e.strerror or str(e)) from e
    sock.setblocking(False)
    return sock
