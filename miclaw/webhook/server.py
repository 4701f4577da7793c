"""An HTTP server that turns webhook POSTs into enqueued messages."""

from __future__ import annotations

import json
import logging
import socket
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional
from urllib.parse import urlsplit

from miclaw.webhook.signature import validate_hmac

Enqueue = Callable[[str, str, dict], None]

HEALTH_PATH = "/health"
SIGNATURE_HEADER = "X-Webhook-Signature"
_HEALTH_BODY = (json.dumps({"status": "ok"}, separators=(",", ":")) + "\n").encode()
_NOT_FOUND_BODY = b"404 page not found\n"

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookDef:
    """One webhook endpoint: requests to ``path`` are enqueued as ``webhook:<id>``."""

    id: str
    path: str
    secret: str = ""
    format: str = "text"


@dataclass(frozen=True)
class WebhookConfig:
    """Listen address (``host:port``) and the webhooks to serve."""

    listen: str = ""
    hooks: list[WebhookDef] = field(default_factory=list)


def _parse_listen(listen: str) -> tuple[str, int]:
    host, sep, port = listen.rpartition(":")
    if not sep:
        host, port = listen, ""
    host = host.removeprefix("[").removesuffix("]")
    if not port:
        return host, 80
    if port.isdigit():
        return host, int(port)
    return host, socket.getservbyname(port, "tcp")


def _build_routes(hooks: list[WebhookDef]) -> dict[str, Optional[WebhookDef]]:
    routes: dict[str, Optional[WebhookDef]] = {HEALTH_PATH: None}
    for hook in hooks:
        if not hook.path.startswith("/"):
            raise ValueError(f"invalid webhook path {hook.path!r}")
        if hook.path in routes:
            raise ValueError(f"multiple registrations for {hook.path}")
        routes[hook.path] = hook
    return routes


class _HTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], app: "WebhookServer") -> None:
        self.app = app
        super().__init__(address, _Handler)


class _HTTPServer6(_HTTPServer):
    address_family = socket.AF_INET6


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server: _HTTPServer

    def log_message(self, format: str, *args: object) -> None:
        _log.debug("%s - %s", self.address_string(), format % args)

    def _handle(self) -> None:
        self._body_read = False
        app = self.server.app
        found, hook = app._route(urlsplit(self.path).path)
        if not found:
            self._reply(404, _NOT_FOUND_BODY, "text/plain; charset=utf-8")
            return
        if hook is None:
            self._reply(200, _HEALTH_BODY, "application/json")
            return
        if self.command != "POST":
            self._reply(405)
            return
        try:
            body = self._read_body()
        except (OSError, ValueError):
            self.close_connection = True
            self._reply(400)
            return
        if hook.secret and not validate_hmac(
            body, self.headers.get(SIGNATURE_HEADER, ""), hook.secret
        ):
            self._reply(401)
            return
        content = body.decode("utf-8", errors="replace")
        app._enqueue(f"webhook:{hook.id}", content, {"id": hook.id})
        self._reply(202)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_HEAD = do_OPTIONS = _handle

    def _read_body(self) -> bytes:
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            data = self._read_chunked()
        else:
            length = self.headers.get("Content-Length")
            if length is None:
                data = b""
            else:
                n = int(length)
                if n < 0:
                    raise ValueError("negative content length")
                data = self.rfile.read(n)
                if len(data) < n:
                    raise ValueError("short request body")
        self._body_read = True
        return data

    def _read_chunked(self) -> bytes:
        parts = []
        while True:
            line = self.rfile.readline()
            if not line:
                raise ValueError("truncated chunked body")
            size = int(line.split(b";", 1)[0].strip(), 16)
            if size == 0:
                while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                    pass
                return b"".join(parts)
            chunk = self.rfile.read(size)
            if len(chunk) < size:
                raise ValueError("truncated chunked body")
            parts.append(chunk)
            self.rfile.readline()

    def _reply(self, status: int, body: bytes = b"", content_type: str = "") -> None:
        has_body = self.headers.get("Content-Length") not in (None, "0") or (
            "chunked" in self.headers.get("Transfer-Encoding", "").lower()
        )
        if has_body and not self._body_read:
            self.close_connection = True
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        if self.close_connection:
            self.send_header("Connection", "close")
        self.end_headers()
        if body and self.command != "HEAD":
            self.wfile.write(body)


class WebhookServer:
    """Serves ``/health`` and the configured webhooks."""

    def __init__(self, cfg: WebhookConfig, enqueue: Enqueue) -> None:
        self.cfg = cfg
        self._enqueue = enqueue
        self._routes = _build_routes(list(cfg.hooks))
        self._httpd: Optional[_HTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """The bound ``(host, port)``, or None when not listening."""
        httpd = self._httpd
        if httpd is None:
            return None
        host, port = httpd.server_address[:2]
        return host, port

    def _route(self, path: str) -> tuple[bool, Optional[WebhookDef]]:
        if path in self._routes:
            return True, self._routes[path]
        best = ""
        for pattern in self._routes:
            if pattern.endswith("/") and path.startswith(pattern) and len(pattern) > len(best):
                best = pattern
        if best:
            return True, self._routes[best]
        return False, None

    def start(self) -> tuple[str, int]:
        """Bind the listen address and serve in the background; return the address.

        Raises OSError when the address cannot be bound.
        """
        with self._lock:
            if self._httpd is None:
                host, port = _parse_listen(self.cfg.listen)
                cls = _HTTPServer6 if ":" in host else _HTTPServer
                httpd = cls((host, port), self)
                thread = threading.Thread(target=httpd.serve_forever, daemon=True)
                thread.start()
                self._httpd, self._thread = httpd, thread
        address = self.address
        assert address is not None
        return address

    def serve(self, stop_event: Optional[threading.Event] = None) -> None:
        """Serve until ``stop_event`` is set or :meth:`stop` is called."""
        self.start()
        thread = self._thread
        if thread is None:
            return
        while thread.is_alive():
            if stop_event is not None and stop_event.wait(0.05):
                self.stop()
                break
            if stop_event is None:
                thread.join(0.05)

    def stop(self) -> None:
        """Stop serving and close the listening socket; safe to call twice."""
        with self._lock:
            httpd, thread = self._httpd, self._thread
            self._httpd, self._thread = None, None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join()

    def __enter__(self) -> "WebhookServer":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()