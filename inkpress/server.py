"""Watch mode and development server for Inkpress.

Watching and serving are independent:
- SiteWatcher observes content, templates, static files and the config file,
  and re-runs the build after changes settle.
- DevServer serves the output directory over HTTP and, when live reload is
  on, tells connected browsers to reload after each rebuild.

Key classes:
- SiteWatcher: Debounced, serialized rebuilds driven by watchdog events.
- DevServer: Static HTTP server with an optional live reload websocket.
- _ReloadHandler: HTTP request handler that injects the reload script and enforces 404s.
- _ChangeHandler: File system event handler feeding the watcher.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
import webbrowser
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildResult, SiteBuilder
from .config import Config, ConfigError, load_config

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.3


class SiteWatcher:
    """Rebuilds the site whenever watched sources change.

    Change events are coalesced: each event restarts a short timer and the
    rebuild runs once the timer expires. Rebuilds are serialized by a lock, so
    an event arriving during a pass schedules one more pass after it.

    Attributes:
        config: Current configuration; replaced wholesale on config file changes.
        debounce_seconds: Quiet period before a rebuild starts.
        on_rebuild: Optional callback invoked with each BuildResult.
    """

    def __init__(
        self,
        config: Config,
        builder_factory: Callable[[Config], SiteBuilder] = SiteBuilder,
        on_rebuild: Callable[[BuildResult], None] | None = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
    ):
        self.config = config
        self.builder_factory = builder_factory
        self.on_rebuild = on_rebuild
        self.debounce_seconds = debounce_seconds
        self._observer: Observer | None = None
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._config_changed = False

    @property
    def watched_dirs(self) -> list[Path]:
        paths = self.config.paths
        return [paths.content, paths.templates, paths.static]

    def start(self) -> None:
        """Start observing the watched directories and the config file."""
        handler = _ChangeHandler(self)
        observer = Observer()
        for folder in self.watched_dirs:
            if folder.exists():
                observer.schedule(handler, str(folder), recursive=True)
        config_dir = self.config.config_file.parent
        if config_dir.exists():
            observer.schedule(handler, str(config_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching for changes in %s", ", ".join(str(p) for p in self.watched_dirs))

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def is_relevant(self, path: Path) -> bool:
        """Whether a changed path should trigger a rebuild."""
        output = self.config.paths.output
        if path == output or output in path.parents:
            return False
        if path == self.config.config_file:
            return True
        return any(folder == path or folder in path.parents for folder in self.watched_dirs)

    def notify(self, path: Path) -> None:
        """Record a change and (re)start the debounce timer."""
        if not self.is_relevant(path):
            return
        with self._timer_lock:
            if path == self.config.config_file:
                self._config_changed = True
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self.rebuild)
            self._timer.daemon = True
            self._timer.start()

    def rebuild(self) -> BuildResult | None:
        """Run one pass, reloading the configuration first if it changed."""
        with self._build_lock:
            with self._timer_lock:
                reload_config = self._config_changed
                self._config_changed = False
                self._timer = None
            if reload_config:
                self._reload_config()
            logger.info("Change detected; rebuilding...")
            try:
                result = self.builder_factory(self.config).build()
            except Exception:
                logger.exception("Rebuild failed")
                return None
            if self.on_rebuild is not None:
                self.on_rebuild(result)
            return result

    def _reload_config(self) -> None:
        """Swap in a freshly loaded Config, keeping the current one if it is invalid."""
        logger.info("Config file changed; reloading %s", self.config.config_file)
        try:
            self.config = load_config(self.config.project_root, self.config.config_file)
        except (ConfigError, OSError) as exc:
            logger.error(
                "Invalid config %s: %s; keeping previous settings",
                self.config.config_file,
                exc,
            )


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: SiteWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.notify(Path(event.src_path))
        dest = getattr(event, "dest_path", "")
        if dest:
            self.watcher.notify(Path(dest))


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects a live reload script into HTML pages.

    Attributes:
        reload_script: Script appended before ``</body>``; empty disables injection.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002 - signature from base class
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _inject(self, content: str) -> str:
        if not self.reload_script:
            return content
        if "</body>" in content:
            return content.replace("</body>", f"{self.reload_script}</body>")
        return content + self.reload_script

    def _send_html(self, path: Path, status: int):
        encoded = self._inject(path.read_text(encoding="utf-8")).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(error_page, 404)
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(path_obj, 200)
            return None
        return super().send_head()


class DevServer:
    """Development HTTP server over the output directory.

    Attributes:
        config: Site configuration.
        output_dir: Directory being served.
        http_port: Port for the HTTP server.
        ws_port: Port for live reload websocket connections.
        live_reload: Whether pages get the reload script.
    """

    def __init__(self, config: Config, live_reload: bool = False):
        self.config = config
        self.output_dir = config.paths.output
        self.host = config.server.host
        self.http_port = int(config.server.port)
        self.ws_port = config.server.reload_port
        self.live_reload = live_reload
        self._reload_script = (
            _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
            if live_reload
            else ""
        )
        self._httpd: ThreadingHTTPServer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.http_port}/"

    def start(self) -> None:  # pragma: no cover - integration path
        """Start the HTTP (and websocket) servers on background threads."""
        threading.Thread(target=self._start_http, daemon=True).start()
        if self.live_reload:
            threading.Thread(target=self._start_ws, daemon=True).start()
        delay = float(self.config.server.delay or 0)
        if delay > 0:
            time.sleep(delay)
        logger.info("Serving %s at %s", self.output_dir, self.url)
        if self.config.server.open:
            webbrowser.open(self.url)

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd = None
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)

    def make_handler(self):
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        return functools.partial(handler_cls, directory=str(self.output_dir))

    def _start_http(self) -> None:  # pragma: no cover - integration path
        self._httpd = ThreadingHTTPServer((self.host, self.http_port), self.make_handler())
        self._httpd.serve_forever()

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %s): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def broadcast_reload(self, result: BuildResult | None = None) -> None:
        """Tell connected browsers to reload; usable as a SiteWatcher callback."""
        if not self.live_reload:
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
