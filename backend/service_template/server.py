"""
Service Template — Server Entry Point
=======================================

What:  Runs the application under uvicorn with graceful shutdown.
Why:   The process must finish in-flight requests on SIGTERM/SIGINT, never
       hang forever doing so, and never keep running after an unhandled
       fault.
How:   GracefulServer subclasses uvicorn.Server:
       - on the first signal it logs, stops accepting connections and arms
         a hard deadline timer
       - unhandled asyncio failures are logged and trigger shutdown
       main() maps the outcome to the process exit code.

Exit codes:
    0   graceful shutdown after SIGTERM/SIGINT
    1   startup failure, configuration error, unhandled fault, or the
        shutdown deadline expired
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
import threading
from typing import Optional

import uvicorn

from service_template.config import Settings, get_settings
from service_template.exceptions import ConfigError
from service_template.logging_config import configure
from service_template.main import create_app

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class GracefulServer(uvicorn.Server):
    """
    uvicorn.Server with a shutdown deadline and fatal-fault handling.

    Args:
        config:            uvicorn configuration
        shutdown_timeout:  Seconds allowed for a graceful stop before the
                           process is forced down with exit code 1
    """

    def __init__(self, config: uvicorn.Config, shutdown_timeout: float = 10.0):
        super().__init__(config)
        self.shutdown_timeout = shutdown_timeout
        self.exit_code = 0
        self._deadline: Optional[threading.Timer] = None

    @contextlib.contextmanager
    def capture_signals(self):
        """
        Route SIGINT/SIGTERM to handle_exit for the lifetime of serve().

        Unlike uvicorn's default, captured signals are not re-raised after
        shutdown; the exit code comes from main().
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        original = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in original.items():
                signal.signal(sig, handler)

    def handle_exit(self, sig: int, frame) -> None:
        if not self.should_exit:
            logger.info("%s received, shutting down gracefully", signal.Signals(sig).name)
            self.arm_deadline()
        elif sig == signal.SIGINT:
            # uvicorn force-exits on a repeated SIGINT; in-flight requests are dropped
            logger.warning("SIGINT received again, forcing shutdown")
            self.exit_code = 1
        super().handle_exit(sig, frame)

    async def serve(self, sockets=None) -> None:
        asyncio.get_running_loop().set_exception_handler(self.handle_loop_exception)
        await super().serve(sockets=sockets)
        if self._deadline is not None:
            self._deadline.cancel()

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        """Unhandled task failures end the process instead of being ignored."""
        exc = context.get("exception")
        logger.error(
            "Unhandled asynchronous failure: %s",
            context.get("message", "unknown error"),
            exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
        )
        self.fail()

    def fail(self) -> None:
        """Request shutdown with a non-zero exit code."""
        self.exit_code = 1
        if not self.should_exit:
            self.should_exit = True
            self.arm_deadline()

    def arm_deadline(self) -> None:
        if self._deadline is not None:
            return
        self._deadline = threading.Timer(self.shutdown_timeout, self.force_shutdown)
        self._deadline.daemon = True
        self._deadline.start()

    def force_shutdown(self) -> None:
        logger.error(
            "Could not close connections in time, forcefully shutting down",
            extra={"timeout_seconds": self.shutdown_timeout},
        )
        logging.shutdown()
        os._exit(1)


def install_fault_hooks(server: GracefulServer) -> None:
    """Log uncaught exceptions (main or worker threads) and stop the server."""

    def excepthook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.error("Uncaught Exception", exc_info=(exc_type, exc, tb))
        server.fail()

    def thread_excepthook(args: threading.ExceptHookArgs) -> None:
        logger.error(
            "Uncaught Exception in thread %s",
            args.thread.name if args.thread else "unknown",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        server.fail()

    sys.excepthook = excepthook
    threading.excepthook = thread_excepthook


def build_server(settings: Settings) -> GracefulServer:
    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        # Our root handlers format uvicorn's records too
        log_config=None,
        lifespan="on",
    )
    return GracefulServer(config, shutdown_timeout=settings.shutdown_timeout_seconds)


def main() -> int:
    """Run the server until shutdown; returns the process exit code."""
    settings = get_settings()

    # Fail fast before binding the port
    try:
        configure(settings.environment)
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Configuration error: %s", e)
        return 1

    server = build_server(settings)
    install_fault_hooks(server)
    server.run()

    if not server.started:
        logger.error("Server failed to start")
        return 1

    logger.info("Process terminated", extra={"exit_code": server.exit_code})
    return server.exit_code


if __name__ == "__main__":
    sys.exit(main())
