# host_status.py
import argparse
import logging
import sys

from dynaconf import Dynaconf

from data import dump_snapshot
from refresher import RefreshScheduler
from routers import get_router
from server import create_app
from snapshot import SnapshotStore

# Load settings
config = Dynaconf(
    settings_files=['config/settings.toml'],
    envvar_prefix="HOST_STATUS",
)

logger = logging.getLogger(__name__)


def build_scheduler(settings: Dynaconf, store: SnapshotStore) -> RefreshScheduler:
    """Wires the configured router to a scheduler publishing into ``store``."""
    router = get_router(settings)
    return RefreshScheduler(
        router,
        store,
        interval=float(settings.general.get("refresh_interval", 30)),
        command_timeout=float(settings.general.get("command_timeout", 10)),
    )


def run_once(settings: Dynaconf) -> int:
    """Performs a single refresh and prints the status document."""
    store = SnapshotStore()
    scheduler = build_scheduler(settings, store)
    if not scheduler.run_cycle():
        logger.error("No snapshot could be built")
        return 1
    print(dump_snapshot(store.current()))
    return 0


def serve(settings: Dynaconf, host: str, port: int) -> int:
    """Starts the refresh loop and serves the snapshot over HTTP until interrupted."""
    store = SnapshotStore()
    scheduler = build_scheduler(settings, store)

    def get_stats():
        return dict(scheduler.stats, generation=store.generation, state=scheduler.state.value)

    app = create_app(store.current, get_stats)
    scheduler.start()
    logger.info(f"Serving host status on http://{host}:{port}/api/status")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        scheduler.stop(timeout=scheduler.command_timeout)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Gateway host status service")
    parser.add_argument("--once", action="store_true", help="Refresh once, print JSON and exit")
    parser.add_argument("--host", default=None, help="Address to listen on")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if args.once:
        return run_once(config)

    host = args.host or config.general.get("listen_host", "127.0.0.1")
    port = args.port or int(config.general.get("listen_port", 8080))
    return serve(config, host, port)


if __name__ == "__main__":
    sys.exit(main())
