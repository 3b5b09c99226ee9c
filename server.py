# server.py
import logging
from typing import Callable, Dict, Union

from flask import Flask, jsonify

from data import snapshot_to_dict
from records import NOT_YET_AVAILABLE, NotYetAvailable, Snapshot

logger = logging.getLogger(__name__)


def create_app(get_current_snapshot: Callable[[], Union[Snapshot, NotYetAvailable]],
               get_stats: Callable[[], Dict] = dict) -> Flask:
    """Builds the Flask app serving the latest snapshot.

    Args:
        get_current_snapshot: Returns the published Snapshot or NOT_YET_AVAILABLE.
        get_stats: Returns refresh counters for the health endpoint.
    """
    app = Flask(__name__)

    @app.route('/api/status')
    def get_status():
        snapshot = get_current_snapshot()
        if snapshot is NOT_YET_AVAILABLE:
            return jsonify({'error': 'snapshot not yet available'}), 503
        return jsonify(snapshot_to_dict(snapshot))

    @app.route('/api/health')
    def health():
        snapshot = get_current_snapshot()
        if snapshot is NOT_YET_AVAILABLE:
            return jsonify({'status': 'starting', 'hosts': None, 'created_at': None,
                            'leases_refreshed_at': None, 'neighbors_refreshed_at': None,
                            'stats': get_stats()})

        def iso(value):
            return value.isoformat() if value else None

        return jsonify({
            'status': 'ok',
            'hosts': len(snapshot),
            'created_at': iso(snapshot.created_at),
            'leases_refreshed_at': iso(snapshot.leases_refreshed_at),
            'neighbors_refreshed_at': iso(snapshot.neighbors_refreshed_at),
            'stats': get_stats(),
        })

    return app
