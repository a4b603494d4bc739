"""Drivers that trigger the periodic boost sweep.

The sweep itself lives in ``bizdirectory.services.boosts``; this module only
decides when to call it:

- ``BoostSweepTicker``: in-process daemon thread, one sweep per interval
- ``flask boost-sweep``: one sweep from the command line (system cron)
- ``POST /api/boosts/sweep``: one sweep from an external HTTP scheduler
"""

import logging
import threading

import click

from bizdirectory.services.boosts import sweep_boost_queues

logger = logging.getLogger(__name__)

_ticker = None


def run_sweep(app):
    """Run one sweep inside an app context using the app clock."""
    with app.app_context():
        result = sweep_boost_queues(app.config['BOOST_CLOCK']())

    for entry in result['per_category_actions']:
        if entry.get('error'):
            logger.error(f"Category {entry['category']}: sweep failed: {entry['error']}")
        elif entry['actions']:
            logger.info(f"Category {entry['category']} - {len(entry['actions'])} actions performed")
    return result


class BoostSweepTicker:
    """Calls the boost sweep every ``interval_seconds`` on a background thread."""

    def __init__(self, app, interval_seconds=300):
        self.app = app
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name='boost-sweep', daemon=True)
        self._thread.start()
        logger.info(f"Boost sweep ticker started (every {self.interval_seconds}s)")

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Boost sweep ticker stopped")

    def tick(self):
        try:
            return run_sweep(self.app)
        except Exception as e:
            logger.error(f"Error in boost queue management: {e}")
            return None

    def _loop(self):
        # Run once immediately on startup
        self.tick()
        while not self._stop.wait(self.interval_seconds):
            self.tick()


def start_ticker(app):
    """Start the process-wide ticker for ``app`` (no-op if already running)."""
    global _ticker
    if _ticker is None:
        _ticker = BoostSweepTicker(app, app.config['BOOST_SWEEP_INTERVAL'])
    _ticker.start()
    return _ticker


def register_cli(app):
    @app.cli.command('boost-sweep')
    def boost_sweep_command():
        """Expire finished boosts and promote queued ones."""
        result = run_sweep(app)
        click.echo(f"Processed {result['processed_categories']} categories")
        for entry in result['per_category_actions']:
            if entry.get('error'):
                click.echo(f"Category: {entry['category']} - failed: {entry['error']}")
                continue
            click.echo(f"Category: {entry['category']} - {len(entry['actions'])} actions performed")
            for action in entry['actions']:
                click.echo(f"  - {action['action']}: {action['message']}")
