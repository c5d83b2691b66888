"""
Engine wiring for the HTTP layer.

Each request gets its own TradingEngine, loaded from the database and
bound to the requesting user. A per-request snapshot keeps workers in
different processes from acting on stale in-memory state, and the
version check in DjangoCollectionStore catches the writes that still race.

The bootstrap check runs once per process: on every engine built until
one load has completed with the seeder attached.
"""

import threading

from django.conf import settings

from gridshare.application.engine import TradingEngine
from gridshare.application.seeder import BootstrapSeeder
from gridshare.infrastructure.identity import RequestIdentityProvider
from gridshare.infrastructure.persistence import DjangoCollectionStore

_bootstrap_lock = threading.Lock()
_bootstrapped = False


def _needs_bootstrap():
    with _bootstrap_lock:
        return not _bootstrapped and getattr(settings, "GRIDSHARE_SEED_ON_START", True)


def _mark_bootstrapped():
    global _bootstrapped
    with _bootstrap_lock:
        _bootstrapped = True


def reset_bootstrap():
    """Lets the next engine built in this process run the bootstrap check again."""
    global _bootstrapped
    with _bootstrap_lock:
        _bootstrapped = False


def engine_for_request(request):
    """
    Returns a loaded engine for ``request``.

    Raises PersistenceError (or ConcurrentModification) when the bootstrap
    write fails; the next request then tries to seed again.
    """
    bootstrapping = _needs_bootstrap()
    engine = TradingEngine(
        persistence=DjangoCollectionStore(),
        identity=RequestIdentityProvider(request),
        seeder=BootstrapSeeder() if bootstrapping else None,
    )
    engine.load()
    if bootstrapping:
        _mark_bootstrapped()
    return engine
