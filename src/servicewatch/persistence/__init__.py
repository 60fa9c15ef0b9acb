# Persistence Layer - JSON service state baseline

from .state_store import StateReadError, StateStore, StateStoreError, StateWriteError

__all__ = [
    "StateStore",
    "StateStoreError",
    "StateReadError",
    "StateWriteError",
]
