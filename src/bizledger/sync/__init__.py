"""Offline-first synchronization: outbox, sync engine, transports and the
remote reconciler."""
