"""Event plumbing with explicit subscription handles."""

from .emitter import ERROR_EVENT, EventEmitter, Subscription

__all__ = ["ERROR_EVENT", "EventEmitter", "Subscription"]
