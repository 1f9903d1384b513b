"""Batch transfer flows."""

from solgen.transfers.dispatcher import BatchTransferDispatcher

__all__ = ["BatchTransferDispatcher"]
