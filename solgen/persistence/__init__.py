"""Persistence layer for transfer audit trails."""

from solgen.persistence.transfer_logger import TransferLogger

__all__ = ["TransferLogger"]
