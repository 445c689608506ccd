"""In-memory engines for exercising the checker without a real database."""

from crashmodel.testing.stubs import LossyFlushEngine, MemoryDisk, MemoryEngine, MemoryStore

__all__ = ["LossyFlushEngine", "MemoryDisk", "MemoryEngine", "MemoryStore"]
