"""Paged-file storage with an LRU/MRU buffer pool and a slotted-page record layer."""

__version__ = "0.1.0"

__all__ = ["errors", "hashtable", "buffer", "pagedfile", "records", "workloads"]