"""
Queue Module
===========

Bounded-concurrency execution of render tasks.

Components:
- scheduler: Sequential batches of concurrent renders with skip-if-exists
"""
