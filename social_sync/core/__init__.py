"""
Core Business Logic
==================

Core modules for social card generation and synchronization.

Modules:
- routing: URL parsing and artifact key mapping
- storage: Artifact file tree access
- rendering: Browser management, card markup and JPEG capture
- queue: Batch scheduling of render tasks
- sync: Snapshot diffing, state persistence, orphan sweeping and orchestration
"""
