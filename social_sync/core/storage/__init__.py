"""
Storage Module
=============

Access to the generated artifact tree.

Components:
- manager: Existence checks, atomic writes, deletes and listings
"""
