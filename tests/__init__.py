"""Test package marker.

What:
  Marks ``tests`` as a package so pytest resolves ``tests.unit`` and
  ``tests.e2e`` modules deterministically.

Invariants & Safety:
  - The file stays side-effect free; importing ``tests`` never mutates the
    environment or the configuration cache.
"""
