"""Registry — the harvest index and its derived tag indexes.

The registry provides:
- Storage: load and atomically persist the harvest index
- Merging: idempotent upsert of freshly discovered manifests
- Tag indexes: one derived document per tag for fast lookup
"""
