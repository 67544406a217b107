"""Garak host bootstrap.

Provisions a host for garak in one linear run:
- Pin-verified Anaconda apt repository (fingerprint checked before trust)
- Idempotent conda environment
- Editable garak install with best-effort extras
- Full transcript in a timestamped log
"""

__all__ = []
