"""Stable Diffusion Web UI installer for Debian containers.

Core design goals:
- Linear, fail-fast provisioning sequence
- Idempotent filesystem artifacts (clone, checkpoint, unit file)
- Configuration resolved once, then read-only
- Secrets kept out of files and logs
- Centralized logging
"""

__all__ = []
