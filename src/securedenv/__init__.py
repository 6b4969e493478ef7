"""
SecuredEnv — encrypted backups for .env secret files.

Derive a key from a password or a key file, seal every .env file with
AES-256-GCM, and keep the result in a single tamper-evident container.
Restore it on this machine, export it to another one, or sync it
through a remote repository.
"""

__version__ = "1.0.0"
__author__ = "SecuredEnv contributors"

from .engine import SecuredEnv

__all__ = ["SecuredEnv", "__version__"]
