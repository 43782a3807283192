from .backend import GnupgBackend, SigningBackend
from .runner import SignBatch, Signer, should_exclude
from .stage import stage_sign

__all__ = ["GnupgBackend", "SigningBackend", "SignBatch", "Signer", "should_exclude", "stage_sign"]
