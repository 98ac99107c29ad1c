"""Pairing with the capture device through the rendezvous service."""

from .client import PairingClient, PairingStatus, detect_local_ip

__all__ = [
    'PairingClient',
    'PairingStatus',
    'detect_local_ip',
]
