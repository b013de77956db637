"""
Portail Distribution PDF - Crypto Provider
Signature ECDSA-P384 et hachage SHA-384 des événements d'audit.
"""

import hashlib
import threading
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

from .interfaces import ICryptoProvider


class CryptoProvider(ICryptoProvider):
    """
    Trousseau ECDSA-P384 en mémoire, indexé par key_id.

    Une clé absente est générée au premier usage. Les clés peuvent aussi
    être importées depuis un PEM (clé persistée hors processus).
    """

    def __init__(self, keys_pem: Optional[Dict[str, bytes]] = None):
        self._lock = threading.Lock()
        self._keys: Dict[str, EllipticCurvePrivateKey] = {}
        for key_id, pem in (keys_pem or {}).items():
            self.load_private_key(key_id, pem)

    def load_private_key(self, key_id: str, pem: bytes) -> None:
        """
        Importe une clé privée PEM (non chiffrée).

        Raises:
            ValueError: Si la clé n'est pas une clé EC P-384
        """
        key = serialization.load_pem_private_key(pem, password=None)
        if not isinstance(key, EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP384R1):
            raise ValueError(f"Key {key_id} is not an ECDSA-P384 private key")
        with self._lock:
            self._keys[key_id] = key

    def public_key_pem(self, key_id: str) -> bytes:
        """Clé publique PEM, pour vérification par un tiers."""
        return self._key(key_id).public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def sign(self, data: bytes, key_id: str) -> bytes:
        return self._key(key_id).sign(data, ec.ECDSA(hashes.SHA384()))

    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        public_key = self._key(key_id).public_key()
        try:
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA384()))
        except InvalidSignature:
            return False
        return True

    def hash(self, data: bytes) -> str:
        return hashlib.sha384(data).hexdigest()

    def _key(self, key_id: str) -> EllipticCurvePrivateKey:
        with self._lock:
            key = self._keys.get(key_id)
            if key is None:
                key = ec.generate_private_key(ec.SECP384R1())
                self._keys[key_id] = key
            return key
