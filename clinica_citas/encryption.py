"""
Cifrado de credenciales compatible con CryptoJS.AES (modo passphrase).

Formato: base64("Salted__" + salt[8] + ciphertext), AES-256-CBC con PKCS7;
clave e IV derivados de la passphrase con EVP_BytesToKey (MD5), igual que
`openssl enc -aes-256-cbc -md md5`.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import DecryptionError

SALT_HEADER = b"Salted__"
KEY_LEN = 32
IV_LEN = 16


def _evp_bytes_to_key(passphrase: bytes, salt: bytes) -> tuple[bytes, bytes]:
    derived = b""
    block = b""
    while len(derived) < KEY_LEN + IV_LEN:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:KEY_LEN], derived[KEY_LEN:KEY_LEN + IV_LEN]


def encrypt(plaintext: str, key: str) -> str:
    """Cifra como CryptoJS.AES.encrypt(plaintext, key).toString()."""
    if not key:
        raise DecryptionError("Clave de encriptación no configurada")

    salt = os.urandom(8)
    aes_key, iv = _evp_bytes_to_key(key.encode("utf-8"), salt)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(aes_key), modes.CBC(iv)).encryptor()
    ct = encryptor.update(data) + encryptor.finalize()
    return base64.b64encode(SALT_HEADER + salt + ct).decode("ascii")


def decrypt(encrypted_text: str | None, key: str | None) -> str:
    """
    Descifra un texto producido por encrypt()/CryptoJS.

    Lanza DecryptionError si no hay clave, si el texto está vacío o si el
    resultado descifrado es vacío (clave incorrecta).
    """
    if not key:
        raise DecryptionError("Clave de encriptación no configurada")

    if not isinstance(encrypted_text, str) or not encrypted_text.strip():
        raise DecryptionError("Texto cifrado inválido o vacío")

    try:
        raw = base64.b64decode(encrypted_text.strip(), validate=True)
        if not raw.startswith(SALT_HEADER) or len(raw) <= 16 or (len(raw) - 16) % IV_LEN:
            raise ValueError("formato no reconocido")

        salt = raw[8:16]
        aes_key, iv = _evp_bytes_to_key(key.encode("utf-8"), salt)

        decryptor = Cipher(algorithms.AES(aes_key), modes.CBC(iv)).decryptor()
        data = decryptor.update(raw[16:]) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = (unpadder.update(data) + unpadder.finalize()).decode("utf-8")
    except (ValueError, binascii.Error) as e:
        # UnicodeDecodeError es subclase de ValueError
        raise DecryptionError(f"Error al descifrar los datos: {e}") from e

    if not plaintext:
        raise DecryptionError("Error al descifrar los datos: Resultado del descifrado está vacío")
    return plaintext


def decrypt_credentials(encrypted_client_id: str, encrypted_client_secret: str, key: str | None) -> tuple[str, str]:
    """Descifra el par clientId/clientSecret: o ambos o ninguno."""
    try:
        return decrypt(encrypted_client_id, key), decrypt(encrypted_client_secret, key)
    except DecryptionError as e:
        raise DecryptionError(f"Error al descifrar las credenciales: {e}") from e
