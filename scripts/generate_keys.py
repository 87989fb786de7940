"""
Generate local secrets for PayFlow development.

Writes the RSA-2048 keypair used for RS256 access tokens to the paths in
JWT_PRIVATE_KEY_PATH / JWT_PUBLIC_KEY_PATH, and prints a fresh Fernet key
for FERNET_KEY (beneficiary account numbers and KYC SSN fragments).

Run once during project setup: python scripts/generate_keys.py
"""

import os
from pathlib import Path

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.config import settings


def write_jwt_keypair(private_path: Path, public_path: Path) -> None:
    """Create an RSA keypair; existing files are left untouched."""
    if private_path.exists() and public_path.exists():
        print(f"JWT keys already present in {private_path.parent.resolve()}, skipping")
        return

    private_path.parent.mkdir(parents=True, exist_ok=True)
    public_path.parent.mkdir(parents=True, exist_ok=True)

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    private_path.chmod(0o600)
    public_path.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    print(f"JWT private key: {private_path.resolve()}")
    print(f"JWT public key:  {public_path.resolve()}")


def main() -> None:
    write_jwt_keypair(
        Path(settings.JWT_PRIVATE_KEY_PATH),
        Path(settings.JWT_PUBLIC_KEY_PATH),
    )
    print("\nAdd to .env:")
    print(f"FERNET_KEY={Fernet.generate_key().decode()}")


if __name__ == "__main__":
    os.chdir(Path(__file__).resolve().parent.parent)
    main()
