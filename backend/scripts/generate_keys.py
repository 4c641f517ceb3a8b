"""
Generate the RSA key pair used to sign session tokens.
Run from backend dir: python -m scripts.generate_keys [--out DIR] [--force]

Writes private-key.pem and public-key.pem, matching the default
JWT_PRIVATE_KEY_PATH / JWT_PUBLIC_KEY_PATH settings.
"""
import argparse
import os
import sys

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_key_pair(key_size: int = 2048):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("utf-8"), public_pem.decode("utf-8")


def main():
    parser = argparse.ArgumentParser(description="Generate session signing keys")
    parser.add_argument("--out", default=os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    parser.add_argument("--force", action="store_true", help="Overwrite existing key files")
    args = parser.parse_args()

    private_path = os.path.join(args.out, "private-key.pem")
    public_path = os.path.join(args.out, "public-key.pem")
    if not args.force and (os.path.exists(private_path) or os.path.exists(public_path)):
        print(f"Key files already exist in {args.out}; use --force to replace them.", file=sys.stderr)
        sys.exit(1)

    private_pem, public_pem = generate_key_pair()
    with open(private_path, "w") as f:
        f.write(private_pem)
    os.chmod(private_path, 0o600)
    with open(public_path, "w") as f:
        f.write(public_pem)
    print(f"Wrote {private_path} and {public_path}")


if __name__ == "__main__":
    main()
