#!/usr/bin/env python3
"""
Generate a SECRET_KEY for the Oscars Pool application
Paste the printed line into your .env file
"""

import secrets


def generate_secrets():
    print("🔐 Generating SECRET_KEY for Oscars Pool...")
    print("=" * 50)
    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print("=" * 50)
    print("⚠️  Keep this value secret and never commit it to version control!")


if __name__ == "__main__":
    generate_secrets()
