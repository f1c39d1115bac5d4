"""ID and secret generation utilities."""

import secrets

from nanoid import generate

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12


def gen_id(prefix: str) -> str:
    return f"{prefix}{generate(ALPHABET, ID_LENGTH)}"


def task_id() -> str:
    return gen_id("tk_")


def application_id() -> str:
    return gen_id("ap_")


def api_key() -> str:
    return f"pa_{secrets.token_urlsafe(24)}"


def otp_code(digits: int = 6) -> str:
    """Uniformly random numeric one-time code, zero-padded."""
    return f"{secrets.randbelow(10**digits):0{digits}d}"
