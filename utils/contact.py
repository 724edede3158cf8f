import re

PHONE_RE = re.compile(r"^[6-9]\d{9}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PINCODE_RE = re.compile(r"^\d{6}$")


def last_ten_digits(raw: str) -> str:
    # +91 98765 43210 -> 9876543210
    return re.sub(r"\D", "", raw)[-10:]
