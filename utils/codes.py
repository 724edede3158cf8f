import random
import re
import string


class CodeGenerator:
    """Candidate referral codes and public profile slugs.

    Uniqueness is the caller's job: draw candidates until one is free.
    """

    def _random_suffix(self, size: int, alphabet: str) -> str:
        return ''.join(random.choices(alphabet, k=size))

    def referral_code(self, name: str, size: int = 4) -> str:
        # RAVI2K5M: first 4 letters of the name + random tail
        prefix = ''.join(c for c in name.upper() if c.isalpha())[:4].ljust(4, 'X')
        return prefix + self._random_suffix(size, string.ascii_uppercase + string.digits)

    def slug(self, name: str, size: int = 4) -> str:
        base = re.sub(r"[^a-z0-9\s]", "", name.lower())
        base = re.sub(r"\s+", "-", base.strip())[:30].strip("-") or "card"
        return f"{base}-{self._random_suffix(size, string.ascii_lowercase + string.digits)}"
