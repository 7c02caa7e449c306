# securekey/errors.py


class SecureKeyError(Exception):
    pass


class InvalidLockIndex(SecureKeyError, ValueError):
    def __init__(self, index: object, count: int):
        super().__init__(f"lock index {index!r} out of range [0, {count})")
        self.index = index
