import hashlib


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_sum_line(digest: str, file_name: str) -> str:
    """
    One line in `sha256sum` format (two spaces, trailing newline), the
    layout installers expect in `<artifact>.sha256`.
    """
    return f"{digest}  {file_name}\n"
