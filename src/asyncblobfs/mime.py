import mimetypes


def detect_mime_type(path: str, contents: bytes) -> str | None:
    """Guess a MIME type from the extension, falling back to the contents."""
    guessed, _ = mimetypes.guess_type(path)
    if guessed:
        return guessed
    if not contents:
        return None
    if b"\x00" not in contents:
        try:
            contents.decode("utf-8")
            return "text/plain"
        except UnicodeDecodeError:
            pass
    return "application/octet-stream"
