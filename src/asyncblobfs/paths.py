from urllib.parse import quote, unquote


def encode_path(path: str) -> str:
    """
    Percent-encode every '/'-separated segment independently.
    Only RFC 3986 unreserved characters pass through unescaped.
    """
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def decode_path(encoded: str) -> str:
    return "/".join(unquote(segment) for segment in encoded.split("/"))


def blob_path(container: str, path: str) -> str:
    """Unencoded service path of a blob: /{container}/{path}."""
    return f"/{container}/" + path.lstrip("/")
