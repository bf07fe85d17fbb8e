"""
Strict URL validation for excluded paths.

Accepts what a strict RFC 3986 parser accepts: absolute URLs, opaque URLs such
as ``mailto:ops@example.com`` and relative references. Query strings are not
checked; paths, fragments, userinfo and hosts are.
"""

import string

_HEX = frozenset(string.hexdigits)
_SCHEME_FIRST = frozenset(string.ascii_letters)
_SCHEME_REST = frozenset(string.ascii_letters + string.digits + "+-.")
_USERINFO_CHARS = frozenset(string.ascii_letters + string.digits + "-._:~!$&'()*+,;=%@")
_HOST_CHARS = frozenset(string.ascii_letters + string.digits + "!$&'()*+,;=:[]<>\"-_.~")


class InvalidURLError(ValueError):
    """Raised when a URL passed to ``exclude_url`` cannot be parsed."""


def _split_scheme(url: str) -> tuple[str, str]:
    for i, c in enumerate(url):
        if c in _SCHEME_FIRST:
            continue
        if c in _SCHEME_REST:
            if i == 0:
                return "", url
            continue
        if c == ":":
            if i == 0:
                raise InvalidURLError(f"missing protocol scheme in {url!r}")
            return url[:i].lower(), url[i + 1:]
        return "", url
    return "", url


def _check_escapes(value: str, url: str, host: bool = False) -> None:
    i = 0
    while i < len(value):
        c = value[i]
        if c == "%":
            escape = value[i:i + 3]
            if len(escape) < 3 or escape[1] not in _HEX or escape[2] not in _HEX:
                raise InvalidURLError(f"invalid URL escape {escape!r} in {url!r}")
            # hosts may only escape non-ASCII bytes, or % itself for zones
            if host and int(escape[1], 16) < 8 and escape != "%25":
                raise InvalidURLError(f"invalid URL escape {escape!r} in host of {url!r}")
            i += 3
            continue
        if host and ord(c) < 0x80 and c not in _HOST_CHARS:
            raise InvalidURLError(f"invalid character {c!r} in host name of {url!r}")
        i += 1


def _valid_optional_port(port: str) -> bool:
    if port == "":
        return True
    if port[0] != ":":
        return False
    return all(c in string.digits for c in port[1:])


def _check_authority(authority: str, url: str) -> None:
    at = authority.rfind("@")
    host = authority
    if at >= 0:
        userinfo = authority[:at]
        if any(c not in _USERINFO_CHARS for c in userinfo):
            raise InvalidURLError(f"invalid userinfo in {url!r}")
        _check_escapes(userinfo, url)
        host = authority[at + 1:]

    if host.startswith("["):
        end = host.rfind("]")
        if end < 0:
            raise InvalidURLError(f"missing ']' in host of {url!r}")
        port = host[end + 1:]
    else:
        colon = host.rfind(":")
        port = host[colon:] if colon >= 0 else ""
    # only digits are required, the range is not checked
    if not _valid_optional_port(port):
        raise InvalidURLError(f"invalid port {port!r} after host in {url!r}")
    _check_escapes(host, url, host=True)


def validate_url(url: str) -> None:
    """
    Check that ``url`` parses as a URL.

    Raises
    ------
    InvalidURLError
        On control characters, a missing scheme before ``:``, a colon in the
        first segment of a relative path, bad userinfo, invalid host
        characters, a non-numeric port or malformed percent escapes
    """
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in url):
        raise InvalidURLError(f"invalid control character in URL {url!r}")

    rest, _, fragment = url.partition("#")
    _check_escapes(fragment, url)
    if rest == "*":
        return

    scheme, rest = _split_scheme(rest)
    rest = rest.partition("?")[0]

    if not rest.startswith("/"):
        if scheme:
            # opaque, e.g. mailto:ops@example.com
            return
        if ":" in rest.partition("/")[0]:
            raise InvalidURLError(f"first path segment in URL cannot contain colon: {url!r}")

    if (scheme or not rest.startswith("///")) and rest.startswith("//"):
        authority, slash, path = rest[2:].partition("/")
        _check_authority(authority, url)
        rest = slash + path

    _check_escapes(rest, url)
