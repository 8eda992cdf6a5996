import re
from functools import lru_cache

# Characters that must be escaped when they appear outside glob constructs
_ESCAPED_CHARS = frozenset("$^+.*()|\\?{}[]")

# Zero or more whole path segments
_DEEP_WILDCARD = r"((?:[^/]*(?:/|$))*)"
_SEGMENT_WILDCARD = r"([^/]*)"


@lru_cache(maxsize=1024)
def glob_to_regex(glob: str) -> re.Pattern:
    """Compile a URL glob into an anchored regular expression.

    `?` matches one character, `*` anything but `/`, `**` whole segments when
    it stands between slashes (or the string ends), `{a,b}` alternatives.
    """
    tokens = ["^"]
    in_group = False
    i = 0
    length = len(glob)

    while i < length:
        c = glob[i]

        if c == "\\" and i + 1 < length:
            i += 1
            char = glob[i]
            tokens.append("\\" + char if char in _ESCAPED_CHARS else char)
            i += 1
            continue

        if c == "*":
            before = glob[i - 1] if i > 0 else None
            star_count = 1
            while i + 1 < length and glob[i + 1] == "*":
                star_count += 1
                i += 1
            after = glob[i + 1] if i + 1 < length else None
            is_deep = star_count > 1 and before in ("/", None) and after in ("/", None)
            if is_deep:
                tokens.append(_DEEP_WILDCARD)
                # The deep wildcard consumes the trailing slash
                i += 1
            else:
                tokens.append(_SEGMENT_WILDCARD)
            i += 1
            continue

        if c == "?":
            tokens.append(".")
        elif c == "{":
            in_group = True
            tokens.append("(")
        elif c == "}" and in_group:
            in_group = False
            tokens.append(")")
        elif c == "," and in_group:
            tokens.append("|")
        elif c == ",":
            tokens.append("\\,")
        else:
            tokens.append("\\" + c if c in _ESCAPED_CHARS else c)
        i += 1

    tokens.append("$")
    return re.compile("".join(tokens))


def match_glob(glob: str, value: str) -> bool:
    return glob_to_regex(glob).match(value) is not None
