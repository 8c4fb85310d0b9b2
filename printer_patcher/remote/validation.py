"""Step output validation."""

import re


def validate_output(actual: str, expected: str | None) -> bool:
    """Check a step's output against its expected pattern.

    An empty pattern accepts anything. Otherwise both sides are trimmed and
    ``expected`` is searched for in ``actual`` as a regular expression; a
    pattern that does not compile is compared literally instead.
    """
    if not expected:
        return True

    actual = actual.strip()
    expected = expected.strip()

    try:
        pattern = re.compile(expected)
    except re.error:
        return actual == expected
    return pattern.search(actual) is not None
