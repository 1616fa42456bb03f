"""Dynamic naming substitutions for backup file and directory names

A name template may contain ``{{TOKEN}}`` placeholders. Every placeholder in
one template resolves against the same captured instant; a ``UTC_`` prefix
converts that instant to UTC for the one token. Tokens outside the named
format table are applied as a custom time format. Names that contained at
least one placeholder are sanitized for use as a single path segment; purely
literal names are returned untouched.

Example:
    >>> process_substitutions("portainer-backup-{{DATE}}.tar.gz")
    'portainer-backup-2024-01-16.tar.gz'
"""

import email.utils
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")
UTC_PREFIX = "UTC_"
MAX_FILENAME_BYTES = 255

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class NamedFormat(Enum):
    """Closed set of named formats recognised inside ``{{...}}``"""

    # simple, commonly used formats
    DATETIME = "DATETIME"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    TIME = "TIME"

    # ISO standard formats
    ISO8601 = "ISO8601"
    ISO = "ISO"
    ISO_BASIC = "ISO_BASIC"
    ISO_NO_OFFSET = "ISO_NO_OFFSET"
    ISO_DATE = "ISO_DATE"
    ISO_WEEKDATE = "ISO_WEEKDATE"
    ISO_TIME = "ISO_TIME"

    # other standards-based formats
    RFC2822 = "RFC2822"
    HTTP = "HTTP"
    MILLIS = "MILLIS"
    SECONDS = "SECONDS"
    UNIX = "UNIX"
    EPOCH = "EPOCH"

    # locale based formats
    LOCALE = "LOCALE"
    LOCALE_DATE = "LOCALE_DATE"
    LOCALE_TIME = "LOCALE_TIME"

    # date presets
    DATE_SHORT = "DATE_SHORT"
    DATE_MED = "DATE_MED"
    DATE_MED_WITH_WEEKDAY = "DATE_MED_WITH_WEEKDAY"
    DATE_FULL = "DATE_FULL"
    DATE_HUGE = "DATE_HUGE"

    # time presets
    TIME_SIMPLE = "TIME_SIMPLE"
    TIME_WITH_SECONDS = "TIME_WITH_SECONDS"
    TIME_WITH_SHORT_OFFSET = "TIME_WITH_SHORT_OFFSET"
    TIME_WITH_LONG_OFFSET = "TIME_WITH_LONG_OFFSET"
    TIME_24_SIMPLE = "TIME_24_SIMPLE"
    TIME_24_WITH_SECONDS = "TIME_24_WITH_SECONDS"
    TIME_24_WITH_SHORT_OFFSET = "TIME_24_WITH_SHORT_OFFSET"
    TIME_24_WITH_LONG_OFFSET = "TIME_24_WITH_LONG_OFFSET"

    # date/time presets
    DATETIME_SHORT = "DATETIME_SHORT"
    DATETIME_MED = "DATETIME_MED"
    DATETIME_FULL = "DATETIME_FULL"
    DATETIME_HUGE = "DATETIME_HUGE"
    DATETIME_SHORT_WITH_SECONDS = "DATETIME_SHORT_WITH_SECONDS"
    DATETIME_MED_WITH_SECONDS = "DATETIME_MED_WITH_SECONDS"
    DATETIME_FULL_WITH_SECONDS = "DATETIME_FULL_WITH_SECONDS"
    DATETIME_HUGE_WITH_SECONDS = "DATETIME_HUGE_WITH_SECONDS"


@dataclass(frozen=True)
class CustomFormat:
    """Fallback variant: any token not in the named table"""

    pattern: str


TokenFormat = Union[NamedFormat, CustomFormat]

_NAMED_LOOKUP = {member.value: member for member in NamedFormat}


def parse_token(token: str) -> Tuple[bool, TokenFormat]:
    """Split a placeholder body into (use_utc, format)"""
    use_utc = token.startswith(UTC_PREFIX)
    if use_utc:
        token = token[len(UTC_PREFIX):]
    return use_utc, _NAMED_LOOKUP.get(token, CustomFormat(token))


# ---------------------------------------------------------------------------
# Field helpers (en-US rendering, independent of the process locale)
# ---------------------------------------------------------------------------

_MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_LONG_ZONE_NAMES = {
    "UTC": "Coordinated Universal Time",
    "GMT": "Greenwich Mean Time",
    "EST": "Eastern Standard Time",
    "EDT": "Eastern Daylight Time",
    "CST": "Central Standard Time",
    "CDT": "Central Daylight Time",
    "MST": "Mountain Standard Time",
    "MDT": "Mountain Daylight Time",
    "PST": "Pacific Standard Time",
    "PDT": "Pacific Daylight Time",
    "CET": "Central European Standard Time",
    "CEST": "Central European Summer Time",
    "BST": "British Summer Time",
}


def _is_utc(instant: datetime) -> bool:
    return instant.tzinfo is timezone.utc


def _offset(instant: datetime, colon: bool = True, zulu: bool = True) -> str:
    if zulu and _is_utc(instant):
        return "Z"
    total = int(instant.utcoffset().total_seconds() // 60)
    sign = "-" if total < 0 else "+"
    hours, minutes = divmod(abs(total), 60)
    return f"{sign}{hours:02d}:{minutes:02d}" if colon else f"{sign}{hours:02d}{minutes:02d}"


def _short_offset_name(instant: datetime) -> str:
    name = instant.tzname()
    if name and not name.startswith(("UTC+", "UTC-")):
        return name
    return "GMT" + _offset(instant, colon=True, zulu=False).replace(":00", "")


def _long_offset_name(instant: datetime) -> str:
    short = _short_offset_name(instant)
    return _LONG_ZONE_NAMES.get(short, short)


def _millis(instant: datetime) -> str:
    return f"{instant.microsecond // 1000:03d}"


def _epoch_millis(instant: datetime) -> int:
    return (instant - _EPOCH) // timedelta(milliseconds=1)


def _epoch_seconds(instant: datetime) -> str:
    seconds, millis = divmod(_epoch_millis(instant), 1000)
    return f"{seconds}.{millis:03d}".rstrip("0").rstrip(".")


def _hour12(instant: datetime) -> int:
    return instant.hour % 12 or 12


def _meridiem(instant: datetime) -> str:
    return "AM" if instant.hour < 12 else "PM"


def _date_short(dt: datetime) -> str:
    return f"{dt.month}/{dt.day}/{dt.year}"


def _date_med(dt: datetime) -> str:
    return f"{_MONTHS[dt.month - 1][:3]} {dt.day}, {dt.year}"


def _date_full(dt: datetime) -> str:
    return f"{_MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def _weekday(dt: datetime) -> str:
    return _WEEKDAYS[dt.weekday()]


def _time12(dt: datetime, seconds: bool = False) -> str:
    clock = f"{_hour12(dt)}:{dt.minute:02d}"
    if seconds:
        clock += f":{dt.second:02d}"
    return f"{clock} {_meridiem(dt)}"


def _time24(dt: datetime, seconds: bool = False) -> str:
    clock = f"{dt.hour:02d}:{dt.minute:02d}"
    if seconds:
        clock += f":{dt.second:02d}"
    return clock


def _iso_extended(dt: datetime, offset: bool = True) -> str:
    text = dt.strftime("%Y-%m-%dT%H:%M:%S.") + _millis(dt)
    return text + _offset(dt) if offset else text


_FORMATTERS: Dict[NamedFormat, Callable[[datetime], str]] = {
    NamedFormat.DATETIME: lambda dt: dt.strftime("%Y-%m-%dT%H%M%S"),
    NamedFormat.TIMESTAMP: lambda dt: (
        dt.strftime("%Y%m%dT%H%M%S.") + _millis(dt) + _offset(dt, colon=False, zulu=False)
    ),
    NamedFormat.DATE: lambda dt: dt.strftime("%Y-%m-%d"),
    NamedFormat.TIME: lambda dt: dt.strftime("%H%M%S"),

    NamedFormat.ISO8601: _iso_extended,
    NamedFormat.ISO: _iso_extended,
    NamedFormat.ISO_BASIC: lambda dt: (
        dt.strftime("%Y%m%dT%H%M%S.") + _millis(dt) + _offset(dt, colon=False)
    ),
    NamedFormat.ISO_NO_OFFSET: lambda dt: _iso_extended(dt, offset=False),
    NamedFormat.ISO_DATE: lambda dt: dt.strftime("%Y-%m-%d"),
    NamedFormat.ISO_WEEKDATE: lambda dt: "{0:04d}-W{1:02d}-{2}".format(*dt.isocalendar()),
    NamedFormat.ISO_TIME: lambda dt: dt.strftime("%H:%M:%S.") + _millis(dt) + _offset(dt),

    NamedFormat.RFC2822: lambda dt: email.utils.format_datetime(dt),
    NamedFormat.HTTP: lambda dt: email.utils.format_datetime(
        dt.astimezone(timezone.utc), usegmt=True
    ),
    NamedFormat.MILLIS: lambda dt: str(_epoch_millis(dt)),
    NamedFormat.SECONDS: _epoch_seconds,
    NamedFormat.UNIX: _epoch_seconds,
    NamedFormat.EPOCH: _epoch_seconds,

    NamedFormat.LOCALE: _date_short,
    NamedFormat.LOCALE_DATE: _date_short,
    NamedFormat.LOCALE_TIME: _time24,

    NamedFormat.DATE_SHORT: _date_short,
    NamedFormat.DATE_MED: _date_med,
    NamedFormat.DATE_MED_WITH_WEEKDAY: lambda dt: f"{_weekday(dt)[:3]}, {_date_med(dt)}",
    NamedFormat.DATE_FULL: _date_full,
    NamedFormat.DATE_HUGE: lambda dt: f"{_weekday(dt)}, {_date_full(dt)}",

    NamedFormat.TIME_SIMPLE: _time12,
    NamedFormat.TIME_WITH_SECONDS: lambda dt: _time12(dt, seconds=True),
    NamedFormat.TIME_WITH_SHORT_OFFSET: lambda dt: (
        f"{_time12(dt, seconds=True)} {_short_offset_name(dt)}"
    ),
    NamedFormat.TIME_WITH_LONG_OFFSET: lambda dt: (
        f"{_time12(dt, seconds=True)} {_long_offset_name(dt)}"
    ),
    NamedFormat.TIME_24_SIMPLE: _time24,
    NamedFormat.TIME_24_WITH_SECONDS: lambda dt: _time24(dt, seconds=True),
    NamedFormat.TIME_24_WITH_SHORT_OFFSET: lambda dt: (
        f"{_time24(dt, seconds=True)} {_short_offset_name(dt)}"
    ),
    NamedFormat.TIME_24_WITH_LONG_OFFSET: lambda dt: (
        f"{_time24(dt, seconds=True)} {_long_offset_name(dt)}"
    ),

    NamedFormat.DATETIME_SHORT: lambda dt: f"{_date_short(dt)}, {_time12(dt)}",
    NamedFormat.DATETIME_MED: lambda dt: f"{_date_med(dt)}, {_time12(dt)}",
    NamedFormat.DATETIME_FULL: lambda dt: (
        f"{_date_full(dt)} at {_time12(dt)} {_short_offset_name(dt)}"
    ),
    NamedFormat.DATETIME_HUGE: lambda dt: (
        f"{_weekday(dt)}, {_date_full(dt)} at {_time12(dt)} {_long_offset_name(dt)}"
    ),
    NamedFormat.DATETIME_SHORT_WITH_SECONDS: lambda dt: (
        f"{_date_short(dt)}, {_time12(dt, seconds=True)}"
    ),
    NamedFormat.DATETIME_MED_WITH_SECONDS: lambda dt: (
        f"{_date_med(dt)}, {_time12(dt, seconds=True)}"
    ),
    NamedFormat.DATETIME_FULL_WITH_SECONDS: lambda dt: (
        f"{_date_full(dt)} at {_time12(dt, seconds=True)} {_short_offset_name(dt)}"
    ),
    NamedFormat.DATETIME_HUGE_WITH_SECONDS: lambda dt: (
        f"{_weekday(dt)}, {_date_full(dt)} at {_time12(dt, seconds=True)} "
        f"{_long_offset_name(dt)}"
    ),
}

if set(_FORMATTERS) != set(NamedFormat):  # pragma: no cover - import-time guard
    raise RuntimeError("every NamedFormat needs a formatter")


# ---------------------------------------------------------------------------
# Custom (fallback) patterns
# ---------------------------------------------------------------------------

_PATTERN_TOKENS = re.compile(r"'([^']*)'|([A-Za-z])\2*")

_FIELD_TOKENS: Dict[str, Callable[[datetime], str]] = {
    "yyyy": lambda dt: f"{dt.year:04d}",
    "yy": lambda dt: f"{dt.year % 100:02d}",
    "y": lambda dt: str(dt.year),
    "MMMM": lambda dt: _MONTHS[dt.month - 1],
    "MMM": lambda dt: _MONTHS[dt.month - 1][:3],
    "MM": lambda dt: f"{dt.month:02d}",
    "M": lambda dt: str(dt.month),
    "dd": lambda dt: f"{dt.day:02d}",
    "d": lambda dt: str(dt.day),
    "HH": lambda dt: f"{dt.hour:02d}",
    "H": lambda dt: str(dt.hour),
    "hh": lambda dt: f"{_hour12(dt):02d}",
    "h": lambda dt: str(_hour12(dt)),
    "mm": lambda dt: f"{dt.minute:02d}",
    "m": lambda dt: str(dt.minute),
    "ss": lambda dt: f"{dt.second:02d}",
    "s": lambda dt: str(dt.second),
    "SSS": _millis,
    "S": lambda dt: str(dt.microsecond // 1000),
    "a": _meridiem,
    "EEEE": _weekday,
    "EEE": lambda dt: _weekday(dt)[:3],
    "E": lambda dt: str(dt.isoweekday()),
    "ZZZZ": _short_offset_name,
    "ZZZ": lambda dt: _offset(dt, colon=False, zulu=False),
    "ZZ": lambda dt: _offset(dt, zulu=False),
    "Z": lambda dt: _offset(dt, zulu=False).replace(":00", "").replace("+0", "+").replace("-0", "-"),
    "o": lambda dt: str(dt.timetuple().tm_yday),
    "ooo": lambda dt: f"{dt.timetuple().tm_yday:03d}",
    "WW": lambda dt: f"{dt.isocalendar()[1]:02d}",
    "W": lambda dt: str(dt.isocalendar()[1]),
    "q": lambda dt: str((dt.month - 1) // 3 + 1),
    "X": lambda dt: str(int(dt.timestamp())),
    "x": lambda dt: str(_epoch_millis(dt)),
}


def format_custom(pattern: str, instant: datetime) -> str:
    """Apply a custom pattern to ``instant``

    Patterns containing ``%`` are strftime patterns; anything else is read as
    Luxon-style tokens (``yyyy-MM-dd``, ``'T'`` quoted literals). Unknown
    letters are copied as-is.
    """
    if "%" in pattern:
        return instant.strftime(pattern)

    out = []
    position = 0
    for match in _PATTERN_TOKENS.finditer(pattern):
        out.append(pattern[position:match.start()])
        position = match.end()
        literal, run = match.group(1), match.group(0)
        if literal is not None:
            out.append(literal)
        elif run in _FIELD_TOKENS:
            out.append(_FIELD_TOKENS[run](instant))
        else:
            out.append(run)
    out.append(pattern[position:])
    return "".join(out)


def format_instant(fmt: TokenFormat, instant: datetime) -> str:
    if isinstance(fmt, CustomFormat):
        return format_custom(fmt.pattern, instant)
    return _FORMATTERS[fmt](instant)


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------

_ILLEGAL = re.compile(r'[/?<>\\:*|"]')
_CONTROL = re.compile(r"[\x00-\x1f\x80-\x9f]")
_RESERVED = re.compile(r"^\.+$")
_WINDOWS_RESERVED = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING = re.compile(r"[. ]+$")


def _replacement(offender: str) -> str:
    if offender == "/":
        return "-"
    if offender == ":":
        return "_"
    return ""


def sanitize_filename(name: str) -> str:
    """Make ``name`` safe as a single path segment

    ``/`` becomes ``-``, ``:`` becomes ``_``, other illegal characters,
    control characters, dot-only names, Windows device names and trailing
    dots/spaces are removed. Truncated to 255 UTF-8 bytes.
    """
    def replace(match: "re.Match[str]") -> str:
        return _replacement(match.group(0))

    result = _ILLEGAL.sub(replace, name)
    result = _CONTROL.sub(replace, result)
    result = _RESERVED.sub(replace, result)
    result = _WINDOWS_RESERVED.sub(replace, result)
    result = _WINDOWS_TRAILING.sub(replace, result)
    return result.encode("utf-8")[:MAX_FILENAME_BYTES].decode("utf-8", "ignore")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubstitutionSnapshot:
    """One captured instant used to resolve every token of a name"""

    now: datetime = field(default_factory=lambda: datetime.now().astimezone())

    @classmethod
    def capture(cls, clock: Optional[Callable[[], datetime]] = None) -> "SubstitutionSnapshot":
        instant = clock() if clock else datetime.now()
        if instant.tzinfo is None:
            instant = instant.astimezone()
        return cls(now=instant)

    def resolve(self, token: str) -> str:
        """Resolve one placeholder body (without braces)"""
        use_utc, fmt = parse_token(token)
        instant = self.now.astimezone(timezone.utc) if use_utc else self.now
        return format_instant(fmt, instant)

    def substitute(self, name: str) -> str:
        """Replace every placeholder of ``name``; sanitize if any was present"""
        if not has_substitutions(name):
            return name
        resolved = PLACEHOLDER_PATTERN.sub(lambda m: self.resolve(m.group(1)), name)
        return sanitize_filename(resolved)


def has_substitutions(name: str) -> bool:
    return PLACEHOLDER_PATTERN.search(name) is not None


def process_substitutions(name: str, snapshot: Optional[SubstitutionSnapshot] = None) -> str:
    """Resolve a file or path-segment template against one captured instant"""
    if not has_substitutions(name):
        return name
    return (snapshot or SubstitutionSnapshot.capture()).substitute(name)


def resolve_directory(directory: Union[str, Path], snapshot: Optional[SubstitutionSnapshot] = None) -> Path:
    """Resolve substitutions segment by segment and return an absolute path"""
    snapshot = snapshot or SubstitutionSnapshot.capture()
    parts = str(directory).split(os.sep)
    return Path(os.sep.join(snapshot.substitute(part) for part in parts)).resolve()
