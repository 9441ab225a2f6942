"""
Field validators shared by models and serializers.

Each validator raises :class:`django.core.exceptions.ValidationError`;
DRF converts those into field errors when they are attached to a
serializer field through ``validators=[...]``.
"""
from __future__ import annotations

import re

import bleach
from django.core.exceptions import ValidationError

CPF_RE = re.compile(r'^\d{3}\.\d{3}\.\d{3}-\d{2}$')
ZIP_RE = re.compile(r'^\d{5}-?\d{3}$')
STATE_RE = re.compile(r'^[A-Z]{2}$')
TIME_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


def only_digits(value: str | None) -> str:
    return re.sub(r'\D', '', value or '')


def cpf_is_valid(value: str | None) -> bool:
    """Check the two CPF check digits.

    Accepts formatted or bare CPFs; sequences of one repeated digit
    (``111.111.111-11``) pass the arithmetic but are not issued, so they
    are rejected.
    """
    digits = only_digits(value)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False
    for size in (9, 10):
        total = sum(int(d) * w for d, w in zip(digits[:size], range(size + 1, 1, -1)))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(digits[size]):
            return False
    return True


def make_cpf(base: str) -> str:
    """Append both check digits to nine base digits and format the result."""
    digits = only_digits(base)[:9]
    for size in (9, 10):
        total = sum(int(d) * w for d, w in zip(digits, range(size + 1, 1, -1)))
        check = (total * 10) % 11
        digits += str(0 if check == 10 else check)
    return format_cpf(digits)


def format_cpf(value: str) -> str:
    d = only_digits(value)
    if len(d) != 11:
        return value
    return f'{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}'


def validate_cpf(value: str) -> None:
    if not CPF_RE.match(value or ''):
        raise ValidationError('CPF must use the format XXX.XXX.XXX-XX.', code='invalid_cpf')
    if not cpf_is_valid(value):
        raise ValidationError('Invalid CPF.', code='invalid_cpf')


def validate_phone(value: str) -> None:
    if not value:
        return
    if len(only_digits(value)) not in (10, 11):
        raise ValidationError('Phone must have 10 or 11 digits.', code='invalid_phone')


def validate_zip(value: str) -> None:
    if value and not ZIP_RE.match(value):
        raise ValidationError('Invalid ZIP code (CEP).', code='invalid_zip')


def validate_state(value: str) -> None:
    if value and not STATE_RE.match(value.upper()):
        raise ValidationError('State must be a two-letter code.', code='invalid_state')


def default_working_hours() -> dict:
    weekday = {'start': '08:00', 'end': '18:00', 'active': True}
    weekend = {'start': '08:00', 'end': '12:00', 'active': False}
    return {
        day: dict(weekday if day not in ('saturday', 'sunday') else weekend)
        for day in WEEKDAYS
    }


def validate_working_hours(value) -> None:
    """All seven days present, each ``{start, end, active}`` with HH:mm times."""
    if not isinstance(value, dict):
        raise ValidationError('Working hours must be an object keyed by weekday.', code='invalid_hours')
    for day in WEEKDAYS:
        slot = value.get(day)
        if not isinstance(slot, dict):
            raise ValidationError(f'Missing working hours for {day}.', code='invalid_hours')
        start, end = slot.get('start'), slot.get('end')
        if not isinstance(slot.get('active'), bool):
            raise ValidationError(f'"active" must be a boolean for {day}.', code='invalid_hours')
        if not (isinstance(start, str) and TIME_RE.match(start)
                and isinstance(end, str) and TIME_RE.match(end)):
            raise ValidationError(f'Invalid time format for {day} (use HH:mm).', code='invalid_hours')
        if slot['active'] and start >= end:
            raise ValidationError(f'Start must be before end for {day}.', code='invalid_hours')
    unknown = set(value) - set(WEEKDAYS)
    if unknown:
        raise ValidationError(f'Unknown days: {", ".join(sorted(unknown))}.', code='invalid_hours')


def clean_text(value: str | None) -> str:
    """Strip markup and surrounding whitespace from free-text input."""
    return bleach.clean((value or '').strip(), tags=[], strip=True)
