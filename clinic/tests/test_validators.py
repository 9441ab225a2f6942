import pytest
from django.core.exceptions import ValidationError

from clinic.validators import (
    clean_text,
    cpf_is_valid,
    default_working_hours,
    format_cpf,
    make_cpf,
    validate_cpf,
    validate_phone,
    validate_working_hours,
)


@pytest.mark.parametrize('value,expected', [
    ('529.982.247-25', True),
    ('52998224725', True),
    ('529.982.247-26', False),
    ('111.111.111-11', False),
    ('123', False),
    ('', False),
    (None, False),
])
def test_cpf_is_valid(value, expected):
    assert cpf_is_valid(value) is expected


def test_make_cpf_produces_valid_numbers():
    assert make_cpf('529982247') == '529.982.247-25'
    assert cpf_is_valid(make_cpf('123456001'))


def test_validate_cpf_requires_mask():
    validate_cpf('529.982.247-25')
    with pytest.raises(ValidationError):
        validate_cpf('52998224725')
    assert format_cpf('52998224725') == '529.982.247-25'


def test_validate_phone():
    validate_phone('(11) 98765-4321')
    validate_phone('1133334444')
    validate_phone('')
    with pytest.raises(ValidationError):
        validate_phone('12345')


def test_default_working_hours_are_valid():
    hours = default_working_hours()
    validate_working_hours(hours)
    assert hours['monday'] == {'start': '08:00', 'end': '18:00', 'active': True}
    assert hours['sunday']['active'] is False


@pytest.mark.parametrize('mutate', [
    lambda h: h.pop('friday'),
    lambda h: h.update(monday={'start': '8:00', 'end': '18:00', 'active': True}),
    lambda h: h.update(monday={'start': '12:00', 'end': '12:00', 'active': True}),
    lambda h: h.update(monday={'start': '08:00', 'end': '18:00', 'active': 'yes'}),
    lambda h: h.update(holiday={'start': '08:00', 'end': '12:00', 'active': False}),
])
def test_invalid_working_hours(mutate):
    hours = default_working_hours()
    mutate(hours)
    with pytest.raises(ValidationError):
        validate_working_hours(hours)


def test_inactive_day_may_have_any_order():
    hours = default_working_hours()
    hours['sunday'] = {'start': '12:00', 'end': '08:00', 'active': False}
    validate_working_hours(hours)


def test_clean_text_strips_markup():
    assert clean_text('  <script>alert(1)</script>Hello <b>there</b> ') == 'alert(1)Hello there'
    assert clean_text(None) == ''
