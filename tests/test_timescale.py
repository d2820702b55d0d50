import pytest

from flowsim.timescale import model_timescale, parse_time, scale_time


@pytest.mark.parametrize('test_input, expected', [
    ('12 s', (12, 's')),
    ('12s', (12, 's')),
    ('-12s', (-12, 's')),
    ('12.0 s', (12.0, 's')),
    ('1.2e1 s', (12.0, 's')),
    ('.12s', (0.12, 's')),
    ('12 ms', (12, 'ms')),
    ('12 sec', (12, 's')),
    ('5 min', (5, 'min')),
    ('5min', (5, 'min')),
    ('1.5 hour', (1.5, 'hour')),
    ('min', (1, 'min')),
    ('s', (1, 's')),
])
def test_parse_time(test_input, expected):
    m, u = parse_time(test_input)
    assert (m, u) == expected
    assert isinstance(m, type(expected[0]))


@pytest.mark.parametrize('test_input', [
    '',
    '123       s',
    '123',
    '123 S',
    '123 Ms',
    '123 mins',
    '123 hours',
    '+-123 s',
    '123 ks',
    '1e1.2 s',
])
def test_parse_time_except(test_input):
    with pytest.raises(ValueError) as exc_info:
        parse_time(test_input)
    assert 'float' not in str(exc_info.value)


def test_parse_time_default():
    assert parse_time('480', default_unit='min') == (480, 'min')


@pytest.mark.parametrize('input_t, input_tscale, expected', [
    ((1, 'min'), (1, 's'), 60),
    ((1, 'hour'), (1, 'min'), 60),
    ((1, 'min'), (1, 'ms'), 60000),
    ((30, 's'), (1, 'min'), 0.5),
    ((1000, 'us'), (1, 'ms'), 1),
    ((5.2, 'ms'), (1, 'us'), 5200),
])
def test_scale_time(input_t, input_tscale, expected):
    scaled = scale_time(input_t, input_tscale)
    assert expected == scaled
    assert isinstance(scaled, type(expected))


@pytest.mark.parametrize('time_unit, expected', [
    ('sec', (1, 's')),
    ('min', (1, 'min')),
    ('hour', (1, 'hour')),
])
def test_model_timescale(time_unit, expected):
    assert model_timescale(time_unit) == expected


def test_model_timescale_invalid():
    with pytest.raises(ValueError):
        model_timescale('day')
