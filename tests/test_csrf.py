from csrf import generate_csrf_token, validate_csrf_token


def test_token_is_bound_to_organization():
    token = generate_csrf_token(7)
    assert validate_csrf_token(token, 7)
    assert not validate_csrf_token(token, 8)


def test_tampered_or_missing_token_is_rejected():
    token = generate_csrf_token(1)
    assert not validate_csrf_token(token[:-2] + "xx", 1)
    assert not validate_csrf_token("", 1)


def test_expired_token_is_rejected():
    token = generate_csrf_token(1)
    assert not validate_csrf_token(token, 1, max_age_hours=-1)
