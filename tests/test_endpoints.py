import validate_endpoints


def test_every_template_url_for_is_registered(capsys):
    assert validate_endpoints.main() == 0
    assert "Missing endpoints (referenced but not registered): 0" in capsys.readouterr().out
