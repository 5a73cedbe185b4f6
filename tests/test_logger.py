from ipedge.logger import ACCESS_FORMAT, DEFAULT_FORMAT, LOGGER_NAME, build_log_config


def test_formats_never_include_client_address() -> None:
    assert "client_addr" not in ACCESS_FORMAT
    assert "client_addr" not in DEFAULT_FORMAT


def test_build_log_config_applies_level_to_service_and_uvicorn_loggers() -> None:
    log_config = build_log_config("debug")

    assert log_config["loggers"][LOGGER_NAME]["level"] == "DEBUG"
    assert log_config["loggers"]["uvicorn.access"]["level"] == "DEBUG"
    assert log_config["formatters"]["access"]["fmt"] == ACCESS_FORMAT
