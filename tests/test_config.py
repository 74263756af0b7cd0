from audit_service.config import reset_config


def test_defaults_use_bounded_drop_new_queue():
    config = reset_config(
        {
            "AUDIT_QUEUE_MAX_SIZE": None,
            "AUDIT_OVERFLOW_POLICY": None,
            "AUDIT_SUBMIT_TIMEOUT": None,
            "AUDIT_SHUTDOWN_TIMEOUT": None,
        }
    )

    assert config.audit_queue_max_size == 10000
    assert config.audit_overflow_policy == "drop_new"
    assert config.audit_submit_timeout == 0.05
    assert config.audit_shutdown_timeout == 10.0


def test_malformed_values_fall_back_to_defaults():
    try:
        config = reset_config(
            {
                "AUDIT_QUEUE_MAX_SIZE": "-5",
                "AUDIT_OVERFLOW_POLICY": "explode",
                "AUDIT_SUBMIT_TIMEOUT": "soon",
                "DB_POOL_SIZE": "many",
                "SQLALCHEMY_ECHO": "yes",
            }
        )
        assert config.audit_queue_max_size == 0
        assert config.audit_overflow_policy == "drop_new"
        assert config.audit_submit_timeout == 0.05
        assert config.pool_size == 5
        assert config.sqlalchemy_echo is True
    finally:
        reset_config(
            {
                "AUDIT_QUEUE_MAX_SIZE": None,
                "AUDIT_OVERFLOW_POLICY": None,
                "AUDIT_SUBMIT_TIMEOUT": None,
                "DB_POOL_SIZE": None,
                "SQLALCHEMY_ECHO": "false",
            }
        )


def test_block_policy_and_unbounded_queue():
    try:
        config = reset_config(
            {
                "AUDIT_QUEUE_MAX_SIZE": "0",
                "AUDIT_OVERFLOW_POLICY": "BLOCK",
                "AUDIT_SHUTDOWN_TIMEOUT": "2.5",
            }
        )
        assert config.audit_queue_max_size == 0
        assert config.audit_overflow_policy == "block"
        assert config.audit_shutdown_timeout == 2.5
    finally:
        reset_config(
            {
                "AUDIT_QUEUE_MAX_SIZE": None,
                "AUDIT_OVERFLOW_POLICY": None,
                "AUDIT_SHUTDOWN_TIMEOUT": None,
            }
        )
