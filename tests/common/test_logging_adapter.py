import threading


def test_simple_log(log_stream, string_logger):
    log_stream.truncate(0)
    log_stream.seek(0)
    string_logger.extra = {"context_id": 1234}
    string_logger.info("log 1", key=2)
    expected = "level=INFO logger=string_logger event=\"log 1\" key=\"2\" context_id=\"1234\"\n"
    assert log_stream.getvalue() == expected


def test_bind_merges_context_without_touching_parent(log_stream, string_logger):
    string_logger.extra = {"correlation_id": "c1"}
    child = string_logger.bind(source="event_log")
    child.info("bound")
    string_logger.info("parent")
    assert child.extra == {"correlation_id": "c1", "source": "event_log"}
    assert string_logger.extra == {"correlation_id": "c1"}
    assert log_stream.getvalue() == (
        'level=INFO logger=string_logger event="bound" correlation_id="c1" source="event_log"\n'
        'level=INFO logger=string_logger event="parent" correlation_id="c1"\n')


def test_worker_thread_name_is_logged(log_stream, string_logger):
    string_logger.extra = dict()
    worker = threading.Thread(target=string_logger.info, args=("from worker",), name="delivery_0")
    worker.start()
    worker.join()
    assert log_stream.getvalue() == 'level=INFO logger=string_logger event="from worker" thread="delivery_0"\n'


def test_error_without_active_exception(log_stream, string_logger):
    string_logger.extra = dict()
    string_logger.error("plain error", key="value")
    assert log_stream.getvalue() == 'level=ERROR logger=string_logger event="plain error" key="value"\n'


def test_error_log(log_stream, string_logger):
    log_stream.truncate(0)
    log_stream.seek(0)
    string_logger.extra = dict()
    try:
        try:
            raise KeyError("inner error")
        except KeyError as e:
            raise ValueError("outer error") from e
    except ValueError:
        string_logger.error("found errors", nesting=2)
    actual = log_stream.getvalue()
    assert actual.startswith(
        'level=ERROR logger=string_logger event="found errors" nesting="2" error_type="ValueError" '
        'error_message="outer error"\nTraceback (most recent call last):')
    assert ' raise KeyError("inner error")' in actual
    assert ' raise ValueError("outer error") from e' in actual
    assert '\nKeyError: \'inner error\'\n' in actual
    assert '\nValueError: outer error\n' in actual
