import contextvars
import logging
import unittest
from concurrent.futures import ThreadPoolExecutor

from utils import logging_utils
from utils.logging_utils import (
    ContextFieldsFilter,
    build_logging_config,
    current_request_id,
    get_tagged_logger,
    request_context,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="jobtest")
        self.assertIn("handlers", cfg)
        self.assertIn("stdout", cfg["handlers"])
        self.assertIn("stderr", cfg["handlers"])
        # context filter should carry configured job
        self.assertEqual(cfg["filters"]["context"]["job_name"], "jobtest")
        self.assertEqual(cfg["handlers"]["stderr"]["filters"], ["context"])
        self.assertIn("info_and_below", cfg["handlers"]["stdout"]["filters"])
        self.assertEqual(cfg["handlers"]["stderr"]["stream"], "ext://sys.stderr")

    def test_get_tagged_logger_injects_tag(self):
        handler = _ListHandler()
        logger = get_tagged_logger("foo.bar", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False

        logger.info("hello world")

        self.assertTrue(handler.records)
        record = handler.records[-1]
        self.assertEqual(record.tag, "custom_tag")

        # cleanup
        base_logger.removeHandler(handler)

    def test_default_tag_is_last_name_segment(self):
        logger = get_tagged_logger("skycheck.data_sources.meteomatics_client")
        self.assertEqual(logger.extra["tag"], "meteomatics_client")

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="jobtest", override_existing=True)
            self.assertTrue(root.handlers)
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "ContextFieldsFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            root.propagate = True
            logging_utils._CONFIGURED = False  # reset for other tests


class TestRequestContext(unittest.TestCase):
    def test_request_id_is_scoped_to_block(self):
        self.assertEqual(current_request_id(), "-")
        with request_context("abc123") as rid:
            self.assertEqual(rid, "abc123")
            self.assertEqual(current_request_id(), "abc123")
        self.assertEqual(current_request_id(), "-")

    def test_generated_ids_are_unique(self):
        with request_context() as first:
            pass
        with request_context() as second:
            pass
        self.assertNotEqual(first, second)
        self.assertEqual(len(first), 12)

    def test_filter_stamps_record(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with request_context("req-1"):
            ContextFieldsFilter(job_name="jobtest").filter(record)
        self.assertEqual(record.request_id, "req-1")
        self.assertEqual(record.job_name, "jobtest")
        self.assertEqual(record.tag, "x")

    def test_third_party_records_get_name_based_tag(self):
        record = logging.LogRecord("uvicorn.access", logging.INFO, __file__, 1, "msg", None, None)
        ContextFieldsFilter().filter(record)
        self.assertEqual(record.tag, "access")
        self.assertEqual(record.request_id, "-")

    def test_copied_context_reaches_worker_threads(self):
        with request_context("req-2"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                copied = pool.submit(contextvars.copy_context().run, current_request_id).result()
        self.assertEqual(copied, "req-2")


if __name__ == "__main__":
    unittest.main()
