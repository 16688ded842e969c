"""
Test engine configuration: logging, empty-SUM mode, workers and profiling.
"""

import logging
import unittest

from sqlagg import Query, Sum, ValidationError, config, get_logger, reset_config
from sqlagg.config import LOGGER_NAME, Profiler, get_empty_sum, get_workers


class TestLoggingConfig(unittest.TestCase):
    def tearDown(self):
        reset_config()

    def test_logger_name_and_default_level(self):
        logger = get_logger()
        self.assertEqual(LOGGER_NAME, logger.name)
        self.assertEqual(logging.WARNING, config.log_level)
        self.assertIs(logger, get_logger())

    def test_enable_disable_debug(self):
        config.enable_debug()
        self.assertEqual(logging.DEBUG, get_logger().level)
        config.disable_debug()
        self.assertEqual(logging.WARNING, get_logger().level)

    def test_log_format(self):
        config.log_format = 'verbose'
        self.assertEqual('verbose', config.log_format)
        formatter = get_logger().handlers[0].formatter
        self.assertIn('%(asctime)s', formatter._fmt)

    def test_unknown_log_format(self):
        with self.assertRaises(ValidationError):
            config.set_log_format('json')


class TestEngineSettings(unittest.TestCase):
    def tearDown(self):
        reset_config()

    def test_defaults(self):
        self.assertEqual('null', get_empty_sum())
        self.assertEqual(1, get_workers())
        self.assertFalse(config.profiling_enabled)

    def test_empty_sum(self):
        rows = [{'x': None}]
        self.assertEqual([(None,)], Query().select(Sum('x')).execute(rows).fetchall())
        config.set_empty_sum('zero')
        self.assertEqual([(0,)], Query().select(Sum('x')).execute(rows).fetchall())
        with self.assertRaises(ValidationError):
            config.empty_sum = 'nan'

    def test_workers(self):
        config.workers = 4
        self.assertEqual(4, get_workers())
        for bad in (0, -2, 2.0, False):
            with self.assertRaises(ValidationError):
                config.set_workers(bad)

    def test_reset(self):
        config.empty_sum = 'zero'
        config.workers = 3
        config.enable_profiling()
        config.reset()
        self.assertEqual('null', config.empty_sum)
        self.assertEqual(1, config.workers)
        self.assertIsNone(config.get_profiler())


class TestProfiler:
    def test_nested_steps(self):
        profiler = Profiler()
        with profiler.step('outer', rows=3):
            with profiler.step('inner'):
                pass
        assert list(profiler.summary()) == ['outer', 'outer.inner']
        assert profiler.steps[0].children[0].parent is profiler.steps[0]
        report = profiler.report()
        assert 'outer [rows=3]' in report
        assert 'TOTAL:' in report

    def test_disabled_records_nothing(self):
        profiler = Profiler(enabled=False)
        with profiler.step('x') as step:
            assert step is None
        assert profiler.report() == 'No profiling data recorded.'

    def test_clear(self):
        profiler = Profiler()
        with profiler.step('x'):
            pass
        profiler.clear()
        assert profiler.steps == []
        assert profiler.total_duration_ms == 0

    def test_each_execution_gets_fresh_profile(self, dept_rows):
        config.profiling_enabled = True
        Query().select(Sum('Salary')).execute(dept_rows)
        first = config.get_profiler()
        Query().select(Sum('Salary')).execute(dept_rows)
        assert config.get_profiler() is not first
