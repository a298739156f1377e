"""
Tests for annostudio/state.py and annostudio/config.py: session defaults and logging setup.
"""

import logging
import unittest
from unittest import mock

from annostudio import state
from annostudio.config import configure_logging


class TestEnsureState(unittest.TestCase):

    def setUp(self):
        self.logger = logging.getLogger("annostudio")
        saved = (list(self.logger.handlers), self.logger.propagate, self.logger.level)
        self.addCleanup(self._restore, saved)
        self.logger.handlers.clear()

    def _restore(self, saved):
        handlers, propagate, level = saved
        self.logger.handlers[:] = handlers
        self.logger.propagate = propagate
        self.logger.setLevel(level)

    def test_any_page_gets_logging_and_defaults(self):
        fake_st = mock.Mock()
        fake_st.session_state = {}
        with mock.patch.object(state, "st", fake_st):
            state.ensure_state()
            state.ensure_state()
        self.assertEqual(len(self.logger.handlers), 1)
        self.assertFalse(self.logger.propagate)
        self.assertIsNone(fake_st.session_state[state.KEYS.token])
        self.assertEqual(fake_st.session_state[state.KEYS.workbench], {})

    def test_existing_values_kept(self):
        fake_st = mock.Mock()
        fake_st.session_state = {state.KEYS.dataset_page: 4}
        with mock.patch.object(state, "st", fake_st):
            state.ensure_state()
        self.assertEqual(fake_st.session_state[state.KEYS.dataset_page], 4)

    def test_configure_logging_level(self):
        logger = configure_logging("debug")
        configure_logging("debug")
        self.assertIs(logger, self.logger)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)


if __name__ == "__main__":
    unittest.main()
