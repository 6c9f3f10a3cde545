########################################################################################
##
##                                  TESTS FOR
##                               'utils/logger.py'
##
########################################################################################

# IMPORTS ==============================================================================

import logging
import unittest

from oefpil.utils.logger import LoggerManager


# TESTS ================================================================================

class TestLoggerManager(unittest.TestCase):
    """
    Test the package logger hierarchy
    """

    def tearDown(self):
        LoggerManager().disable_console()
        LoggerManager().set_level(logging.NOTSET)


    def test_singleton(self):
        self.assertIs(LoggerManager(), LoggerManager())


    def test_names(self):
        lm = LoggerManager()
        self.assertEqual(lm.get_logger("oefpil.estimator").name, "oefpil.estimator")
        self.assertEqual(lm.get_logger("oefpil").name, "oefpil")
        self.assertEqual(lm.get_logger("calibration").name, "oefpil.calibration")
        self.assertEqual(lm.get_logger("__main__").name, "oefpil.main")


    def test_console(self):
        lm = LoggerManager()
        handler = lm.enable_console("DEBUG")
        self.assertIs(lm.enable_console("DEBUG"), handler)
        self.assertIn(handler, logging.getLogger("oefpil").handlers)
        self.assertEqual(logging.getLogger("oefpil").level, logging.DEBUG)

        lm.disable_console()
        self.assertNotIn(handler, logging.getLogger("oefpil").handlers)


    def test_fit_logs_outcome(self):
        import numpy as np
        from oefpil import oefpil

        x = np.array([1.0, 2.0, 3.0, 4.0])
        y = np.array([1.1, 1.9, 3.2, 3.9])
        with self.assertLogs("oefpil", level="INFO") as logs:
            oefpil([x, y], None, lambda mu, beta: beta[0] * mu[0] - mu[1], beta0=[1.0])
        self.assertTrue(any("converged" in line for line in logs.output))
