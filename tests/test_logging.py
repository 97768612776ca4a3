import logging
import os
import tempfile

from beam_rebar.services.logging_setup import log_phase, setup_logging


def test_setup_logging_creates_file_once():
    logger = logging.getLogger("beam_rebar")
    old = list(logger.handlers)
    logger.handlers.clear()
    try:
        with tempfile.TemporaryDirectory() as td:
            log_dir = os.path.join(td, "logs")
            lg = setup_logging(log_dir=log_dir, log_name="t.log")
            assert os.path.exists(os.path.join(log_dir, "t.log"))
            assert len(lg.handlers) == 2

            again = setup_logging(log_dir=log_dir, log_name="t.log")
            assert again is lg
            assert len(lg.handlers) == 2

            log_phase(lg, "Prueba")
            for h in logger.handlers:
                h.close()
    finally:
        logger.handlers[:] = old
