import logging
import sys
from contextlib import contextmanager

import click

from hkdvalidator.cli.utils import logger
from hkdvalidator.config import ConfigurationError, LogConfig, StdLogOutput
from hkdvalidator.errors import (
    DecodeError,
    HkdError,
    HkdVerifyError,
    IoError,
    NoTrustAnchorError,
    RetrievalError,
)


class NoStackTraceFormatter(logging.Formatter):
    def formatException(self, ei) -> str:
        return ""  # pragma: nocover


LOG_FORMAT_STRING = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def logging_setup(log_configs, verbose: bool):
    log_config: LogConfig
    for module, log_config in log_configs.items():
        cur_logger = logging.getLogger(module)
        cur_logger.setLevel(log_config.level)
        handler: logging.StreamHandler
        if isinstance(log_config.output, StdLogOutput):
            if log_config.output == StdLogOutput.STDOUT:
                handler = logging.StreamHandler(sys.stdout)
            else:
                handler = logging.StreamHandler()
            # when logging to the console, don't output stack traces
            # unless in verbose mode
            if verbose:
                formatter = logging.Formatter(LOG_FORMAT_STRING)
            else:
                formatter = NoStackTraceFormatter(LOG_FORMAT_STRING)
        else:
            handler = logging.FileHandler(log_config.output)
            formatter = logging.Formatter(LOG_FORMAT_STRING)
        handler.setFormatter(formatter)
        cur_logger.addHandler(handler)


@contextmanager
def hkd_exception_manager():
    msg = exception = None
    try:
        yield
    except click.ClickException:
        raise
    except HkdVerifyError as e:
        exception = e
        msg = f"Verification failed ({e.kind.name}): {e.failure_msg}"
    except (IoError, DecodeError) as e:
        exception = e
        msg = f"Failed to load input: {e.failure_msg}"
    except RetrievalError as e:
        exception = e
        msg = f"Failed to retrieve revocation information: {e.failure_msg}"
    except NoTrustAnchorError as e:
        exception = e
        msg = f"{e.failure_msg}; specify a root certificate with --root"
    except HkdError as e:
        exception = e
        msg = f"Error raised while verifying: {e.failure_msg}"
    except ConfigurationError as e:
        exception = e
        msg = f"Configuration problem: {e}"
    except Exception as e:
        exception = e
        msg = "Generic processing error."

    if exception is not None:
        logger.error(msg, exc_info=exception)
        raise click.ClickException(msg)


DEFAULT_CONFIG_FILE = 'hkd-verify.yml'
