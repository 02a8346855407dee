"""
This module contains utilities to populate verifier settings from
user-provided configuration (e.g. from a Yaml file).

.. note::
    On naming conventions: this module converts hyphens in key names to
    underscores as a matter of course.
"""

import dataclasses
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError
from .policy import VerificationPolicy

__all__ = [
    'ConfigurationError',
    'ConfigurableMixin',
    'check_config_keys',
    'StdLogOutput',
    'LogConfig',
    'parse_logging_config',
    'VerifierConfig',
    'CLIConfig',
    'parse_cli_config',
    'DEFAULT_ROOT_LOGGER_LEVEL',
]


def _has_default(f: dataclasses.Field):
    return (
        f.default_factory is not dataclasses.MISSING
        or f.default is not dataclasses.MISSING
    )


def _check_subset(expected_sub, expected_sup):
    # standardise on dashes for the yaml interface
    expected_sub = {key.replace('_', '-') for key in expected_sub}
    expected_sup = {key.replace('_', '-') for key in expected_sup}
    return expected_sub - expected_sup


def check_config_keys(config_name, expected_keys, config_dict):
    # wrapper function to provide user-friendly errors
    # This does not check whether all required keys are present, that happens
    # later
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"{config_name} requires a dictionary to initialise."
        )
    unexpected_keys = _check_subset(config_dict.keys(), expected_keys)
    if unexpected_keys:
        # this is easier to present to the user than a TypeError
        raise ConfigurationError(
            f"Unexpected {'key' if len(unexpected_keys) == 1 else 'keys'} "
            f"in configuration for {config_name}: "
            f"{', '.join(sorted(unexpected_keys))}."
        )


def enforce_required_keys(config_name, required_keys, config_dict):
    missing_keys = _check_subset(required_keys, config_dict.keys())
    if missing_keys:
        raise ConfigurationError(
            f"Missing required {'key' if len(missing_keys) == 1 else 'keys'} "
            f"in configuration for {config_name}: "
            f"{', '.join(sorted(missing_keys))}."
        )


def get_and_apply(dictionary: dict, key, function: Callable, *, default=None):
    try:
        value = dictionary[key]
    except KeyError:
        return default
    return function(value)


@dataclass(frozen=True)
class ConfigurableMixin:
    """General configuration mixin for dataclasses"""

    @classmethod
    def process_entries(cls, config_dict):
        """
        Hook method that can modify the configuration dictionary
        to overwrite or tweak some of their values (e.g. to convert string
        parameters into more complex Python objects)

        Subclasses that override this method should call
        ``super().process_entries()``, and leave keys that they do not
        recognise untouched.

        :param config_dict:
            A dictionary containing configuration values.
        :raises ConfigurationError:
            when there is a problem processing a relevant entry.
        """
        pass

    @classmethod
    def from_config(cls, config_dict):
        """
        Attempt to instantiate an object of the class on which it is called,
        by means of the configuration settings passed in.

        :param config_dict:
            A dictionary containing configuration values.
        :return:
            An instance of the class on which it is called.
        :raises ConfigurationError:
            when an unexpected configuration key is encountered or left
            unfilled, or when there is a problem processing one of the config
            values.
        """
        check_config_keys(
            cls.__name__, {f.name for f in dataclasses.fields(cls)},
            config_dict
        )
        # in Python we need underscores
        config_dict = {
            key.replace('-', '_'): v for key, v in config_dict.items()
        }
        cls.process_entries(config_dict)
        enforce_required_keys(
            cls.__name__, {
                f.name for f in dataclasses.fields(cls) if not _has_default(f)
            }, config_dict
        )
        try:
            # noinspection PyArgumentList
            return cls(**config_dict)
        except TypeError as e:  # pragma: nocover
            raise ConfigurationError(e)


class StdLogOutput(enum.Enum):
    STDERR = enum.auto()
    STDOUT = enum.auto()


@dataclass(frozen=True)
class LogConfig:
    level: Union[int, str]
    """
    Logging level, should be one of the levels defined in the logging module.
    """

    output: Union[StdLogOutput, str]
    """
    Name of the output file, or a standard one.
    """

    @staticmethod
    def parse_output_spec(spec) -> Union[StdLogOutput, str]:
        if not isinstance(spec, str):
            raise ConfigurationError(
                "Log output must be specified as a string."
            )
        spec_l = spec.lower()
        if spec_l == 'stderr':
            return StdLogOutput.STDERR
        elif spec_l == 'stdout':
            return StdLogOutput.STDOUT
        else:
            return spec


DEFAULT_ROOT_LOGGER_LEVEL = logging.INFO


def _retrieve_log_level(settings_dict, key, default=None) -> Union[int, str]:
    try:
        level_spec = settings_dict[key]
    except KeyError:
        if default is not None:
            return default
        raise ConfigurationError(
            f"Logging config for '{key}' does not define a log level."
        )
    if not isinstance(level_spec, (int, str)):
        raise ConfigurationError(
            f"Log levels must be int or str, not {type(level_spec)}"
        )
    return level_spec


def parse_logging_config(log_config_spec) -> Dict[Optional[str], LogConfig]:
    if not isinstance(log_config_spec, dict):
        raise ConfigurationError('logging config should be a dictionary')

    root_logger_level = _retrieve_log_level(
        log_config_spec, 'root-level', default=DEFAULT_ROOT_LOGGER_LEVEL
    )

    root_logger_output = get_and_apply(
        log_config_spec, 'root-output', LogConfig.parse_output_spec,
        default=StdLogOutput.STDERR
    )

    log_config = {None: LogConfig(root_logger_level, root_logger_output)}

    logging_by_module = log_config_spec.get('by-module', {})
    if not isinstance(logging_by_module, dict):
        raise ConfigurationError('logging.by-module should be a dict')

    for module, module_logging_settings in logging_by_module.items():
        if not isinstance(module, str):
            raise ConfigurationError(
                "Keys in logging.by-module should be strings"
            )
        level_spec = _retrieve_log_level(module_logging_settings, 'level')
        output_spec = get_and_apply(
            module_logging_settings, 'output', LogConfig.parse_output_spec,
            default=StdLogOutput.STDERR
        )
        log_config[module] = LogConfig(level=level_spec, output=output_spec)

    return log_config


def _as_path_tuple(value, param_name) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(v, str) for v in value
    ):
        raise ConfigurationError(
            f"'{param_name}' must be specified as a list of strings, "
            f"or a string."
        )
    return tuple(value)


@dataclass(frozen=True)
class VerifierConfig(ConfigurableMixin):
    """
    Settings to set up a :class:`.CertVerifier`.
    """

    root: Optional[str] = None
    """
    Path to the root certificate(s).
    """

    certs: Tuple[str, ...] = ()
    """
    Paths to the signing key and intermediate certificates.
    """

    crls: Tuple[str, ...] = ()
    """
    Paths to CRL files.
    """

    offline: bool = False
    """
    Whether to refrain from fetching CRLs over the network.
    """

    time_tolerance: timedelta = timedelta(0)
    """
    Tolerance on validity checks, specified in seconds in the configuration.
    """

    per_request_timeout: int = 10
    """
    Timeout for individual CRL requests, in seconds.
    """

    require_intermediate_crls: bool = False
    """
    Whether intermediate certificates must be covered by a CRL.
    """

    fetch_leaf_crls: bool = False
    """
    In online mode, fetch the CRLs declared by a host key document each time
    it is verified.
    """

    @classmethod
    def process_entries(cls, config_dict):
        super().process_entries(config_dict)
        root = config_dict.get('root')
        if root is not None and not isinstance(root, str):
            raise ConfigurationError("'root' must be a string.")
        for key in ('certs', 'crls'):
            if key in config_dict:
                config_dict[key] = _as_path_tuple(config_dict[key], key)
        for key in ('offline', 'require_intermediate_crls', 'fetch_leaf_crls'):
            if key in config_dict and not isinstance(config_dict[key], bool):
                raise ConfigurationError(f"'{key}' must be a boolean.")
        try:
            tolerance = config_dict['time_tolerance']
            if not isinstance(tolerance, int) or isinstance(tolerance, bool):
                raise ConfigurationError(
                    "time-tolerance parameter must be specified in seconds"
                )
            config_dict['time_tolerance'] = timedelta(seconds=tolerance)
        except KeyError:
            pass
        timeout = config_dict.get('per_request_timeout', 10)
        if (
            not isinstance(timeout, int)
            or isinstance(timeout, bool)
            or timeout <= 0
        ):
            raise ConfigurationError(
                "per-request-timeout must be a positive number of seconds"
            )

    def get_policy(self) -> VerificationPolicy:
        return VerificationPolicy(
            time_tolerance=self.time_tolerance,
            intermediate_crl_required=self.require_intermediate_crls,
        )


@dataclass
class CLIConfig:
    verifier_config: VerifierConfig
    log_config: Dict[Optional[str], LogConfig]


def parse_cli_config(yaml_str) -> CLIConfig:
    config_dict = yaml.safe_load(yaml_str) or {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Configuration should be a dictionary")
    config_dict = dict(config_dict)
    log_config_spec = config_dict.pop('logging', {})
    return CLIConfig(
        verifier_config=VerifierConfig.from_config(config_dict),
        log_config=parse_logging_config(log_config_spec),
    )
