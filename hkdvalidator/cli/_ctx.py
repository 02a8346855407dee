from dataclasses import dataclass
from typing import Optional

from hkdvalidator.config import VerifierConfig


@dataclass
class CLIContext:
    """
    Context object that carries the settings gathered from the configuration
    file to the subcommands. This object is passed around as a ``click``
    context object.
    """

    config: Optional[VerifierConfig] = None
    """
    Verifier settings read from the configuration file, if there was one.
    """
