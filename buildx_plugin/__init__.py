from buildx_plugin.common import config
from buildx_plugin.common import dto
from buildx_plugin.common import exceptions
from buildx_plugin.common import utils
from buildx_plugin import builder

__version__ = "1.0.0"
__all__ = [
    "config",
    "dto",
    "exceptions",
    "utils",
    "builder",
]
