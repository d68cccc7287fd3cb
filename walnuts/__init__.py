# walnuts/__init__.py

from . import config
from . import num
from . import mcmc
from . import misc
from .mcmc import WALNUTSOptions, WALNUTSSampler, walnuts_sample

__all__ = [
    "num",
    "mcmc",
    "misc",
    "WALNUTSOptions",
    "WALNUTSSampler",
    "walnuts_sample",
    "__version__",
]

__version__ = config.__version__
