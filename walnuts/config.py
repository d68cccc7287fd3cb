# walnuts/config.py
import os
import logging
from importlib.util import find_spec

_BACKENDS = ("numpy", "torch")

# Read version from VERSION file
_version_file = os.path.join(os.path.dirname(__file__), "..", "VERSION")
try:
    with open(os.path.abspath(_version_file), "r") as f:
        __version__ = f.read().strip()
except FileNotFoundError:
    __version__ = "0.0.0"


class _WalnutsConfig:
    def __init__(self):
        self.version = __version__
        self.backend = None
        self.seed = 1234
        # logger lives in config
        self.logger = logging.getLogger("walnuts")
        if not self.logger.handlers:
            h = logging.StreamHandler()
            h.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
            self.logger.addHandler(h)
        self.logger.setLevel(logging.INFO)

    def __str__(self):
        return (
            f"WalnutsConfig("
            f"version={self.version}, "
            f"backend={self.backend}, "
            f"seed={self.seed})"
        )

    def __repr__(self):
        return (
            f"<WalnutsConfig "
            f"version={self.version!r}, "
            f"backend={self.backend!r}, "
            f"seed={self.seed!r}>"
        )

    def update(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)
        return self


_config = _WalnutsConfig()


def get_config():
    return _config


def _detect_backend():
    env = os.environ.get("WALNUTS_BACKEND")
    if env in _BACKENDS:
        return env
    if env is not None and env != "":
        raise ValueError(
            f"WALNUTS_BACKEND must be one of {_BACKENDS}, got {env!r}"
        )
    return "numpy"


def init_backend():
    """Idempotent. Detect and store backend, set env for downstream imports."""
    if _config.backend is None:
        backend = _detect_backend()
        _config.backend = backend
        os.environ["WALNUTS_BACKEND"] = backend
    return _config.backend


def set_backend(backend: str):
    """Force a backend ('numpy'|'torch') before importing walnuts.num."""
    if backend not in _BACKENDS:
        raise ValueError("backend must be 'numpy' or 'torch'")
    if backend == "torch" and find_spec("torch") is None:
        raise ValueError("backend 'torch' requested but torch is not installed")
    _config.backend = backend
    os.environ["WALNUTS_BACKEND"] = backend


def get_backend():
    """Return current backend; triggers detection if not set."""
    return _config.backend or init_backend()


def get_logger():
    return _config.logger


def set_log_level(level):
    _config.logger.setLevel(level)
