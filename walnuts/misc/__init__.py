from . import targets
