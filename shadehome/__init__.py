# ShadeHome - __init__.py | see version.py for version info
"""ShadeHome: astronomical scheduling and rule core for blinds and shutters."""

from .version import VERSION as __version__
from .controller import ShadeController

__all__ = ["ShadeController", "__version__"]
