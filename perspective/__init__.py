"""Single-view camera calibration from vanishing points and P3P."""

__version__ = "0.1.0"

from . import errors
from . import geometry
from . import calibration
from . import utils
