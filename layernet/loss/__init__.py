# flake8: noqa

from .roc_area_error import RocAreaError
